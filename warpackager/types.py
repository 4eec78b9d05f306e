"""Shared type definitions for warpackager.

This module contains dataclasses and enums shared across subpackages
to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class PackagingKind(str, Enum):
    """Artifact type produced for a component."""

    WAR = "war"
    HPI = "hpi"
    JAR = "jar"


class ComponentStatus(str, Enum):
    """How a component's version came to be in the bundle."""

    BUILT = "built"
    CACHED = "cached"
    RELEASE = "release"


class PipelineStage(str, Enum):
    """Stages of a packager run, in execution order."""

    CONFIG_VERIFIED = "config_verified"
    BASE_ARTIFACT_BUILT = "base_artifact_built"
    PLUGINS_BUILT = "plugins_built"
    LIB_PATCHES_BUILT = "lib_patches_built"
    RESOURCES_COLLECTED = "resources_collected"
    BASE_DESCRIPTOR_GENERATED = "base_descriptor_generated"
    BASE_ARCHIVE_ASSEMBLED = "base_archive_assembled"
    ARCHIVE_PATCHED = "archive_patched"
    FINAL_DESCRIPTOR_GENERATED = "final_descriptor_generated"
    FINAL_ARCHIVE_ASSEMBLED = "final_archive_assembled"
    BOM_EMITTED = "bom_emitted"


@dataclass
class OperationResult:
    """Result of an operation (packager run, config check, etc.)."""

    success: bool
    message: str
    code: str | None = None
    log_path: str | None = None
    details: dict[str, object] = field(default_factory=dict)


__all__ = [
    "ComponentStatus",
    "OperationResult",
    "PackagingKind",
    "PipelineStage",
]
