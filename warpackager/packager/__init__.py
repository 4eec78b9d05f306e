"""Packager configuration module.

This module handles:
- Pydantic schema of the packager configuration
- Loading configuration files (YAML/JSON)
- Seeding component versions from a BOM or a Maven POM
"""

from warpackager.packager.io import (
    load_config,
    override_by_bom,
    override_by_pom,
    parse_config_data,
)
from warpackager.packager.schema import (
    BuildSettingsSchema,
    BundleSchema,
    DependencySchema,
    FilesystemSource,
    GitSource,
    PackagerConfig,
    ReleaseSource,
    ResourceSchema,
)

__all__ = [
    # Schema
    "BuildSettingsSchema",
    "BundleSchema",
    "DependencySchema",
    "FilesystemSource",
    "GitSource",
    "PackagerConfig",
    "ReleaseSource",
    "ResourceSchema",
    # IO functions
    "load_config",
    "override_by_bom",
    "override_by_pom",
    "parse_config_data",
]
