"""Error taxonomy for the packager.

Every error carries a stable ``code`` for programmatic handling. The
pipeline annotates errors with the stage (and component, when known)
that raised them before surfacing them to the top-level runner.
"""

from __future__ import annotations

from typing import Any

# Error code constants
CONFIG_ERROR = "config_error"
UNSUPPORTED_SOURCE = "unsupported_source"
SOURCE_RESOLUTION_ERROR = "source_resolution_error"
BUILD_ERROR = "build_failed"
PATCH_ERROR = "patch_error"
INTERNAL_ERROR = "internal_error"


class PackagerError(Exception):
    """Base error for all packager failures."""

    default_code = INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        code: str | None = None,
        component: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.component = component
        self.stage: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"code": self.code, "message": str(self)}
        if self.stage is not None:
            result["stage"] = self.stage
        if self.component is not None:
            result["component"] = self.component
        return result


class ConfigError(PackagerError):
    """Raised for structural configuration problems."""

    default_code = CONFIG_ERROR


class UnsupportedSourceError(ConfigError):
    """Raised when a component source is of an unknown kind."""

    default_code = UNSUPPORTED_SOURCE


class SourceResolutionError(PackagerError):
    """Raised when a git or filesystem checkout fails."""

    default_code = SOURCE_RESOLUTION_ERROR


class BuildExecutionError(PackagerError):
    """Raised when a build toolchain invocation fails."""

    default_code = BUILD_ERROR

    def __init__(
        self,
        message: str,
        exit_code: int | None = None,
        code: str | None = None,
        component: str | None = None,
        log_path: str | None = None,
    ) -> None:
        super().__init__(message, code=code, component=component)
        self.exit_code = exit_code
        self.log_path = log_path

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.exit_code is not None:
            result["exit_code"] = self.exit_code
        if self.log_path is not None:
            result["log_path"] = self.log_path
        return result


class PatchError(PackagerError):
    """Raised when the archive structure does not match expectations."""

    default_code = PATCH_ERROR


__all__ = [
    "BUILD_ERROR",
    "CONFIG_ERROR",
    "INTERNAL_ERROR",
    "PATCH_ERROR",
    "SOURCE_RESOLUTION_ERROR",
    "UNSUPPORTED_SOURCE",
    "BuildExecutionError",
    "ConfigError",
    "PackagerError",
    "PatchError",
    "SourceResolutionError",
    "UnsupportedSourceError",
]
