"""Configuration settings for warpackager.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_maven_repository() -> Path:
    """Return the default local Maven repository."""
    return Path.home() / ".m2" / "repository"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the WARPKG_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="WARPKG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Local artifact store
    maven_repository: Path | None = Field(
        default=None,
        description="Local Maven repository (uses ~/.m2/repository if not set)",
    )

    # External tools
    mvn_command: str = Field(default="mvn", description="Maven executable")
    git_command: str = Field(default="git", description="Git executable")

    # Operational modes
    no_cache: bool = Field(
        default=False,
        description="Rebuild components even if the snapshot is already installed",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    max_concurrent_builds: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Maximum concurrent plugin/library builds",
    )

    # Timeouts (in seconds)
    command_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Timeout for git/Maven invocations (no timeout if not set)",
    )

    @property
    def artifact_store_root(self) -> Path:
        """Root of the local artifact store."""
        return self.maven_repository or _default_maven_repository()


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
