"""Pydantic models for packager configuration.

This module defines the declarative description of a bundle: the base
WAR, plugins, library patches, extra resources and the settings that
drive the build. Keys are accepted in camelCase (as written in YAML
files) or snake_case.
"""

import re
from pathlib import Path, PurePosixPath
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Maven coordinates: letters, digits, '.', '_' and '-'
COORDINATE_PATTERN = re.compile(r"^[a-zA-Z0-9_.\-]+$")

CASC_PLUGIN_ARTIFACT_ID = "configuration-as-code"


class _Schema(BaseModel):
    """Base for all config models."""

    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


def _coerce_scalar(v: Any) -> Any:
    """Turn YAML numbers/booleans into strings (e.g. ``version: 2.0``)."""
    if isinstance(v, bool):
        return str(v).lower()
    if isinstance(v, (int, float)):
        return str(v)
    return v


class ReleaseSource(_Schema):
    """A pinned, already released version. Never built.

    Attributes:
        version: Released version to use.
    """

    version: Annotated[str, Field(min_length=1, description="Released version")]

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        """Accept numeric YAML versions."""
        return _coerce_scalar(v)


class FilesystemSource(_Schema):
    """A local directory.

    Attributes:
        dir: Path to the source directory.
    """

    dir: Annotated[str, Field(min_length=1, description="Local source directory")]


class GitSource(_Schema):
    """A git checkout.

    Attributes:
        git: Remote URL.
        branch: Optional branch to check out.
        tag: Optional tag to check out.
        commit: Optional commit hash; takes precedence over branch/tag.
    """

    git: Annotated[str, Field(min_length=1, description="Git remote URL")]
    branch: str | None = Field(default=None, description="Branch to check out")
    tag: str | None = Field(default=None, description="Tag to check out")
    commit: str | None = Field(default=None, description="Commit to pin")

    @model_validator(mode="after")
    def validate_single_ref(self) -> "GitSource":
        """A git source may name a branch or a tag, not both."""
        if self.branch and self.tag:
            raise ValueError("git source may define 'branch' or 'tag', not both")
        return self

    @property
    def checkout_id(self) -> str | None:
        """Tag or branch to check out, if any."""
        return self.tag or self.branch


SourceSchema = ReleaseSource | FilesystemSource | GitSource


class ComponentBuildSettings(_Schema):
    """Per-component build options.

    Attributes:
        build_original_version: Install the component at its unmodified
            version before re-versioning it.
    """

    build_original_version: bool = Field(default=False)


class DependencySchema(_Schema):
    """A component of the bundle (base WAR, plugin or library).

    Attributes:
        group_id: Maven group ID.
        artifact_id: Maven artifact ID.
        source: Where the component comes from.
        build: Per-component build options.
    """

    group_id: Annotated[str, Field(min_length=1, description="Maven group ID")]
    artifact_id: Annotated[str, Field(min_length=1, description="Maven artifact ID")]
    source: SourceSchema
    build: ComponentBuildSettings = Field(default_factory=ComponentBuildSettings)

    @field_validator("group_id", "artifact_id")
    @classmethod
    def validate_coordinate(cls, v: str) -> str:
        """Validate Maven coordinates match a safe pattern."""
        if not COORDINATE_PATTERN.match(v):
            raise ValueError(
                f"coordinate must match pattern {COORDINATE_PATTERN.pattern}, got '{v}'"
            )
        return v

    @property
    def needs_build(self) -> bool:
        """Whether the component must be built from source."""
        return not isinstance(self.source, ReleaseSource)

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}"


class ResourceSchema(_Schema):
    """An extra resource tree copied into the WAR.

    Attributes:
        id: Resource identifier (also its work directory name).
        source: Where the resource comes from (filesystem or git).
        target: Relative path inside the exploded WAR.
    """

    id: Annotated[str, Field(min_length=1)]
    source: SourceSchema
    target: Annotated[str, Field(min_length=1)]

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Validate resource id is usable as a directory name."""
        if not COORDINATE_PATTERN.match(v):
            raise ValueError(f"resource id must match {COORDINATE_PATTERN.pattern}")
        return v

    @field_validator("target")
    @classmethod
    def validate_target(cls, v: str) -> str:
        """Validate target is a relative path without parent references."""
        path = PurePosixPath(v)
        if path.is_absolute() or ".." in path.parts:
            raise ValueError("target must be a relative path inside the WAR")
        return v


class CascSourceSchema(_Schema):
    """A configuration-as-code YAML source."""

    id: Annotated[str, Field(min_length=1)]
    source: SourceSchema


class BundleSchema(_Schema):
    """Identity of the produced WAR.

    Attributes:
        group_id: Maven group ID of the bundle.
        artifact_id: Artifact ID; also the output WAR name.
        version: Bundle version.
        description: Optional description.
        vendor: Optional vendor.
    """

    group_id: Annotated[str, Field(min_length=1)]
    artifact_id: Annotated[str, Field(min_length=1)]
    version: str = Field(default="1.0-SNAPSHOT")
    description: str | None = Field(default=None)
    vendor: str | None = Field(default=None)

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, v: Any) -> Any:
        """Accept numeric YAML versions."""
        return _coerce_scalar(v)


class BuildSettingsSchema(_Schema):
    """Settings of the build itself.

    Attributes:
        tmp_dir: Working directory; wiped at the start of every run.
        output_dir: Directory for the final WAR build (default: tmp_dir/output).
        bom: Optional BOM file to seed component versions from.
        pom: Optional POM file to seed component versions from.
        install_artifacts: Install the final WAR into the artifact store.
    """

    tmp_dir: str = Field(default="tmp")
    output_dir: str | None = Field(default=None)
    bom: str | None = Field(default=None)
    pom: str | None = Field(default=None)
    install_artifacts: bool = Field(default=False)

    @property
    def tmp_path(self) -> Path:
        return Path(self.tmp_dir)

    @property
    def output_path(self) -> Path:
        if self.output_dir:
            return Path(self.output_dir)
        return self.tmp_path / "output"


class PackagerConfig(_Schema):
    """Complete packager configuration.

    Attributes:
        bundle: Identity of the output WAR (may come from a BOM instead).
        build_settings: Build directories and seeding inputs.
        war: The base WAR component.
        plugins: Ordered plugin components.
        lib_patches: Ordered library components replacing WEB-INF/lib jars.
        lib_excludes: Library names removed from WEB-INF/lib.
        system_properties: Properties injected into the WAR at startup.
        resources: Extra resource trees copied into the WAR.
        casc: Configuration-as-code sources.
    """

    bundle: BundleSchema | None = Field(default=None)
    build_settings: BuildSettingsSchema = Field(default_factory=BuildSettingsSchema)
    war: DependencySchema
    plugins: list[DependencySchema] = Field(default_factory=list)
    lib_patches: list[DependencySchema] = Field(default_factory=list)
    lib_excludes: list[str] = Field(default_factory=list)
    system_properties: dict[str, str] = Field(default_factory=dict)
    resources: list[ResourceSchema] = Field(default_factory=list)
    casc: list[CascSourceSchema] | None = Field(default=None)

    @field_validator("system_properties", mode="before")
    @classmethod
    def coerce_properties(cls, v: Any) -> Any:
        """Accept YAML scalars as property values."""
        if isinstance(v, dict):
            return {str(k): _coerce_scalar(val) for k, val in v.items()}
        return v

    @field_validator("lib_excludes")
    @classmethod
    def validate_excludes(cls, v: list[str]) -> list[str]:
        """Validate excluded library names."""
        for item in v:
            if not COORDINATE_PATTERN.match(item):
                raise ValueError(f"invalid library name '{item}'")
        return v

    @model_validator(mode="after")
    def validate_unique_components(self) -> "PackagerConfig":
        """Artifact IDs must be unique across all components."""
        seen: set[str] = set()
        for dep in self.all_components():
            if dep.artifact_id in seen:
                raise ValueError(f"duplicate component artifactId '{dep.artifact_id}'")
            seen.add(dep.artifact_id)
        ids = [r.id for r in self.resources]
        if len(ids) != len(set(ids)):
            raise ValueError("resource ids must be unique")
        return self

    def all_components(self) -> list[DependencySchema]:
        """Return the WAR, plugins and library patches in build order."""
        return [self.war, *self.plugins, *self.lib_patches]

    def find_component(self, artifact_id: str) -> DependencySchema | None:
        """Find any component by artifact ID."""
        for dep in self.all_components():
            if dep.artifact_id == artifact_id:
                return dep
        return None

    def find_plugin(self, artifact_id: str) -> DependencySchema | None:
        """Find a plugin by artifact ID."""
        for dep in self.plugins:
            if dep.artifact_id == artifact_id:
                return dep
        return None


__all__ = [
    "CASC_PLUGIN_ARTIFACT_ID",
    "BuildSettingsSchema",
    "BundleSchema",
    "CascSourceSchema",
    "ComponentBuildSettings",
    "DependencySchema",
    "FilesystemSource",
    "GitSource",
    "PackagerConfig",
    "ReleaseSource",
    "ResourceSchema",
    "SourceSchema",
]
