"""Bill of materials model and file I/O.

A BOM maps component artifact IDs to the version that ended up in the
bundle, along with how that version was obtained. It is written at the
end of every run and can be fed back in to reproduce the bundle.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from warpackager.errors import ConfigError
from warpackager.types import ComponentStatus, PackagingKind

logger = logging.getLogger(__name__)

BOM_SCHEMA_VERSION = "1"


class _BOMModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BOMEntry(_BOMModel):
    """A single resolved component.

    Attributes:
        group_id: Maven group ID, when known.
        version: Resolved version.
        status: How the version was obtained.
        kind: Packaging kind of the component.
        git: Git remote the component was built from, if any.
        branch: Branch the component was built from, if any.
        tag: Tag the component was built from, if any.
        commit: Commit the component was built from, if any.
    """

    group_id: str | None = Field(default=None)
    version: str
    status: ComponentStatus = Field(default=ComponentStatus.RELEASE)
    kind: PackagingKind = Field(default=PackagingKind.HPI)
    git: str | None = Field(default=None)
    branch: str | None = Field(default=None)
    tag: str | None = Field(default=None)
    commit: str | None = Field(default=None)


class BOMMetadata(_BOMModel):
    """BOM header."""

    schema_version: str = Field(default=BOM_SCHEMA_VERSION)
    group_id: str | None = Field(default=None)
    artifact_id: str | None = Field(default=None)
    version: str | None = Field(default=None)
    generated_at: str | None = Field(default=None)


class BOM(_BOMModel):
    """Bill of materials: artifact ID -> resolved component."""

    metadata: BOMMetadata = Field(default_factory=BOMMetadata)
    components: dict[str, BOMEntry] = Field(default_factory=dict)

    def version_of(self, artifact_id: str) -> str | None:
        """Return the version recorded for a component."""
        entry = self.components.get(artifact_id)
        return entry.version if entry else None


def load_bom(path: Path) -> BOM:
    """Load a BOM from a YAML or JSON file.

    Args:
        path: Path to the BOM file.

    Returns:
        Validated BOM instance.

    Raises:
        ConfigError: If the file is missing or not a valid BOM.
    """
    if not path.is_file():
        raise ConfigError(f"BOM file not found: {path}", code="bom_not_found")

    try:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to parse BOM {path}: {e}", code="bom_parse_error") from e

    if not isinstance(data, dict):
        raise ConfigError(f"BOM {path} must be a mapping", code="bom_parse_error")

    try:
        return BOM.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid BOM {path}: {e}", code="bom_invalid") from e


def bom_to_dict(bom: BOM) -> dict[str, Any]:
    """Convert a BOM to a plain dict with camelCase keys."""
    return bom.model_dump(mode="json", by_alias=True, exclude_none=True)


def write_bom(bom: BOM, output_path: Path) -> Path:
    """Write a BOM to a YAML file.

    Args:
        bom: BOM to write.
        output_path: Output file path.

    Returns:
        Path to the written file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with output_path.open("w", encoding="utf-8") as f:
        yaml.safe_dump(bom_to_dict(bom), f, default_flow_style=False, sort_keys=False)

    logger.info("Wrote BOM to %s", output_path)
    return output_path


__all__ = [
    "BOM",
    "BOM_SCHEMA_VERSION",
    "BOMEntry",
    "BOMMetadata",
    "bom_to_dict",
    "load_bom",
    "write_bom",
]
