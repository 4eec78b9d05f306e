"""Packager configuration loading.

This module provides helpers for loading the packager configuration
from YAML/JSON files and for seeding it from a previously produced BOM
or from a Maven POM before a run.
"""

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from warpackager.bom.models import BOM
from warpackager.errors import ConfigError
from warpackager.packager.schema import (
    BundleSchema,
    DependencySchema,
    GitSource,
    PackagerConfig,
    ReleaseSource,
)

logger = logging.getLogger(__name__)

MAVEN_NS = "{http://maven.apache.org/POM/4.0.0}"
PLUGIN_TYPES = {"hpi", "jpi"}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed JSON content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def parse_config_data(data: dict[str, Any]) -> PackagerConfig:
    """Parse and validate configuration data.

    Args:
        data: Dictionary containing configuration data.

    Returns:
        Validated PackagerConfig instance.

    Raises:
        ConfigError: If data does not match the schema.
    """
    try:
        return PackagerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid packager configuration: {e}") from e


def load_config(path: Path) -> PackagerConfig:
    """Load and validate a configuration file (YAML or JSON).

    File format is determined by extension (.yaml, .yml for YAML,
    .json for JSON).

    Args:
        path: Path to the configuration file.

    Returns:
        Validated PackagerConfig instance.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Configuration file not found: {path}", code="config_not_found")

    suffix = path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            data = load_yaml(path)
        elif suffix == ".json":
            data = load_json(path)
        else:
            raise ConfigError(
                f"Unsupported file extension '{suffix}'. Use .yaml, .yml, or .json"
            )
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Parse error in {path}: {e}", code="config_parse_error") from e
    except ValueError as e:
        raise ConfigError(str(e), code="config_parse_error") from e

    return parse_config_data(data)


def override_by_bom(config: PackagerConfig, bom: BOM) -> PackagerConfig:
    """Pin component sources to the versions recorded in a BOM.

    Entries built from git are pinned to their recorded commit and keep
    their recorded branch or tag, so they re-version identically; all other
    entries become released versions. BOM entries for components that are
    not declared in the config are ignored. The bundle identity is taken
    from the BOM metadata when the config does not define one.

    Args:
        config: Configuration to update in place.
        bom: Loaded BOM.

    Returns:
        The updated configuration.
    """
    meta = bom.metadata
    if config.bundle is None and meta.group_id and meta.artifact_id:
        config.bundle = BundleSchema(
            group_id=meta.group_id,
            artifact_id=meta.artifact_id,
            version=meta.version or "1.0-SNAPSHOT",
        )

    for artifact_id, entry in bom.components.items():
        dep = config.find_component(artifact_id)
        if dep is None:
            logger.debug("BOM entry %s is not part of the configuration", artifact_id)
            continue
        if entry.git and entry.commit:
            dep.source = GitSource(
                git=entry.git,
                branch=entry.branch,
                tag=entry.tag,
                commit=entry.commit,
            )
            logger.info("BOM pins %s to commit %s", dep, entry.commit)
        else:
            dep.source = ReleaseSource(version=entry.version)
            logger.info("BOM pins %s to version %s", dep, entry.version)

    return config


def _pom_text(element: ET.Element, tag: str, properties: dict[str, str]) -> str | None:
    child = element.find(f"{MAVEN_NS}{tag}")
    if child is None or child.text is None:
        return None
    text = child.text.strip()
    if text.startswith("${") and text.endswith("}"):
        return properties.get(text[2:-1], text)
    return text


def override_by_pom(config: PackagerConfig, pom_path: Path) -> PackagerConfig:
    """Seed component versions from the dependencies of a Maven POM.

    The WAR and plugins declared with a released version are updated to
    the POM's version. Plugin dependencies (type hpi/jpi) the config does
    not declare are appended as released plugins. Components built from
    source and test-scoped dependencies are left untouched.

    Args:
        config: Configuration to update in place.
        pom_path: Path to the POM file.

    Returns:
        The updated configuration.

    Raises:
        ConfigError: If the POM is missing or cannot be parsed.
    """
    if not pom_path.is_file():
        raise ConfigError(f"POM file not found: {pom_path}", code="pom_not_found")
    try:
        root = ET.parse(pom_path).getroot()
    except ET.ParseError as e:
        raise ConfigError(f"Failed to parse POM {pom_path}: {e}", code="pom_parse_error") from e

    properties: dict[str, str] = {}
    props = root.find(f"{MAVEN_NS}properties")
    if props is not None:
        for prop in props:
            properties[prop.tag.replace(MAVEN_NS, "")] = (prop.text or "").strip()

    deps = root.find(f"{MAVEN_NS}dependencies")
    if deps is None:
        return config

    for dep_el in deps.findall(f"{MAVEN_NS}dependency"):
        group_id = _pom_text(dep_el, "groupId", properties)
        artifact_id = _pom_text(dep_el, "artifactId", properties)
        version = _pom_text(dep_el, "version", properties)
        dep_type = _pom_text(dep_el, "type", properties) or "jar"
        scope = _pom_text(dep_el, "scope", properties)
        if not (group_id and artifact_id and version) or scope == "test":
            continue

        existing = config.find_component(artifact_id)
        if existing is not None:
            if isinstance(existing.source, ReleaseSource):
                existing.source = ReleaseSource(version=version)
                logger.info("POM sets %s to version %s", existing, version)
        elif dep_type in PLUGIN_TYPES:
            config.plugins.append(
                DependencySchema(
                    group_id=group_id,
                    artifact_id=artifact_id,
                    source=ReleaseSource(version=version),
                )
            )
            logger.info("POM adds plugin %s:%s:%s", group_id, artifact_id, version)

    return config


__all__ = [
    "load_config",
    "load_json",
    "load_yaml",
    "override_by_bom",
    "override_by_pom",
    "parse_config_data",
]
