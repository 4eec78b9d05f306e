"""Maven build descriptor (POM) generation.

This module renders the two descriptors a run feeds to Maven:
- The prebuild descriptor, which assembles the unpatched WAR from the
  base WAR and plugins via ``maven-hpi-plugin:custom-war``
- The final descriptor, which repackages the patched, exploded WAR tree

Component versions come from the version override map when a component
was built, and from its released version otherwise.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from pathlib import Path

from warpackager.errors import ConfigError
from warpackager.packager.schema import (
    BundleSchema,
    DependencySchema,
    PackagerConfig,
    ReleaseSource,
)
from warpackager.types import PackagingKind

logger = logging.getLogger(__name__)

POM_NS = "http://maven.apache.org/POM/4.0.0"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
POM_SCHEMA_LOCATION = f"{POM_NS} https://maven.apache.org/xsd/maven-4.0.0.xsd"
DESCRIPTOR_NAME = "pom.xml"

PREBUILD_SUFFIX = "-prebuild"
HPI_PLUGIN = ("org.jenkins-ci.tools", "maven-hpi-plugin", "3.61")
WAR_PLUGIN = ("org.apache.maven.plugins", "maven-war-plugin", "3.4.0")
JENKINS_REPOSITORY = ("repo.jenkins-ci.org", "https://repo.jenkins-ci.org/public/")


def _sub(parent: ET.Element, tag: str, text: str | None = None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    if text is not None:
        element.text = text
    return element


def _coordinates(parent: ET.Element, group_id: str, artifact_id: str, version: str) -> None:
    _sub(parent, "groupId", group_id)
    _sub(parent, "artifactId", artifact_id)
    _sub(parent, "version", version)


def component_version(dep: DependencySchema, overrides: Mapping[str, str]) -> str:
    """Return the version a component takes in the bundle.

    Args:
        dep: Component.
        overrides: Version override map (artifact ID -> version).

    Returns:
        The override version, or the released version.

    Raises:
        ConfigError: If a component built from source has no override.
    """
    if dep.artifact_id in overrides:
        return overrides[dep.artifact_id]
    if isinstance(dep.source, ReleaseSource):
        return dep.source.version
    raise ConfigError(
        f"No version resolved for {dep}; it must be built before descriptors are generated",
        code="missing_override",
        component=dep.artifact_id,
    )


class DescriptorGenerator:
    """Generates Maven POMs for a packager configuration."""

    def __init__(self, config: PackagerConfig) -> None:
        if config.bundle is None:
            raise ConfigError("Bundle information must be defined by configuration or BOM")
        self.config = config
        self.bundle: BundleSchema = config.bundle

    def _project(self, artifact_id: str, packaging: str) -> ET.Element:
        project = ET.Element(
            "project",
            {
                "xmlns": POM_NS,
                "xmlns:xsi": XSI_NS,
                "xsi:schemaLocation": POM_SCHEMA_LOCATION,
            },
        )
        _sub(project, "modelVersion", "4.0.0")
        _coordinates(project, self.bundle.group_id, artifact_id, self.bundle.version)
        _sub(project, "packaging", packaging)
        if self.bundle.description:
            _sub(project, "description", self.bundle.description)
        if self.bundle.vendor:
            organization = _sub(project, "organization")
            _sub(organization, "name", self.bundle.vendor)

        properties = _sub(project, "properties")
        _sub(properties, "project.build.sourceEncoding", "UTF-8")
        return project

    def _repositories(self, project: ET.Element) -> None:
        repo_id, url = JENKINS_REPOSITORY
        for section, entry in (
            ("repositories", "repository"),
            ("pluginRepositories", "pluginRepository"),
        ):
            repo = _sub(_sub(project, section), entry)
            _sub(repo, "id", repo_id)
            _sub(repo, "url", url)

    def generate_prebuild(self, overrides: Mapping[str, str]) -> ET.ElementTree:
        """Generate the descriptor that assembles the unpatched WAR.

        Args:
            overrides: Version override map (artifact ID -> version).

        Returns:
            POM element tree.

        Raises:
            ConfigError: If a built component has no override.
        """
        artifact_id = f"{self.bundle.artifact_id}{PREBUILD_SUFFIX}"
        project = self._project(artifact_id, "pom")

        dependencies = _sub(project, "dependencies")
        war = self.config.war
        dependency = _sub(dependencies, "dependency")
        _coordinates(dependency, war.group_id, war.artifact_id, component_version(war, overrides))
        _sub(dependency, "type", PackagingKind.WAR.value)

        for plugin in self.config.plugins:
            dependency = _sub(dependencies, "dependency")
            _coordinates(
                dependency,
                plugin.group_id,
                plugin.artifact_id,
                component_version(plugin, overrides),
            )
            _sub(dependency, "type", PackagingKind.HPI.value)

        build_plugins = _sub(_sub(project, "build"), "plugins")
        hpi = _sub(build_plugins, "plugin")
        _coordinates(hpi, *HPI_PLUGIN)
        execution = _sub(_sub(hpi, "executions"), "execution")
        _sub(execution, "id", "package-war")
        _sub(execution, "phase", "package")
        _sub(_sub(execution, "goals"), "goal", "custom-war")
        configuration = _sub(execution, "configuration")
        _sub(
            configuration,
            "outputFile",
            f"${{project.build.directory}}/{artifact_id}.{PackagingKind.WAR.value}",
        )

        self._repositories(project)
        logger.debug("Generated prebuild descriptor for %s", artifact_id)
        return ET.ElementTree(project)

    def generate_final(
        self,
        exploded_dir: Path,
        manifest: Mapping[str, str],
    ) -> ET.ElementTree:
        """Generate the descriptor that repackages the patched tree.

        Args:
            exploded_dir: Patched, exploded WAR directory.
            manifest: Main manifest attributes of the unpatched WAR.

        Returns:
            POM element tree.
        """
        project = self._project(self.bundle.artifact_id, PackagingKind.WAR.value)

        build = _sub(project, "build")
        _sub(build, "finalName", self.bundle.artifact_id)
        war_plugin = _sub(_sub(build, "plugins"), "plugin")
        _coordinates(war_plugin, *WAR_PLUGIN)
        configuration = _sub(war_plugin, "configuration")
        _sub(configuration, "warSourceDirectory", str(exploded_dir.resolve()))
        _sub(configuration, "failOnMissingWebXml", "false")

        archive = _sub(configuration, "archive")
        main_class = manifest.get("Main-Class")
        if main_class:
            _sub(_sub(archive, "manifest"), "mainClass", main_class)
        entries = _sub(archive, "manifestEntries")
        for key in ("Jenkins-Version", "Implementation-Version"):
            if manifest.get(key):
                _sub(entries, key, manifest[key])

        self._repositories(project)
        logger.debug("Generated final descriptor for %s", self.bundle.artifact_id)
        return ET.ElementTree(project)


def write_descriptor(tree: ET.ElementTree, directory: Path) -> Path:
    """Write a descriptor as ``pom.xml`` into a directory.

    Args:
        tree: POM element tree.
        directory: Target directory (created if needed).

    Returns:
        Path to the written file.
    """
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / DESCRIPTOR_NAME
    ET.indent(tree, space="  ")
    tree.write(path, encoding="utf-8", xml_declaration=True)
    logger.info("Wrote build descriptor to %s", path)
    return path


__all__ = [
    "DESCRIPTOR_NAME",
    "PREBUILD_SUFFIX",
    "DescriptorGenerator",
    "component_version",
    "write_descriptor",
]
