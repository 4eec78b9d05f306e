"""BOM generation from the patched WAR.

Scans the plugins bundled in the patched WAR for their manifest versions
and merges in the version override map. An override always wins over
the manifest: it reflects what was actually built in this run.
"""

from __future__ import annotations

import logging
import zipfile
from datetime import datetime, timezone
from pathlib import Path

from warpackager.bom.models import BOM, BOMEntry, BOMMetadata
from warpackager.builds.manifest import read_manifest
from warpackager.builds.overrides import VersionOverrideMap
from warpackager.errors import PatchError
from warpackager.packager.schema import (
    DependencySchema,
    GitSource,
    PackagerConfig,
    ReleaseSource,
)
from warpackager.types import ComponentStatus, PackagingKind

logger = logging.getLogger(__name__)

PLUGIN_SUFFIXES = {".hpi", ".jpi"}


def _plugin_version(manifest: dict[str, str]) -> str | None:
    version = manifest.get("Plugin-Version")
    if not version:
        return None
    # Locally built plugins report e.g. "1.2-SNAPSHOT (private-...)"
    return version.split(" ", 1)[0]


def scan_plugins(plugins_dir: Path) -> dict[str, BOMEntry]:
    """Read name and version of every plugin in a plugins directory.

    Both packaged (``.hpi``/``.jpi``) and exploded plugins are read.

    Args:
        plugins_dir: The WAR's plugins directory.

    Returns:
        Artifact ID -> release entry as reported by the manifest.

    Raises:
        PatchError: If a plugin archive cannot be read or has no version.
    """
    entries: dict[str, BOMEntry] = {}
    if not plugins_dir.is_dir():
        logger.warning("Plugins directory does not exist: %s", plugins_dir)
        return entries

    for path in sorted(plugins_dir.iterdir()):
        if path.is_file() and path.suffix.lower() not in PLUGIN_SUFFIXES:
            continue
        try:
            manifest = read_manifest(path)
        except zipfile.BadZipFile as e:
            raise PatchError(f"Invalid plugin archive {path}: {e}", code="bad_archive") from e

        name = manifest.get("Short-Name") or path.stem
        version = _plugin_version(manifest)
        if version is None:
            if path.is_dir():
                continue
            raise PatchError(f"Plugin {path.name} has no Plugin-Version", code="missing_metadata")

        entries[name] = BOMEntry(
            group_id=manifest.get("Group-Id"),
            version=version,
            status=ComponentStatus.RELEASE,
            kind=PackagingKind.HPI,
        )
    logger.debug("Found %d plugin(s) in %s", len(entries), plugins_dir)
    return entries


def _entry_for(
    dep: DependencySchema | None,
    kind: PackagingKind,
    overrides: VersionOverrideMap,
    artifact_id: str,
    fallback: BOMEntry | None = None,
) -> BOMEntry | None:
    override = overrides.get(artifact_id)
    group_id = dep.group_id if dep else (fallback.group_id if fallback else None)

    if override is not None:
        git_source = dep.source if dep and isinstance(dep.source, GitSource) else None
        return BOMEntry(
            group_id=group_id,
            version=override.version,
            status=override.status,
            kind=kind,
            git=git_source.git if git_source else None,
            branch=git_source.branch if git_source else None,
            tag=git_source.tag if git_source else None,
            commit=override.commit,
        )
    if fallback is not None:
        return fallback
    if dep is not None and isinstance(dep.source, ReleaseSource):
        return BOMEntry(
            group_id=group_id,
            version=dep.source.version,
            status=ComponentStatus.RELEASE,
            kind=kind,
        )
    return None


def emit_bom(
    plugins_dir: Path,
    overrides: VersionOverrideMap,
    config: PackagerConfig | None = None,
) -> BOM:
    """Build the BOM for a patched WAR.

    Args:
        plugins_dir: Plugins directory of the patched, exploded WAR.
        overrides: Version override map of this run.
        config: Packager configuration (adds the WAR, library patches and
            bundle metadata).

    Returns:
        BOM with one entry per component.
    """
    components: dict[str, BOMEntry] = {}

    if config is not None:
        war_entry = _entry_for(config.war, PackagingKind.WAR, overrides, config.war.artifact_id)
        if war_entry is not None:
            components[config.war.artifact_id] = war_entry

    for name, scanned in scan_plugins(plugins_dir).items():
        dep = config.find_plugin(name) if config is not None else None
        entry = _entry_for(dep, PackagingKind.HPI, overrides, name, fallback=scanned)
        if entry is not None:
            components[name] = entry

    if config is not None:
        for lib in config.lib_patches:
            entry = _entry_for(lib, PackagingKind.JAR, overrides, lib.artifact_id)
            if entry is not None:
                components[lib.artifact_id] = entry

    # Overrides are authoritative even for components not found above
    for artifact_id in overrides:
        if artifact_id not in components:
            dep = config.find_component(artifact_id) if config is not None else None
            kind = PackagingKind.JAR
            if config is not None and config.find_plugin(artifact_id) is not None:
                kind = PackagingKind.HPI
            entry = _entry_for(dep, kind, overrides, artifact_id)
            if entry is not None:
                components[artifact_id] = entry

    metadata = BOMMetadata(generated_at=datetime.now(timezone.utc).isoformat())
    if config is not None and config.bundle is not None:
        metadata.group_id = config.bundle.group_id
        metadata.artifact_id = config.bundle.artifact_id
        metadata.version = config.bundle.version

    logger.info("BOM lists %d component(s)", len(components))
    return BOM(metadata=metadata, components=components)


__all__ = ["emit_bom", "scan_plugins"]
