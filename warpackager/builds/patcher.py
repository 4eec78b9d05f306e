"""WAR patching.

This module explodes the unpatched WAR and transforms the tree in place.
The steps must run in this order:

1. strip stale signing/manifest metadata
2. inject system properties
3. replace embedded libraries with freshly built versions
4. exclude declared libraries (after 3, so exclusions always win)
5. add extra resource trees (last, never overwriting existing files)

Every failure is fatal; a half-patched WAR is never repackaged.
"""

from __future__ import annotations

import logging
import re
import shutil
import zipfile
from collections.abc import Mapping
from pathlib import Path

from warpackager.builds.cache import LocalArtifactStore
from warpackager.builds.staging import (
    StagingError,
    stage_directory,
    validate_path_within_base,
)
from warpackager.errors import PatchError
from warpackager.packager.schema import PackagerConfig
from warpackager.types import PackagingKind

logger = logging.getLogger(__name__)

META_INF = "META-INF"
LIB_DIR = "WEB-INF/lib"
PLUGINS_DIR = "WEB-INF/plugins"
INIT_SCRIPTS_DIR = "WEB-INF/init.groovy.d"
SYSTEM_PROPERTIES_SCRIPT = "0-system-properties.groovy"

# Signature residue and the old manifest
STALE_METADATA_PATTERNS = ("MANIFEST.MF", "*.SF", "*.RSA", "*.DSA", "*.EC")


def library_pattern(name: str) -> re.Pattern[str]:
    """Match ``{name}-{version}.jar`` where the version starts with a digit.

    ``foo`` matches ``foo-1.2.jar`` but not ``foo-bar-1.2.jar``.
    """
    return re.compile(rf"^{re.escape(name)}-\d[^/]*\.jar$")


def find_libraries(lib_dir: Path, name: str) -> list[Path]:
    """Find embedded library files for a library name.

    Args:
        lib_dir: The WAR's library directory.
        name: Library artifact ID.

    Returns:
        Sorted list of matching jar files.
    """
    if not lib_dir.is_dir():
        return []
    pattern = library_pattern(name)
    return sorted(p for p in lib_dir.iterdir() if p.is_file() and pattern.match(p.name))


def _escape_groovy(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def explode_archive(archive: Path, dest: Path) -> Path:
    """Unpack a WAR into a directory.

    Args:
        archive: WAR file.
        dest: Destination directory (must not exist or be empty).

    Returns:
        The destination directory.

    Raises:
        PatchError: If the archive is missing, invalid or contains
            entries escaping the destination.
    """
    if not archive.is_file():
        raise PatchError(f"Archive not found: {archive}", code="archive_not_found")

    dest.mkdir(parents=True, exist_ok=True)
    try:
        with zipfile.ZipFile(archive) as zf:
            for member in zf.namelist():
                validate_path_within_base(dest / member, dest, "archive entry")
            zf.extractall(dest)
    except StagingError as e:
        raise PatchError(str(e), code=e.code) from e
    except zipfile.BadZipFile as e:
        raise PatchError(f"Invalid archive {archive}: {e}", code="bad_archive") from e

    logger.info("Exploded %s to %s", archive, dest)
    return dest


class WarPatcher:
    """Applies the patch steps to an exploded WAR.

    Methods return ``self`` so steps can be chained in order.
    """

    def __init__(
        self,
        config: PackagerConfig,
        exploded_dir: Path,
        store: LocalArtifactStore,
    ) -> None:
        self.config = config
        self.exploded_dir = exploded_dir
        self.store = store
        # Library name -> jar placed by replace_libs
        self.replaced: dict[str, Path] = {}

    @property
    def lib_dir(self) -> Path:
        return self.exploded_dir / LIB_DIR

    def remove_meta_inf(self) -> WarPatcher:
        """Remove the manifest and signature files of the unpatched build.

        Raises:
            PatchError: If the WAR has no META-INF directory.
        """
        meta_inf = self.exploded_dir / META_INF
        if not meta_inf.is_dir():
            raise PatchError(
                f"Expected {META_INF} in {self.exploded_dir}",
                code="missing_metadata",
            )

        removed = 0
        for pattern in STALE_METADATA_PATTERNS:
            for path in meta_inf.glob(pattern):
                path.unlink()
                removed += 1
        logger.info("Removed %d stale metadata file(s) from %s", removed, meta_inf)
        return self

    def add_system_properties(self, properties: Mapping[str, str]) -> WarPatcher:
        """Write a startup script that sets the configured system properties.

        Args:
            properties: Property name -> value.
        """
        if not properties:
            return self

        script_dir = self.exploded_dir / INIT_SCRIPTS_DIR
        script_dir.mkdir(parents=True, exist_ok=True)
        script = script_dir / SYSTEM_PROPERTIES_SCRIPT
        if script.exists():
            raise PatchError(f"Refusing to overwrite {script}", code="path_collision")

        lines = ["// Generated by warpackager"]
        for key in sorted(properties):
            lines.append(
                f"System.setProperty('{_escape_groovy(key)}', "
                f"'{_escape_groovy(properties[key])}')"
            )
        script.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.info("Added %d system propert(ies) to %s", len(properties), script)
        return self

    def replace_libs(self, overrides: Mapping[str, str]) -> WarPatcher:
        """Swap embedded libraries for the versions that were just built.

        Overrides for components that are not embedded libraries (the WAR
        itself, plugins) are skipped.

        Args:
            overrides: Version override map (artifact ID -> version).

        Raises:
            PatchError: If the replacement jar is missing from the store.
        """
        for artifact_id, version in overrides.items():
            existing = find_libraries(self.lib_dir, artifact_id)
            if not existing:
                logger.debug("No embedded library for %s, skipping replacement", artifact_id)
                continue

            dep = self.config.find_component(artifact_id)
            if dep is None:
                raise PatchError(
                    f"Override for undeclared component {artifact_id}",
                    code="unknown_component",
                    component=artifact_id,
                )
            replacement = self.store.artifact_path(
                dep.group_id, artifact_id, version, PackagingKind.JAR
            )
            if not replacement.is_file():
                raise PatchError(
                    f"Built library not found in artifact store: {replacement}",
                    code="missing_artifact",
                    component=artifact_id,
                )

            for path in existing:
                logger.info("Removing %s", path.name)
                path.unlink()
            placed = self.lib_dir / replacement.name
            shutil.copy2(replacement, placed)
            self.replaced[artifact_id] = placed
            logger.info("Replaced %s with %s", artifact_id, replacement.name)
        return self

    def exclude_libs(self, names: list[str] | None = None) -> WarPatcher:
        """Remove declared libraries from the WAR.

        Args:
            names: Library names (defaults to the configured exclusions).
        """
        for name in self.config.lib_excludes if names is None else names:
            matches = find_libraries(self.lib_dir, name)
            placed = self.replaced.pop(name, None)
            if placed is not None and placed.exists() and placed not in matches:
                matches.append(placed)
            if not matches:
                logger.warning("Excluded library %s is not present in the WAR", name)
            for path in matches:
                logger.info("Excluding %s", path.name)
                path.unlink()
        return self

    def add_resources(self, resources: Mapping[str, Path]) -> WarPatcher:
        """Copy resource trees into their configured targets.

        Args:
            resources: Resource ID -> resolved source directory.

        Raises:
            PatchError: If a target escapes the WAR or a file collides
                with one already in the tree.
        """
        targets = {r.id: r.target for r in self.config.resources}
        for resource_id, source_dir in resources.items():
            if resource_id not in targets:
                raise PatchError(
                    f"Unknown resource {resource_id}",
                    code="unknown_resource",
                    component=resource_id,
                )
            target_dir = self.exploded_dir / targets[resource_id]
            try:
                validate_path_within_base(target_dir, self.exploded_dir, "resource target")
                written = stage_directory(source_dir, target_dir, overwrite=False)
            except StagingError as e:
                raise PatchError(str(e), code=e.code, component=resource_id) from e
            logger.info(
                "Added resource %s (%d file(s)) to %s",
                resource_id,
                len(written),
                targets[resource_id],
            )
        return self


__all__ = [
    "INIT_SCRIPTS_DIR",
    "LIB_DIR",
    "META_INF",
    "PLUGINS_DIR",
    "SYSTEM_PROPERTIES_SCRIPT",
    "WarPatcher",
    "explode_archive",
    "find_libraries",
    "library_pattern",
]
