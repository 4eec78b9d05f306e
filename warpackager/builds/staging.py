"""Directory staging helpers.

This module handles:
- Copying source trees into isolated work directories
- Copying resource trees into the exploded WAR without clobbering files
- Path containment checks for destinations inside a base directory

Callers translate StagingError into the domain error of their stage.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

# VCS metadata never staged
IGNORED_NAMES = frozenset({".git", ".svn", ".hg"})


class StagingError(Exception):
    """Raised when staging a directory tree fails."""

    def __init__(self, message: str, code: str = "staging_error") -> None:
        super().__init__(message)
        self.code = code


def validate_path_within_base(path: Path, base: Path, path_type: str) -> Path:
    """Validate that a path is contained within a base directory.

    Args:
        path: Path to validate (will be resolved).
        base: Base directory (will be resolved).
        path_type: Description of the path for error messages.

    Returns:
        The resolved path.

    Raises:
        StagingError: If path escapes base directory.
    """
    resolved_path = path.resolve()
    resolved_base = base.resolve()

    try:
        resolved_path.relative_to(resolved_base)
    except ValueError:
        raise StagingError(
            f"{path_type} path traversal detected: {path} resolves outside {base}",
            code="path_traversal",
        ) from None

    return resolved_path


def stage_directory(
    source_dir: Path,
    dest_dir: Path,
    overwrite: bool = True,
) -> list[Path]:
    """Copy a directory tree into a destination directory.

    Symlinks are copied as the content they point to, and must stay
    within the source tree.

    Args:
        source_dir: Source directory path.
        dest_dir: Destination directory.
        overwrite: If False, an existing destination file is a collision.

    Returns:
        List of destination files written.

    Raises:
        StagingError: If staging fails, a symlink escapes the tree or a
            file collides with an existing one.
    """
    if not source_dir.is_dir():
        raise StagingError(
            f"Source directory not found: {source_dir}",
            code="source_not_found",
        )

    source_dir_resolved = source_dir.resolve()
    written: list[Path] = []

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        for item in sorted(source_dir.rglob("*")):
            rel_path = item.relative_to(source_dir)
            if IGNORED_NAMES.intersection(rel_path.parts):
                continue
            dest_path = dest_dir / rel_path

            if item.is_symlink():
                target = item.resolve()
                try:
                    target.relative_to(source_dir_resolved)
                except ValueError:
                    raise StagingError(
                        f"Symlink {item} points outside source tree: {target}",
                        code="symlink_escape",
                    ) from None

            if item.is_dir():
                dest_path.mkdir(parents=True, exist_ok=True)
                continue

            if not overwrite and dest_path.exists():
                raise StagingError(
                    f"Refusing to overwrite existing file: {dest_path}",
                    code="path_collision",
                )
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item.resolve() if item.is_symlink() else item, dest_path)
            written.append(dest_path)

    except OSError as e:
        raise StagingError(
            f"Failed to stage directory {source_dir}: {e}",
            code="dir_stage_error",
        ) from e

    logger.debug("Staged %d file(s) from %s to %s", len(written), source_dir, dest_dir)
    return written


__all__ = [
    "IGNORED_NAMES",
    "StagingError",
    "stage_directory",
    "validate_path_within_base",
]
