"""Local artifact store and build cache.

This module handles:
- Locating installed artifacts in a Maven-layout local repository
- Answering "is this (artifact, version) already installed?"
- Serializing installs of the same (artifact, version) across builders

The artifact store is the only source of truth: nothing else records
which components were built.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from warpackager.packager.schema import DependencySchema
from warpackager.types import PackagingKind

logger = logging.getLogger(__name__)

LOCK_DIR_NAME = ".locks"


class LocalArtifactStore:
    """A Maven-layout local repository.

    Artifacts live at
    ``{root}/{group/as/path}/{artifact}/{version}/{artifact}-{version}.{ext}``.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def artifact_path(
        self,
        group_id: str,
        artifact_id: str,
        version: str,
        packaging: PackagingKind,
    ) -> Path:
        """Return where an artifact is (or would be) installed.

        Args:
            group_id: Maven group ID.
            artifact_id: Maven artifact ID.
            version: Artifact version.
            packaging: Packaging kind (file extension).

        Returns:
            Path of the artifact file.
        """
        return (
            self.root.joinpath(*group_id.split("."))
            / artifact_id
            / version
            / f"{artifact_id}-{version}.{packaging.value}"
        )

    def contains(
        self,
        group_id: str,
        artifact_id: str,
        version: str,
        packaging: PackagingKind,
    ) -> bool:
        """Check whether an artifact is installed."""
        return self.artifact_path(group_id, artifact_id, version, packaging).is_file()

    @contextmanager
    def publish_lock(
        self,
        artifact_id: str,
        version: str,
        timeout: float | None = None,
    ) -> Iterator[None]:
        """Acquire the install lock for an (artifact, version) pair.

        Uses a file-based lock so concurrent builders never install the
        same not-yet-cached version twice.

        Args:
            artifact_id: Artifact being installed.
            version: Version being installed.
            timeout: Lock acquisition timeout in seconds (None = blocking).

        Yields:
            None when lock is acquired.

        Raises:
            TimeoutError: If lock cannot be acquired within timeout.
        """
        lock_dir = self.root / LOCK_DIR_NAME
        lock_dir.mkdir(parents=True, exist_ok=True)

        safe_key = f"{artifact_id}_{version}".replace("/", "_").replace(":", "_")[:200]
        lock_file = lock_dir / f"{safe_key}.lock"

        fd = os.open(str(lock_file), os.O_RDWR | os.O_CREAT, 0o600)
        lock_acquired = False
        try:
            if timeout is not None:
                start = time.monotonic()
                while True:
                    try:
                        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                        lock_acquired = True
                        break
                    except BlockingIOError:
                        if time.monotonic() - start >= timeout:
                            raise TimeoutError(
                                f"Timeout waiting for install lock on {artifact_id}:{version}"
                            ) from None
                        time.sleep(0.1)
            else:
                fcntl.flock(fd, fcntl.LOCK_EX)
                lock_acquired = True

            logger.debug("Install lock acquired for %s:%s", artifact_id, version)
            yield
        finally:
            if lock_acquired:
                fcntl.flock(fd, fcntl.LOCK_UN)
                logger.debug("Install lock released for %s:%s", artifact_id, version)
            os.close(fd)


class BuildCache:
    """Read-only cache lookups against the local artifact store.

    The cache key is the assigned version itself.
    """

    def __init__(self, store: LocalArtifactStore, enabled: bool = True) -> None:
        self.store = store
        self.enabled = enabled

    def exists(
        self,
        component: DependencySchema,
        version: str,
        packaging: PackagingKind,
    ) -> bool:
        """Check whether the component is already installed at a version.

        Args:
            component: Component to look up.
            version: Assigned version.
            packaging: Packaging kind of the component.

        Returns:
            True if an equivalent artifact is installed and caching is on.
        """
        if not self.enabled:
            return False
        found = self.store.contains(
            component.group_id, component.artifact_id, version, packaging
        )
        if found:
            logger.info("Snapshot version exists for %s: %s", component, version)
        else:
            logger.info("Snapshot is missing for %s: %s", component, version)
        return found


__all__ = ["LOCK_DIR_NAME", "BuildCache", "LocalArtifactStore"]
