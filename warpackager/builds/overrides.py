"""Version override accumulator.

Each completed component build (or cache hit) records the version it
resolved to. Entries are write-once; later stages only read them after
every builder has finished.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass

from warpackager.errors import ConfigError
from warpackager.types import ComponentStatus


@dataclass(frozen=True)
class VersionOverride:
    """Resolved version of a component built in this run.

    Attributes:
        version: Assigned snapshot version.
        status: BUILT or CACHED.
        commit: Commit the version was derived from (git sources).
    """

    version: str
    status: ComponentStatus
    commit: str | None = None


class VersionOverrideMap:
    """Artifact ID -> VersionOverride, safe to record from several threads."""

    def __init__(self) -> None:
        self._entries: dict[str, VersionOverride] = {}
        self._lock = threading.Lock()

    def record(
        self,
        artifact_id: str,
        version: str,
        status: ComponentStatus,
        commit: str | None = None,
    ) -> VersionOverride:
        """Record the version of a component.

        Raises:
            ConfigError: If the component already has an entry.
        """
        entry = VersionOverride(version=version, status=status, commit=commit)
        with self._lock:
            if artifact_id in self._entries:
                raise ConfigError(
                    f"Version of {artifact_id} already recorded as "
                    f"{self._entries[artifact_id].version}",
                    code="duplicate_override",
                    component=artifact_id,
                )
            self._entries[artifact_id] = entry
        return entry

    def get(self, artifact_id: str) -> VersionOverride | None:
        with self._lock:
            return self._entries.get(artifact_id)

    def versions(self) -> dict[str, str]:
        """Return a snapshot of artifact ID -> version."""
        with self._lock:
            return {key: entry.version for key, entry in self._entries.items()}

    def __contains__(self, artifact_id: object) -> bool:
        with self._lock:
            return artifact_id in self._entries

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            keys = list(self._entries)
        return iter(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["VersionOverride", "VersionOverrideMap"]
