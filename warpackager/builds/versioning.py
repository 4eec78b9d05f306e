"""Version assignment for freshly built components.

The assigned version doubles as the artifact store cache key: the same
git remote, checkout id and commit always yield the same version, so a
commit that was already built is recognized as cached.
"""

from __future__ import annotations

from datetime import date

from warpackager.errors import ConfigError
from warpackager.packager.schema import FilesystemSource, GitSource, SourceSchema

# Above any real release line, so snapshots never sort below the
# versions that dependency checks expect.
BASE_MAJOR = 256

DEFAULT_CHECKOUT_ID = "default"


def assign_version(
    source: SourceSchema,
    commit: str | None = None,
    today: date | None = None,
) -> str:
    """Compute the snapshot version for a component being built.

    Args:
        source: Component source.
        commit: Resolved commit hash (required for git sources).
        today: Date used for filesystem sources (defaults to today).

    Returns:
        Version string such as ``256.0-default-<commit>-SNAPSHOT``.

    Raises:
        ConfigError: If the source is a released version or a git source
            has no resolved commit.
    """
    if isinstance(source, GitSource):
        resolved = commit or source.commit
        if not resolved:
            raise ConfigError(
                f"Cannot assign a version to {source.git} without a commit",
                code="missing_commit",
            )
        checkout_id = source.checkout_id or DEFAULT_CHECKOUT_ID
        return f"{BASE_MAJOR}.0-{checkout_id}-{resolved}-SNAPSHOT"

    if isinstance(source, FilesystemSource):
        day = today or date.today()
        return f"{BASE_MAJOR}.0-{day.isoformat()}-SNAPSHOT"

    raise ConfigError(
        f"Released components keep their version, nothing to assign: {source}",
        code="release_source",
    )


__all__ = ["BASE_MAJOR", "DEFAULT_CHECKOUT_ID", "assign_version"]
