"""Source resolution for components and resources.

This module handles:
- Resolving a git ref to a commit without cloning (``git ls-remote``)
- Cloning and pinning git sources into per-component work directories
- Copying or referencing filesystem sources

The commit used for versioning is always the commit that gets checked
out: when no commit is configured, the ls-remote result is pinned and
checked out explicitly after the clone.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from warpackager.builds.staging import StagingError, stage_directory
from warpackager.errors import SourceResolutionError, UnsupportedSourceError
from warpackager.packager.schema import FilesystemSource, GitSource, SourceSchema

logger = logging.getLogger(__name__)

DEFAULT_REF = "master"


@dataclass
class ResolvedSource:
    """A materialized source tree.

    Attributes:
        path: Directory holding the sources.
        commit: Checked-out commit for git sources.
    """

    path: Path
    commit: str | None = None


class VersionControlClient(Protocol):
    """Port for the external version-control client."""

    def ls_remote(self, remote: str, ref: str) -> str:
        """Return the commit hash at the tip of a remote ref."""
        ...

    def clone(self, remote: str, dest: Path) -> None:
        """Clone a remote into an empty directory."""
        ...

    def checkout(self, repo_dir: Path, ref: str) -> None:
        """Check out a ref or commit."""
        ...

    def head_commit(self, repo_dir: Path) -> str:
        """Return the hash of the checked-out commit."""
        ...


class GitClient:
    """Version-control client backed by the ``git`` executable."""

    def __init__(self, git_command: str = "git", timeout: int | None = None) -> None:
        self.git_command = git_command
        self.timeout = timeout

    def _run(self, args: list[str], cwd: Path | None = None) -> str:
        cmd = [self.git_command, *args]
        logger.debug("Executing: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.TimeoutExpired as e:
            raise SourceResolutionError(
                f"git {args[0]} timed out after {self.timeout}s",
                code="timeout",
            ) from e
        except subprocess.CalledProcessError as e:
            raise SourceResolutionError(
                f"git {args[0]} failed with exit code {e.returncode}: {e.stderr.strip()}",
            ) from e
        except OSError as e:
            raise SourceResolutionError(
                f"Failed to run git: {e}",
                code="execution_error",
            ) from e
        return result.stdout

    def ls_remote(self, remote: str, ref: str) -> str:
        # Annotated tags list the tag object first; the peeled "^{}" entry
        # holds the commit it points to.
        output = self._run(["ls-remote", remote, ref, f"{ref}^{{}}"])
        hashes: list[str] = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) < 2:
                continue
            if parts[1].endswith("^{}"):
                return parts[0]
            hashes.append(parts[0])
        if hashes:
            return hashes[0]
        raise SourceResolutionError(
            f"Ref '{ref}' not found in {remote}",
            code="ref_not_found",
        )

    def clone(self, remote: str, dest: Path) -> None:
        dest.mkdir(parents=True, exist_ok=True)
        self._run(["clone", remote, "."], cwd=dest)

    def checkout(self, repo_dir: Path, ref: str) -> None:
        self._run(["checkout", ref], cwd=repo_dir)

    def head_commit(self, repo_dir: Path) -> str:
        return self._run(["log", "--format=%H", "-n", "1"], cwd=repo_dir).strip()


class SourceResolver:
    """Materializes component and resource sources into work directories."""

    def __init__(self, vcs: VersionControlClient) -> None:
        self.vcs = vcs

    def resolve_commit(self, source: GitSource) -> str:
        """Determine the commit a git source refers to, without cloning.

        Args:
            source: Git source.

        Returns:
            The configured commit, or the tip of the checkout id (default
            ``master``) on the remote.
        """
        if source.commit:
            return source.commit
        ref = source.checkout_id or DEFAULT_REF
        commit = self.vcs.ls_remote(source.git, ref)
        logger.info("Resolved %s@%s to commit %s", source.git, ref, commit)
        return commit

    def resolve(
        self,
        component_id: str,
        source: SourceSchema,
        work_dir: Path,
        isolate: bool = False,
        commit: str | None = None,
    ) -> ResolvedSource:
        """Materialize a source.

        Args:
            component_id: Component or resource ID (for logging/errors).
            source: Source to materialize.
            work_dir: Empty per-component work directory.
            isolate: Copy filesystem sources into work_dir instead of
                using them in place (required when the build mutates
                the sources).
            commit: Commit already resolved for a git source.

        Returns:
            ResolvedSource with the source directory and commit.

        Raises:
            SourceResolutionError: If a checkout or copy fails.
            UnsupportedSourceError: If the source cannot be checked out.
        """
        if isinstance(source, FilesystemSource):
            return self._resolve_filesystem(component_id, source, work_dir, isolate)
        if isinstance(source, GitSource):
            return self._resolve_git(component_id, source, work_dir, commit)
        raise UnsupportedSourceError(
            f"Unsupported checkout source for {component_id}: {type(source).__name__}",
            component=component_id,
        )

    def _resolve_filesystem(
        self,
        component_id: str,
        source: FilesystemSource,
        work_dir: Path,
        isolate: bool,
    ) -> ResolvedSource:
        source_dir = Path(source.dir)
        if not source_dir.is_dir():
            raise SourceResolutionError(
                f"Source directory for {component_id} not found: {source_dir}",
                code="source_not_found",
                component=component_id,
            )

        if not isolate:
            logger.info("Using %s from local directory: %s", component_id, source_dir)
            return ResolvedSource(path=source_dir)

        logger.info("Copying %s from local directory: %s", component_id, source_dir)
        try:
            stage_directory(source_dir, work_dir)
        except StagingError as e:
            raise SourceResolutionError(
                str(e), code=e.code, component=component_id
            ) from e
        return ResolvedSource(path=work_dir)

    def _resolve_git(
        self,
        component_id: str,
        source: GitSource,
        work_dir: Path,
        commit: str | None,
    ) -> ResolvedSource:
        pinned = commit or self.resolve_commit(source)
        logger.info("Will checkout %s from git: %s", component_id, source.git)

        try:
            self.vcs.clone(source.git, work_dir)
            if source.checkout_id:
                self.vcs.checkout(work_dir, source.checkout_id)
            self.vcs.checkout(work_dir, pinned)
            head = self.vcs.head_commit(work_dir)
        except SourceResolutionError as e:
            e.component = e.component or component_id
            raise

        if not head.startswith(pinned):
            raise SourceResolutionError(
                f"Checked out {head} for {component_id}, expected {pinned}",
                code="commit_mismatch",
                component=component_id,
            )

        logger.info("Checked out %s, commitId: %s", component_id, head)
        return ResolvedSource(path=work_dir, commit=head)


__all__ = [
    "DEFAULT_REF",
    "GitClient",
    "ResolvedSource",
    "SourceResolver",
    "VersionControlClient",
]
