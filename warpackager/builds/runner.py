"""Build runner for executing Maven commands.

This module handles:
- Executing build toolchain commands with subprocess
- Appending stdout/stderr of every invocation to a per-directory log
- Installing a component at its assigned snapshot version

Any nonzero exit aborts the run; there is no retry layer.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from warpackager.config import Settings
from warpackager.errors import BuildExecutionError
from warpackager.packager.schema import DependencySchema
from warpackager.types import PackagingKind

logger = logging.getLogger(__name__)

BUILD_LOG_NAME = "build.log"

# Skip tests and verification plugins: the goal is assembly, not validation
INSTALL_ARGS = (
    "clean",
    "install",
    "-DskipTests",
    "-Dfindbugs.skip=true",
    "-Denforcer.skip=true",
)


@dataclass
class CommandResult:
    """Result of a toolchain invocation.

    Attributes:
        command: The command that was executed.
        exit_code: Process exit code.
        log_path: Path to the log file the output was appended to.
        started_at: Start time.
        finished_at: Finish time.
    """

    command: str
    exit_code: int
    log_path: Path
    started_at: datetime
    finished_at: datetime


class BuildToolchain(Protocol):
    """Port for the external build toolchain."""

    def run(self, work_dir: Path, *args: str) -> CommandResult:
        """Run the toolchain in a directory; raise on failure."""
        ...


def run_logged(
    cmd: list[str],
    cwd: Path,
    log_path: Path,
    timeout: int | None = None,
    env_override: dict[str, str] | None = None,
) -> CommandResult:
    """Execute a command, appending its output to a log file.

    Args:
        cmd: Command as list of strings.
        cwd: Working directory.
        log_path: Log file (appended to).
        timeout: Timeout in seconds (None = no timeout).
        env_override: Optional environment variable overrides.

    Returns:
        CommandResult with execution details.

    Raises:
        BuildExecutionError: If the command cannot be started, times out
            or exits nonzero.
    """
    cmd_str = shlex.join(cmd)
    logger.info("Executing: %s", cmd_str)
    logger.debug("Working directory: %s", cwd)

    log_path.parent.mkdir(parents=True, exist_ok=True)
    started_at = datetime.now(timezone.utc)

    env: dict[str, str] | None = None
    if env_override:
        env = dict(os.environ)
        env.update(env_override)

    try:
        with log_path.open("a") as log_file:
            log_file.write(f"# Command: {cmd_str}\n")
            log_file.write(f"# Started: {started_at.isoformat()}\n")
            log_file.write(f"# CWD: {cwd}\n")
            log_file.write("# " + "=" * 70 + "\n\n")
            log_file.flush()

            result = subprocess.run(
                cmd,
                cwd=cwd,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                timeout=timeout,
                env=env,
                check=False,
            )
            exit_code = result.returncode

    except subprocess.TimeoutExpired as e:
        with log_path.open("a") as log_file:
            log_file.write(f"\n# TIMEOUT after {timeout} seconds\n")
        raise BuildExecutionError(
            f"Command timed out after {timeout} seconds: {cmd_str}",
            exit_code=-1,
            code="timeout",
            log_path=str(log_path),
        ) from e

    except OSError as e:
        raise BuildExecutionError(
            f"Failed to execute {cmd_str}: {e}",
            code="execution_error",
            log_path=str(log_path),
        ) from e

    finished_at = datetime.now(timezone.utc)

    with log_path.open("a") as log_file:
        log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
        log_file.write(f"# Exit code: {exit_code}\n")
        duration = (finished_at - started_at).total_seconds()
        log_file.write(f"# Duration: {duration:.1f}s\n\n")

    if exit_code != 0:
        message = f"Command failed with exit code {exit_code}: {cmd_str}"
        logger.error("%s. See log: %s", message, log_path)
        raise BuildExecutionError(message, exit_code=exit_code, log_path=str(log_path))

    return CommandResult(
        command=cmd_str,
        exit_code=exit_code,
        log_path=log_path,
        started_at=started_at,
        finished_at=finished_at,
    )


class MavenToolchain:
    """Build toolchain backed by the ``mvn`` executable."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def compose_command(self, *args: str) -> list[str]:
        """Compose a batch-mode Maven command.

        Args:
            args: Goals and options.

        Returns:
            Command as list of strings suitable for subprocess.
        """
        cmd = [self.settings.mvn_command, "--batch-mode"]
        if self.settings.maven_repository is not None:
            cmd.append(f"-Dmaven.repo.local={self.settings.maven_repository}")
        cmd.extend(args)
        return cmd

    def run(self, work_dir: Path, *args: str) -> CommandResult:
        return run_logged(
            self.compose_command(*args),
            cwd=work_dir,
            log_path=work_dir / BUILD_LOG_NAME,
            timeout=self.settings.command_timeout,
        )


def build_component(
    toolchain: BuildToolchain,
    work_dir: Path,
    component: DependencySchema,
    version: str,
    packaging: PackagingKind,
) -> None:
    """Install a component into the artifact store under a new version.

    Optionally installs the unmodified component first, then re-versions
    the sources in place and installs them again.

    Args:
        toolchain: Build toolchain to invoke.
        work_dir: Materialized component sources.
        component: Component being built.
        version: Assigned snapshot version.
        packaging: Packaging kind of the component.

    Raises:
        BuildExecutionError: If any toolchain step fails.
    """
    try:
        if component.build.build_original_version:
            logger.info("Installing %s at its original version", component)
            toolchain.run(work_dir, *INSTALL_ARGS)

        logger.info("Set new version for %s: %s", component.artifact_id, version)
        toolchain.run(work_dir, "versions:set", f"-DnewVersion={version}")
        toolchain.run(work_dir, *INSTALL_ARGS)
    except BuildExecutionError as e:
        e.component = e.component or component.artifact_id
        raise

    logger.info("Installed %s:%s (%s)", component, version, packaging.value)


__all__ = [
    "BUILD_LOG_NAME",
    "INSTALL_ARGS",
    "BuildToolchain",
    "CommandResult",
    "MavenToolchain",
    "build_component",
    "run_logged",
]
