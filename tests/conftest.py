"""Shared fixtures.

Provides in-memory fakes for the version-control and build toolchain
ports, so pipeline tests never spawn git or Maven.
"""

import xml.etree.ElementTree as ET
import zipfile
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

import pytest

from warpackager.builds.cache import LocalArtifactStore
from warpackager.builds.runner import CommandResult
from warpackager.errors import BuildExecutionError
from warpackager.types import PackagingKind

COMMIT = "abcdef1234567890abcdef1234567890abcdef12"
POM = "{http://maven.apache.org/POM/4.0.0}"

ArchiveFactory = Callable[..., Path]


def write_archive(
    path: Path,
    manifest: dict[str, str] | None = None,
    entries: dict[str, bytes] | None = None,
) -> Path:
    """Write a zip archive with an optional manifest and extra entries."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        if manifest is not None:
            lines = ["Manifest-Version: 1.0"]
            lines.extend(f"{key}: {value}" for key, value in manifest.items())
            zf.writestr("META-INF/MANIFEST.MF", "\n".join(lines) + "\n")
        for name, data in (entries or {}).items():
            zf.writestr(name, data)
    return path


class FakeVcs:
    """VersionControlClient that records calls and "clones" a stub project."""

    def __init__(self, commit: str = COMMIT, head: str | None = None) -> None:
        self.commit = commit
        self.head = head
        self.calls: list[tuple[str, ...]] = []

    def ls_remote(self, remote: str, ref: str) -> str:
        self.calls.append(("ls_remote", remote, ref))
        return self.commit

    def clone(self, remote: str, dest: Path) -> None:
        self.calls.append(("clone", remote, str(dest)))
        dest.mkdir(parents=True, exist_ok=True)
        (dest / "pom.xml").write_text("<project/>\n")

    def checkout(self, repo_dir: Path, ref: str) -> None:
        self.calls.append(("checkout", str(repo_dir), ref))

    def head_commit(self, repo_dir: Path) -> str:
        return self.head or self.commit

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class FakeToolchain:
    """BuildToolchain that simulates Maven.

    - ``install`` publishes the re-versioned component into the store
    - ``package`` of the prebuild descriptor assembles a WAR holding one
      ``.hpi`` per plugin dependency and the given embedded libraries
    - ``package`` of the final descriptor zips the exploded tree
    """

    def __init__(
        self,
        store: LocalArtifactStore | None = None,
        coordinates: dict[str, tuple[str, PackagingKind]] | None = None,
        libs: list[str] | None = None,
        fail_on: str | None = None,
    ) -> None:
        self.store = store
        self.coordinates = coordinates or {}
        self.libs = libs or []
        self.fail_on = fail_on
        self.calls: list[tuple[Path, tuple[str, ...]]] = []
        self._versions: dict[Path, str] = {}

    def run(self, work_dir: Path, *args: str) -> CommandResult:
        self.calls.append((work_dir, args))
        log_path = work_dir / "build.log"
        if self.fail_on is not None and self.fail_on in args:
            raise BuildExecutionError(
                f"Command failed with exit code 1: mvn {' '.join(args)}",
                exit_code=1,
                log_path=str(log_path),
            )

        for arg in args:
            if arg.startswith("-DnewVersion="):
                self._versions[work_dir] = arg.split("=", 1)[1]
        if "install" in args and work_dir in self._versions:
            self._publish(work_dir.name, self._versions[work_dir])
        if "package" in args or "install" in args:
            pom = work_dir / "pom.xml"
            if pom.is_file() and ET.parse(pom).getroot().find(f"{POM}packaging") is not None:
                self._package(work_dir, ET.parse(pom).getroot())

        now = datetime.now(timezone.utc)
        return CommandResult(
            command="mvn " + " ".join(args),
            exit_code=0,
            log_path=log_path,
            started_at=now,
            finished_at=now,
        )

    def _publish(self, artifact_id: str, version: str) -> None:
        if self.store is None or artifact_id not in self.coordinates:
            return
        group_id, packaging = self.coordinates[artifact_id]
        path = self.store.artifact_path(group_id, artifact_id, version, packaging)
        path.parent.mkdir(parents=True, exist_ok=True)
        if packaging == PackagingKind.HPI:
            write_archive(path, {"Short-Name": artifact_id, "Plugin-Version": version})
        else:
            path.write_bytes(b"built")

    def _package(self, work_dir: Path, project: ET.Element) -> None:
        artifact_id = project.findtext(f"{POM}artifactId")
        packaging = project.findtext(f"{POM}packaging")
        target = work_dir / "target"

        if packaging == "pom":
            entries: dict[str, bytes] = {"META-INF/JENKINS.SF": b"signature"}
            for lib in self.libs:
                entries[f"WEB-INF/lib/{lib}"] = b"original"
            for dep in project.iter(f"{POM}dependency"):
                if dep.findtext(f"{POM}type") != "hpi":
                    continue
                name = dep.findtext(f"{POM}artifactId")
                hpi = work_dir / "plugins" / f"{name}.hpi"
                write_archive(
                    hpi,
                    {"Short-Name": name, "Plugin-Version": dep.findtext(f"{POM}version")},
                )
                entries[f"WEB-INF/plugins/{name}.hpi"] = hpi.read_bytes()
            write_archive(
                target / f"{artifact_id}.war",
                {"Main-Class": "executable.Main", "Jenkins-Version": "2.440.3"},
                entries,
            )
            return

        source_dir = Path(project.findtext(f".//{POM}warSourceDirectory") or "")
        final_name = project.findtext(f".//{POM}finalName")
        target.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(target / f"{final_name}.war", "w") as zf:
            for path in sorted(source_dir.rglob("*")):
                if path.is_file():
                    zf.write(path, path.relative_to(source_dir).as_posix())


@pytest.fixture
def store(tmp_path: Path) -> LocalArtifactStore:
    """Empty local artifact store."""
    return LocalArtifactStore(tmp_path / "m2")


@pytest.fixture
def fake_vcs() -> FakeVcs:
    """Fake git client resolving every ref to COMMIT."""
    return FakeVcs()


@pytest.fixture
def make_archive() -> ArchiveFactory:
    """Factory writing zip archives (WAR/HPI/JAR)."""
    return write_archive


@pytest.fixture
def make_vcs() -> type[FakeVcs]:
    """Fake git client class, for tests needing a custom commit or head."""
    return FakeVcs


@pytest.fixture
def make_toolchain(store: LocalArtifactStore) -> Callable[..., FakeToolchain]:
    """Factory for fake Maven toolchains publishing into ``store``."""

    def factory(**kwargs) -> FakeToolchain:
        return FakeToolchain(store=store, **kwargs)

    return factory
