"""Packager pipeline.

This module provides the high-level build API:
- Packager.build(): run every stage, in order, for one configuration
- build_if_needed(): version, cache-check and build a single component
- run_packager(): top-level entry point returning an OperationResult

Stages run strictly in PipelineStage order. Any error aborts the run;
a rerun starts over and relies on the artifact store to skip components
that were already built.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from warpackager.bom.emitter import emit_bom
from warpackager.bom.models import BOM, load_bom, write_bom
from warpackager.builds.cache import BuildCache, LocalArtifactStore
from warpackager.builds.descriptor import (
    PREBUILD_SUFFIX,
    DescriptorGenerator,
    write_descriptor,
)
from warpackager.builds.manifest import read_manifest
from warpackager.builds.overrides import VersionOverride, VersionOverrideMap
from warpackager.builds.patcher import PLUGINS_DIR, WarPatcher, explode_archive
from warpackager.builds.runner import BuildToolchain, MavenToolchain, build_component
from warpackager.builds.sources import GitClient, SourceResolver, VersionControlClient
from warpackager.builds.versioning import assign_version
from warpackager.config import Settings, get_settings
from warpackager.errors import (
    BuildExecutionError,
    ConfigError,
    PackagerError,
    UnsupportedSourceError,
)
from warpackager.packager.io import override_by_bom, override_by_pom
from warpackager.packager.schema import (
    CASC_PLUGIN_ARTIFACT_ID,
    BundleSchema,
    DependencySchema,
    GitSource,
    PackagerConfig,
    ReleaseSource,
)
from warpackager.types import ComponentStatus, OperationResult, PackagingKind, PipelineStage

logger = logging.getLogger(__name__)

BUILD_DIR_NAME = "build"
PREBUILD_DIR_NAME = "prebuild"
EXPLODED_DIR_NAME = "exploded-war"


@dataclass
class PackagerOutcome:
    """Result of a successful packager run.

    Attributes:
        war_path: The final WAR.
        bom_path: The written BOM.
        bom: The BOM contents.
        versions: Version override map (artifact ID -> version).
    """

    war_path: Path
    bom_path: Path
    bom: BOM
    versions: dict[str, str] = field(default_factory=dict)


class Packager:
    """Builds a custom WAR according to a configuration."""

    def __init__(
        self,
        config: PackagerConfig,
        settings: Settings | None = None,
        vcs: VersionControlClient | None = None,
        toolchain: BuildToolchain | None = None,
        store: LocalArtifactStore | None = None,
        today: date | None = None,
    ) -> None:
        if settings is None:
            settings = get_settings()

        self.config = config
        self.settings = settings
        self.toolchain: BuildToolchain = toolchain or MavenToolchain(settings)
        self.store = store or LocalArtifactStore(settings.artifact_store_root)
        self.cache = BuildCache(self.store, enabled=not settings.no_cache)
        self.resolver = SourceResolver(
            vcs or GitClient(settings.git_command, timeout=settings.command_timeout)
        )
        self.overrides = VersionOverrideMap()
        self.today = today
        self.stage: PipelineStage | None = None

        self.tmp_dir = config.build_settings.tmp_path
        self.build_root = self.tmp_dir / BUILD_DIR_NAME

    @contextmanager
    def _stage(self, stage: PipelineStage) -> Iterator[None]:
        """Run a stage; annotate errors with it and record completion."""
        logger.info("Stage: %s", stage.value)
        try:
            yield
        except PackagerError as e:
            e.stage = e.stage or stage.value
            raise
        except OSError as e:
            error = PackagerError(f"I/O error: {e}")
            error.stage = stage.value
            raise error from e
        except zipfile.BadZipFile as e:
            error = PackagerError(f"Invalid archive: {e}", code="bad_archive")
            error.stage = stage.value
            raise error from e
        self.stage = stage

    def verify_config(self) -> None:
        """Spot-check the configuration before any side effects.

        This does not guarantee the configuration is fully correct.

        Raises:
            ConfigError: If configuration-as-code is declared without its plugin.
            UnsupportedSourceError: If a resource or CasC source is a
                released version, which cannot be checked out.
        """
        if self.config.casc and self.config.find_plugin(CASC_PLUGIN_ARTIFACT_ID) is None:
            raise ConfigError(
                "CasC section is declared, but CasC plugin is not declared in the plugins list",
                code="casc_plugin_missing",
            )
        for item in [*self.config.resources, *(self.config.casc or [])]:
            if isinstance(item.source, ReleaseSource):
                raise UnsupportedSourceError(
                    f"Source of {item.id} must be a git or filesystem source",
                    component=item.id,
                )

    def _prepare_workspace(self) -> None:
        tmp_dir = self.tmp_dir.resolve()
        if tmp_dir in (Path.cwd().resolve(), Path.home().resolve(), Path(tmp_dir.anchor)):
            raise ConfigError(f"Refusing to use {tmp_dir} as temporary directory")
        if tmp_dir.exists():
            logger.info("Cleaning up the temporary directory %s", tmp_dir)
            shutil.rmtree(tmp_dir)
        self.build_root.mkdir(parents=True)

    def _seed_config(self) -> BundleSchema:
        settings = self.config.build_settings
        if settings.bom:
            logger.info("Overriding settings by BOM file: %s", settings.bom)
            override_by_bom(self.config, load_bom(Path(settings.bom)))
        if settings.pom:
            logger.info("Overriding settings by POM file: %s", settings.pom)
            override_by_pom(self.config, Path(settings.pom))
        if self.config.bundle is None:
            raise ConfigError("Bundle information must be defined by configuration file or BOM")
        return self.config.bundle

    def build_if_needed(
        self,
        dep: DependencySchema,
        packaging: PackagingKind,
    ) -> VersionOverride | None:
        """Build a component unless it is a release or already installed.

        Args:
            dep: Component to build.
            packaging: Packaging kind of the component.

        Returns:
            The recorded override, or None for released components.

        Raises:
            PackagerError: If resolution or the build fails.
        """
        if not dep.needs_build:
            logger.info("Component %s: no build required", dep)
            return None

        try:
            return self._build(dep, packaging)
        except PackagerError as e:
            e.component = e.component or dep.artifact_id
            raise

    def _build(self, dep: DependencySchema, packaging: PackagingKind) -> VersionOverride:
        work_dir = self.build_root / dep.artifact_id
        work_dir.mkdir(parents=True, exist_ok=True)

        commit: str | None = None
        if isinstance(dep.source, GitSource):
            commit = self.resolver.resolve_commit(dep.source)
        version = assign_version(dep.source, commit, today=self.today)

        with self.store.publish_lock(dep.artifact_id, version):
            if isinstance(dep.source, GitSource) and self.cache.exists(dep, version, packaging):
                logger.info("Skipping the build of %s", dep)
                return self.overrides.record(
                    dep.artifact_id, version, ComponentStatus.CACHED, commit
                )

            resolved = self.resolver.resolve(
                dep.artifact_id, dep.source, work_dir, isolate=True, commit=commit
            )
            build_component(self.toolchain, resolved.path, dep, version, packaging)

        return self.overrides.record(
            dep.artifact_id, version, ComponentStatus.BUILT, resolved.commit or commit
        )

    def build_all(self, deps: list[DependencySchema], packaging: PackagingKind) -> None:
        """Build independent components, concurrently if configured.

        All builders have joined when this returns; the first failure is
        re-raised and pending builds are cancelled.
        """
        workers = min(self.settings.max_concurrent_builds, len(deps))
        if workers <= 1:
            for dep in deps:
                self.build_if_needed(dep, packaging)
            return

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="build") as pool:
            futures: list[Future[VersionOverride | None]] = [
                pool.submit(self.build_if_needed, dep, packaging) for dep in deps
            ]
            try:
                for future in futures:
                    future.result()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

    def collect_resources(self) -> dict[str, Path]:
        """Check out every extra resource.

        Returns:
            Resource ID -> directory holding the resource tree.
        """
        resources: dict[str, Path] = {}
        for resource in self.config.resources:
            resolved = self.resolver.resolve(
                resource.id,
                resource.source,
                self.build_root / resource.id,
                isolate=False,
            )
            resources[resource.id] = resolved.path
        return resources

    def build(self) -> PackagerOutcome:
        """Run the whole pipeline.

        Returns:
            PackagerOutcome with the final WAR and BOM.

        Raises:
            PackagerError: If any stage fails (annotated with the stage).
        """
        with self._stage(PipelineStage.CONFIG_VERIFIED):
            self.verify_config()
            self._prepare_workspace()
            bundle = self._seed_config()
        config = self.config
        artifact_id = bundle.artifact_id

        with self._stage(PipelineStage.BASE_ARTIFACT_BUILT):
            self.build_if_needed(config.war, PackagingKind.WAR)

        with self._stage(PipelineStage.PLUGINS_BUILT):
            self.build_all(config.plugins, PackagingKind.HPI)

        with self._stage(PipelineStage.LIB_PATCHES_BUILT):
            self.build_all(config.lib_patches, PackagingKind.JAR)

        with self._stage(PipelineStage.RESOURCES_COLLECTED):
            resources = self.collect_resources()

        versions = self.overrides.versions()
        generator = DescriptorGenerator(config)
        prebuild_dir = self.tmp_dir / PREBUILD_DIR_NAME

        with self._stage(PipelineStage.BASE_DESCRIPTOR_GENERATED):
            write_descriptor(generator.generate_prebuild(versions), prebuild_dir)

        src_war = prebuild_dir / "target" / f"{artifact_id}{PREBUILD_SUFFIX}.war"
        with self._stage(PipelineStage.BASE_ARCHIVE_ASSEMBLED):
            self.toolchain.run(prebuild_dir, "clean", "package")
            if not src_war.is_file():
                raise BuildExecutionError(
                    f"Build finished but {src_war} was not produced",
                    code="missing_output",
                )

        exploded_dir = prebuild_dir / EXPLODED_DIR_NAME
        with self._stage(PipelineStage.ARCHIVE_PATCHED):
            explode_archive(src_war, exploded_dir)
            (
                WarPatcher(config, exploded_dir, self.store)
                .remove_meta_inf()
                .add_system_properties(config.system_properties)
                .replace_libs(versions)
                .exclude_libs()
                .add_resources(resources)
            )

        output_dir = config.build_settings.output_path
        with self._stage(PipelineStage.FINAL_DESCRIPTOR_GENERATED):
            manifest = read_manifest(src_war)
            write_descriptor(generator.generate_final(exploded_dir, manifest), output_dir)

        war_path = output_dir / "target" / f"{artifact_id}.war"
        with self._stage(PipelineStage.FINAL_ARCHIVE_ASSEMBLED):
            goal = "install" if config.build_settings.install_artifacts else "package"
            self.toolchain.run(output_dir, "clean", goal)
            if not war_path.is_file():
                raise BuildExecutionError(
                    f"Build finished but {war_path} was not produced",
                    code="missing_output",
                )

        with self._stage(PipelineStage.BOM_EMITTED):
            bom = emit_bom(exploded_dir / PLUGINS_DIR, self.overrides, config)
            bom_path = write_bom(bom, output_dir / f"{artifact_id}.bom.yml")

        logger.info("Built %s", war_path)
        return PackagerOutcome(
            war_path=war_path,
            bom_path=bom_path,
            bom=bom,
            versions=versions,
        )


def run_packager(
    config: PackagerConfig,
    settings: Settings | None = None,
    vcs: VersionControlClient | None = None,
    toolchain: BuildToolchain | None = None,
) -> OperationResult:
    """Run the packager and report the outcome as a result value.

    Args:
        config: Packager configuration.
        settings: Application settings.
        vcs: Optional version-control client (defaults to git).
        toolchain: Optional build toolchain (defaults to Maven).

    Returns:
        OperationResult; on failure it names the failing stage and
        component in ``details``.
    """
    packager = Packager(config, settings=settings, vcs=vcs, toolchain=toolchain)
    try:
        outcome = packager.build()
    except PackagerError as e:
        where = f" at stage {e.stage}" if e.stage else ""
        what = f" ({e.component})" if e.component else ""
        logger.error("Packager failed%s%s: %s", where, what, e)
        return OperationResult(
            success=False,
            message=str(e),
            code=e.code,
            log_path=getattr(e, "log_path", None),
            details=e.to_dict(),
        )

    return OperationResult(
        success=True,
        message=f"Built {outcome.war_path}",
        details={
            "war": str(outcome.war_path),
            "bom": str(outcome.bom_path),
            "versions": outcome.versions,
        },
    )


__all__ = [
    "BUILD_DIR_NAME",
    "EXPLODED_DIR_NAME",
    "PREBUILD_DIR_NAME",
    "Packager",
    "PackagerOutcome",
    "run_packager",
]
