"""Tests for bom/emitter.py module."""

import pytest

from warpackager.bom.emitter import emit_bom, scan_plugins
from warpackager.builds.overrides import VersionOverrideMap
from warpackager.errors import PatchError
from warpackager.packager.schema import PackagerConfig
from warpackager.types import ComponentStatus, PackagingKind


@pytest.fixture
def config() -> PackagerConfig:
    return PackagerConfig.model_validate(
        {
            "bundle": {"groupId": "io.example", "artifactId": "custom-war", "version": "1.2"},
            "war": {
                "groupId": "org.jenkins-ci.main",
                "artifactId": "jenkins-war",
                "source": {"version": "2.440.3"},
            },
            "plugins": [
                {
                    "groupId": "org.jenkins-ci.plugins",
                    "artifactId": "structs",
                    "source": {"version": "1.0"},
                },
                {
                    "groupId": "org.jenkins-ci.plugins",
                    "artifactId": "job-restrictions",
                    "source": {"git": "https://example.com/job-restrictions.git"},
                },
            ],
            "libPatches": [
                {
                    "groupId": "org.example",
                    "artifactId": "foo",
                    "source": {"dir": "/src/foo"},
                }
            ],
        }
    )


@pytest.fixture
def plugins_dir(tmp_path, make_archive):
    plugins = tmp_path / "WEB-INF" / "plugins"
    make_archive(
        plugins / "structs.hpi",
        {"Short-Name": "structs", "Plugin-Version": "1.0", "Group-Id": "org.jenkins-ci.plugins"},
    )
    make_archive(
        plugins / "job-restrictions.jpi",
        {"Short-Name": "job-restrictions", "Plugin-Version": "0.8 (private-abc-user)"},
    )
    make_archive(plugins / "credentials.hpi", {"Short-Name": "credentials", "Plugin-Version": "3.0"})
    (plugins / "README.txt").write_text("not a plugin")
    return plugins


class TestScanPlugins:
    """Tests for scan_plugins."""

    def test_reads_manifests(self, plugins_dir):
        """Every plugin archive should be listed with its version."""
        entries = scan_plugins(plugins_dir)

        assert set(entries) == {"structs", "job-restrictions", "credentials"}
        assert entries["structs"].group_id == "org.jenkins-ci.plugins"
        assert entries["job-restrictions"].version == "0.8"
        assert all(e.status is ComponentStatus.RELEASE for e in entries.values())

    def test_exploded_plugin(self, tmp_path):
        """Exploded plugin directories should be read too."""
        meta_inf = tmp_path / "workflow-api" / "META-INF"
        meta_inf.mkdir(parents=True)
        (meta_inf / "MANIFEST.MF").write_text("Short-Name: workflow-api\nPlugin-Version: 2.0\n")

        assert scan_plugins(tmp_path)["workflow-api"].version == "2.0"

    def test_missing_dir(self, tmp_path):
        """A missing plugins directory should yield nothing."""
        assert scan_plugins(tmp_path / "missing") == {}

    def test_plugin_without_version(self, tmp_path, make_archive):
        """A plugin archive without version should raise PatchError."""
        make_archive(tmp_path / "broken.hpi", {"Short-Name": "broken"})
        with pytest.raises(PatchError) as exc_info:
            scan_plugins(tmp_path)
        assert exc_info.value.code == "missing_metadata"

    def test_corrupt_plugin(self, tmp_path):
        """A corrupt plugin archive should raise PatchError."""
        (tmp_path / "corrupt.hpi").write_text("nope")
        with pytest.raises(PatchError) as exc_info:
            scan_plugins(tmp_path)
        assert exc_info.value.code == "bad_archive"


class TestEmitBom:
    """Tests for emit_bom."""

    def test_override_authority(self, config, plugins_dir):
        """The override should win over the manifest version."""
        overrides = VersionOverrideMap()
        overrides.record(
            "job-restrictions",
            "256.0-default-abc-SNAPSHOT",
            ComponentStatus.BUILT,
            "abc",
        )

        bom = emit_bom(plugins_dir, overrides, config)

        entry = bom.components["job-restrictions"]
        assert entry.version == "256.0-default-abc-SNAPSHOT"
        assert entry.status is ComponentStatus.BUILT
        assert entry.git == "https://example.com/job-restrictions.git"
        assert entry.commit == "abc"

    def test_records_checkout_id(self, config, plugins_dir):
        """Git entries should carry the branch or tag they were built from."""
        plugin = config.find_plugin("job-restrictions")
        plugin.source.tag = "job-restrictions-0.8"
        overrides = VersionOverrideMap()
        overrides.record(
            "job-restrictions",
            "256.0-job-restrictions-0.8-abc-SNAPSHOT",
            ComponentStatus.BUILT,
            "abc",
        )

        entry = emit_bom(plugins_dir, overrides, config).components["job-restrictions"]

        assert entry.tag == "job-restrictions-0.8"
        assert entry.branch is None

    def test_cached_status(self, config, plugins_dir):
        """Cache hits should be reported as cached."""
        overrides = VersionOverrideMap()
        overrides.record("job-restrictions", "256.0-default-abc-SNAPSHOT", ComponentStatus.CACHED)

        bom = emit_bom(plugins_dir, overrides, config)

        assert bom.components["job-restrictions"].status is ComponentStatus.CACHED

    def test_release_entries(self, config, plugins_dir):
        """Released and transitive plugins should be listed as releases."""
        bom = emit_bom(plugins_dir, VersionOverrideMap(), config)

        assert bom.components["jenkins-war"].version == "2.440.3"
        assert bom.components["jenkins-war"].kind is PackagingKind.WAR
        assert bom.components["credentials"].status is ComponentStatus.RELEASE

    def test_library_patches(self, config, plugins_dir):
        """Built library patches should be listed as jars."""
        overrides = VersionOverrideMap()
        overrides.record("foo", "256.0-2024-05-01-SNAPSHOT", ComponentStatus.BUILT)

        bom = emit_bom(plugins_dir, overrides, config)

        assert bom.components["foo"].kind is PackagingKind.JAR
        assert bom.components["foo"].group_id == "org.example"

    def test_override_not_in_archive(self, config, tmp_path):
        """Overrides for plugins missing from the archive are still reported."""
        overrides = VersionOverrideMap()
        overrides.record("job-restrictions", "256.0-default-abc-SNAPSHOT", ComponentStatus.BUILT)

        bom = emit_bom(tmp_path / "empty", overrides, config)

        assert bom.components["job-restrictions"].kind is PackagingKind.HPI

    def test_metadata(self, config, plugins_dir):
        """BOM metadata should carry the bundle identity."""
        bom = emit_bom(plugins_dir, VersionOverrideMap(), config)

        assert bom.metadata.artifact_id == "custom-war"
        assert bom.metadata.version == "1.2"
        assert bom.metadata.generated_at is not None

    def test_without_config(self, plugins_dir):
        """Without config only scanned plugins and overrides are listed."""
        overrides = VersionOverrideMap()
        overrides.record("lib", "1", ComponentStatus.BUILT)

        bom = emit_bom(plugins_dir, overrides)

        assert set(bom.components) == {"structs", "job-restrictions", "credentials", "lib"}
