"""Tests for builds/patcher.py module."""

import pytest

from warpackager.builds.patcher import (
    INIT_SCRIPTS_DIR,
    LIB_DIR,
    SYSTEM_PROPERTIES_SCRIPT,
    WarPatcher,
    explode_archive,
    find_libraries,
    library_pattern,
)
from warpackager.errors import PatchError
from warpackager.packager.schema import PackagerConfig
from warpackager.types import PackagingKind


@pytest.fixture
def config(tmp_path) -> PackagerConfig:
    resources = tmp_path / "resources"
    resources.mkdir()
    return PackagerConfig.model_validate(
        {
            "bundle": {"groupId": "io.example", "artifactId": "custom-war"},
            "war": {
                "groupId": "org.jenkins-ci.main",
                "artifactId": "jenkins-war",
                "source": {"version": "2.440.3"},
            },
            "libPatches": [
                {
                    "groupId": "org.example",
                    "artifactId": "foo",
                    "source": {"dir": str(tmp_path / "foo-src")},
                },
                {
                    "groupId": "org.example",
                    "artifactId": "bar",
                    "source": {"dir": str(tmp_path / "bar-src")},
                },
            ],
            "libExcludes": ["foo"],
            "resources": [
                {"id": "scripts", "source": {"dir": str(resources)}, "target": "WEB-INF"},
            ],
        }
    )


@pytest.fixture
def exploded(tmp_path, make_archive):
    """An exploded WAR with signatures and a few embedded libraries."""
    war = make_archive(
        tmp_path / "prebuild.war",
        {"Main-Class": "executable.Main"},
        {
            "META-INF/JENKINS.SF": b"sig",
            "META-INF/JENKINS.RSA": b"sig",
            "META-INF/maven/pom.properties": b"keep",
            f"{LIB_DIR}/foo-1.0.jar": b"old foo",
            f"{LIB_DIR}/foo-bar-2.0.jar": b"unrelated",
            f"{LIB_DIR}/bar-3.1.jar": b"old bar",
            "WEB-INF/web.xml": b"<web-app/>",
        },
    )
    return explode_archive(war, tmp_path / "exploded-war")


def _publish(store, group_id, artifact_id, version):
    path = store.artifact_path(group_id, artifact_id, version, PackagingKind.JAR)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"new " + artifact_id.encode())
    return path


class TestLibraryPattern:
    """Tests for library name matching."""

    @pytest.mark.parametrize(
        ("name", "filename", "matches"),
        [
            ("foo", "foo-1.0.jar", True),
            ("foo", "foo-256.0-2024-05-01-SNAPSHOT.jar", True),
            ("foo", "foo-bar-2.0.jar", False),
            ("foo", "foo-1.0.war", False),
            ("foo.bar", "fooXbar-1.0.jar", False),
        ],
    )
    def test_pattern(self, name, filename, matches):
        """Only {name}-{digit...}.jar should match."""
        assert bool(library_pattern(name).match(filename)) is matches

    def test_find_libraries_missing_dir(self, tmp_path):
        """A missing library directory should yield nothing."""
        assert find_libraries(tmp_path / "missing", "foo") == []


class TestExplodeArchive:
    """Tests for explode_archive."""

    def test_explodes(self, exploded):
        """Entries should be extracted."""
        assert (exploded / "WEB-INF" / "web.xml").exists()
        assert (exploded / "META-INF" / "MANIFEST.MF").exists()

    def test_missing_archive(self, tmp_path):
        """A missing archive should raise PatchError."""
        with pytest.raises(PatchError) as exc_info:
            explode_archive(tmp_path / "missing.war", tmp_path / "out")
        assert exc_info.value.code == "archive_not_found"

    def test_bad_archive(self, tmp_path):
        """A non-zip file should raise PatchError."""
        path = tmp_path / "bad.war"
        path.write_text("nope")
        with pytest.raises(PatchError) as exc_info:
            explode_archive(path, tmp_path / "out")
        assert exc_info.value.code == "bad_archive"

    def test_zip_slip(self, tmp_path, make_archive):
        """Entries escaping the destination should be rejected."""
        path = make_archive(tmp_path / "evil.war", None, {"../evil.txt": b"x"})
        with pytest.raises(PatchError) as exc_info:
            explode_archive(path, tmp_path / "out")
        assert exc_info.value.code == "path_traversal"
        assert not (tmp_path / "evil.txt").exists()


class TestRemoveMetaInf:
    """Tests for WarPatcher.remove_meta_inf."""

    def test_removes_manifest_and_signatures(self, config, exploded, store):
        """Manifest and signature files should be removed, others kept."""
        WarPatcher(config, exploded, store).remove_meta_inf()

        meta_inf = exploded / "META-INF"
        assert not (meta_inf / "MANIFEST.MF").exists()
        assert not (meta_inf / "JENKINS.SF").exists()
        assert not (meta_inf / "JENKINS.RSA").exists()
        assert (meta_inf / "maven" / "pom.properties").exists()

    def test_missing_meta_inf(self, config, tmp_path, store):
        """A tree without META-INF should raise PatchError."""
        with pytest.raises(PatchError) as exc_info:
            WarPatcher(config, tmp_path, store).remove_meta_inf()
        assert exc_info.value.code == "missing_metadata"


class TestAddSystemProperties:
    """Tests for WarPatcher.add_system_properties."""

    def test_writes_sorted_script(self, config, exploded, store):
        """Each property should become one setProperty line."""
        WarPatcher(config, exploded, store).add_system_properties(
            {"b.prop": "it's", "a.prop": "1"}
        )

        script = exploded / INIT_SCRIPTS_DIR / SYSTEM_PROPERTIES_SCRIPT
        lines = script.read_text().splitlines()
        assert lines[1] == "System.setProperty('a.prop', '1')"
        assert lines[2] == "System.setProperty('b.prop', 'it\\'s')"

    def test_no_properties(self, config, exploded, store):
        """Nothing should be written without properties."""
        WarPatcher(config, exploded, store).add_system_properties({})
        assert not (exploded / INIT_SCRIPTS_DIR).exists()


class TestReplaceLibs:
    """Tests for WarPatcher.replace_libs."""

    def test_replaces_matching_library(self, config, exploded, store):
        """A matching embedded library should be swapped for the built jar."""
        _publish(store, "org.example", "bar", "256.0-2024-05-01-SNAPSHOT")

        WarPatcher(config, exploded, store).replace_libs({"bar": "256.0-2024-05-01-SNAPSHOT"})

        lib_dir = exploded / LIB_DIR
        assert not (lib_dir / "bar-3.1.jar").exists()
        assert (lib_dir / "bar-256.0-2024-05-01-SNAPSHOT.jar").read_bytes() == b"new bar"

    def test_skips_non_embedded(self, config, exploded, store):
        """Overrides without an embedded library should be skipped."""
        WarPatcher(config, exploded, store).replace_libs({"jenkins-war": "256.0-x-SNAPSHOT"})
        assert (exploded / LIB_DIR / "foo-1.0.jar").exists()

    def test_prefix_does_not_overmatch(self, config, exploded, store):
        """Replacing foo should leave foo-bar alone."""
        _publish(store, "org.example", "foo", "2.0")

        WarPatcher(config, exploded, store).replace_libs({"foo": "2.0"})

        assert (exploded / LIB_DIR / "foo-bar-2.0.jar").read_bytes() == b"unrelated"

    def test_missing_built_jar(self, config, exploded, store):
        """A replacement missing from the store should raise PatchError."""
        with pytest.raises(PatchError) as exc_info:
            WarPatcher(config, exploded, store).replace_libs({"bar": "9.9"})
        assert exc_info.value.code == "missing_artifact"
        assert exc_info.value.component == "bar"

    def test_undeclared_component(self, config, exploded, store):
        """An override for an undeclared component should raise PatchError."""
        with pytest.raises(PatchError) as exc_info:
            WarPatcher(config, exploded, store).replace_libs({"foo-bar": "9.9"})
        assert exc_info.value.code == "unknown_component"


class TestExcludeLibs:
    """Tests for WarPatcher.exclude_libs."""

    def test_removes_configured(self, config, exploded, store):
        """Configured exclusions should be removed."""
        WarPatcher(config, exploded, store).exclude_libs()

        lib_dir = exploded / LIB_DIR
        assert not (lib_dir / "foo-1.0.jar").exists()
        assert (lib_dir / "foo-bar-2.0.jar").exists()
        assert (lib_dir / "bar-3.1.jar").exists()

    def test_missing_is_not_fatal(self, config, exploded, store):
        """Excluding an absent library should only warn."""
        WarPatcher(config, exploded, store).exclude_libs(["absent"])

    def test_exclusion_dominates_replacement(self, config, exploded, store):
        """A replaced library that is also excluded should be gone."""
        _publish(store, "org.example", "foo", "v2")

        (
            WarPatcher(config, exploded, store)
            .replace_libs({"foo": "v2"})
            .exclude_libs(["foo"])
        )

        remaining = [p.name for p in (exploded / LIB_DIR).iterdir()]
        assert not any(name.startswith("foo-") and name != "foo-bar-2.0.jar" for name in remaining)
        assert "foo-v2.jar" not in remaining


class TestAddResources:
    """Tests for WarPatcher.add_resources."""

    def test_copies_into_target(self, config, exploded, store, tmp_path):
        """Resource trees should land under their target."""
        src = tmp_path / "resources"
        (src / "init.groovy.d").mkdir()
        (src / "init.groovy.d" / "hello.groovy").write_text("println 'hi'")

        WarPatcher(config, exploded, store).add_resources({"scripts": src})

        assert (exploded / "WEB-INF" / "init.groovy.d" / "hello.groovy").exists()

    def test_never_overwrites(self, config, exploded, store, tmp_path):
        """A resource colliding with an existing file should raise PatchError."""
        src = tmp_path / "resources"
        (src / "lib").mkdir()
        (src / "lib" / "bar-3.1.jar").write_bytes(b"resource")

        with pytest.raises(PatchError) as exc_info:
            WarPatcher(config, exploded, store).add_resources({"scripts": src})

        assert exc_info.value.code == "path_collision"
        assert (exploded / LIB_DIR / "bar-3.1.jar").read_bytes() == b"old bar"

    def test_keeps_replaced_libraries(self, config, exploded, store, tmp_path):
        """Files placed by replacement should survive resource injection."""
        _publish(store, "org.example", "bar", "4.0")
        src = tmp_path / "resources"
        (src / "lib").mkdir()
        (src / "lib" / "bar-4.0.jar").write_bytes(b"resource")
        patcher = WarPatcher(config, exploded, store).replace_libs({"bar": "4.0"})

        with pytest.raises(PatchError):
            patcher.add_resources({"scripts": src})

        assert (exploded / LIB_DIR / "bar-4.0.jar").read_bytes() == b"new bar"

    def test_unknown_resource(self, config, exploded, store, tmp_path):
        """A resource id that is not configured should raise PatchError."""
        with pytest.raises(PatchError) as exc_info:
            WarPatcher(config, exploded, store).add_resources({"other": tmp_path})
        assert exc_info.value.code == "unknown_resource"
