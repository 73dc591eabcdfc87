"""Tests for batch_upgrade.manifest."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from batch_upgrade.errors import ManifestError
from batch_upgrade.manifest import (
    dump_manifest,
    find_package,
    load_manifest,
    manifest_exists,
    save_manifest,
    set_version,
)
from batch_upgrade.models import DependencySection


@pytest.fixture
def manifest(tmp_path: Path) -> Path:
    path = tmp_path / "package.json"
    path.write_text(
        json.dumps(
            {
                "name": "app",
                "version": "1.0.0",
                "dependencies": {"react": "^17.0.0", "shared": "^1.0.0"},
                "devDependencies": {"jest": "^28.0.0", "shared": "^0.9.0"},
                "peerDependencies": {"react-dom": "^17.0.0"},
            },
            indent=2,
        )
        + "\n"
    )
    return path


class TestManifestExists:
    def test_exists(self, manifest: Path) -> None:
        assert manifest_exists(manifest)

    def test_missing(self, tmp_path: Path) -> None:
        assert not manifest_exists(tmp_path / "package.json")

    def test_directory_is_not_a_manifest(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").mkdir()
        assert not manifest_exists(tmp_path / "package.json")


class TestFindPackage:
    def test_dependencies(self, manifest: Path) -> None:
        assert find_package(manifest, "react") == (
            DependencySection.DEPENDENCIES,
            "^17.0.0",
        )

    def test_dev_dependencies(self, manifest: Path) -> None:
        assert find_package(manifest, "jest") == (
            DependencySection.DEV_DEPENDENCIES,
            "^28.0.0",
        )

    def test_peer_dependencies(self, manifest: Path) -> None:
        assert find_package(manifest, "react-dom") == (
            DependencySection.PEER_DEPENDENCIES,
            "^17.0.0",
        )

    def test_dependencies_win_over_dev(self, manifest: Path) -> None:
        assert find_package(manifest, "shared") == (
            DependencySection.DEPENDENCIES,
            "^1.0.0",
        )

    def test_absent_package(self, manifest: Path) -> None:
        assert find_package(manifest, "lodash") is None

    def test_missing_manifest(self, tmp_path: Path) -> None:
        assert find_package(tmp_path / "package.json", "react") is None

    def test_unparsable_manifest(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text("{ not json")
        assert find_package(path, "react") is None

    def test_non_object_manifest(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text('["react"]\n')
        assert find_package(path, "react") is None


class TestSetVersion:
    def test_updates_existing_entry(self, manifest: Path) -> None:
        assert set_version(manifest, DependencySection.DEPENDENCIES, "react", "^18.2.0")

        data = json.loads(manifest.read_text())
        assert data["dependencies"]["react"] == "^18.2.0"
        # Other sections untouched
        assert data["devDependencies"]["shared"] == "^0.9.0"

    def test_absent_section_is_noop(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        original = json.dumps({"devDependencies": {"jest": "^28.0.0"}}, indent=2) + "\n"
        path.write_text(original)

        # jest exists, but not in the section we asked for
        assert not set_version(path, DependencySection.DEPENDENCIES, "jest", "^29.0.0")
        assert path.read_text() == original

    def test_never_adds_a_package(self, manifest: Path) -> None:
        before = manifest.read_text()

        assert not set_version(manifest, DependencySection.DEPENDENCIES, "lodash", "^4.0.0")
        assert manifest.read_text() == before

    def test_preserves_key_order_and_trailing_newline(self, manifest: Path) -> None:
        set_version(manifest, DependencySection.DEV_DEPENDENCIES, "jest", "^29.0.0")

        text = manifest.read_text()
        assert text.endswith("}\n")
        assert list(json.loads(text)) == [
            "name",
            "version",
            "dependencies",
            "devDependencies",
            "peerDependencies",
        ]
        assert list(json.loads(text)["dependencies"]) == ["react", "shared"]

    def test_same_version_round_trips_byte_for_byte(self, manifest: Path) -> None:
        before = manifest.read_text()

        assert set_version(manifest, DependencySection.DEPENDENCIES, "react", "^17.0.0")
        assert manifest.read_text() == before

    def test_unparsable_manifest_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "package.json"
        path.write_text("{ not json")

        with pytest.raises(ManifestError):
            set_version(path, DependencySection.DEPENDENCIES, "react", "^18.0.0")
        assert path.read_text() == "{ not json"


class TestSerialization:
    def test_non_ascii_kept(self) -> None:
        assert dump_manifest({"author": "Zoë"}) == '{\n  "author": "Zoë"\n}\n'

    def test_load_save_round_trip(self, manifest: Path) -> None:
        before = manifest.read_text()
        save_manifest(manifest, load_manifest(manifest))
        assert manifest.read_text() == before

    def test_save_leaves_no_temp_files(self, manifest: Path) -> None:
        save_manifest(manifest, {"name": "app"})
        assert [p.name for p in manifest.parent.iterdir()] == ["package.json"]
