"""Tests for cargo_pod.project (cargo metadata)."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cargo_pod.errors import ConfigError
from cargo_pod.project import load_project, project_from_metadata


def _metadata(tmp_path: Path, kinds=("staticlib",), pod=None) -> dict:
    package = {
        "id": "my-crate 1.2.3",
        "name": "my-crate",
        "version": "1.2.3",
        "manifest_path": str(tmp_path / "my-crate" / "Cargo.toml"),
        "description": "Does things",
        "license": "MIT",
        "repository": "https://github.com/acme/my-crate",
        "authors": ["Jane Doe <jane@example.com>"],
        "targets": [{"name": "my-crate", "kind": list(kinds)}],
        "metadata": {"pod": pod} if pod is not None else None,
    }
    return {
        "packages": [package],
        "workspace_members": ["my-crate 1.2.3"],
        "target_directory": str(tmp_path / "target"),
    }


class TestProjectFromMetadata:
    def test_staticlib_crate(self, tmp_path: Path) -> None:
        p = project_from_metadata(_metadata(tmp_path, kinds=("staticlib", "rlib")))
        assert p.name == "my-crate"
        assert p.lib_name == "my_crate"
        assert p.pod_name == "MyCrate"
        assert p.package_dir == tmp_path / "my-crate"
        assert p.target_dir == tmp_path / "target"
        assert p.authors == ("Jane Doe <jane@example.com>",)

    def test_pod_metadata(self, tmp_path: Path) -> None:
        p = project_from_metadata(_metadata(tmp_path, pod={"name": "Crate", "features": ["ffi"]}))
        assert p.pod_name == "Crate"
        assert p.features == ["ffi"]

    def test_no_staticlib(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc:
            project_from_metadata(_metadata(tmp_path, kinds=("rlib",)))
        assert "staticlib" in str(exc.value)

    def test_non_member_ignored(self, tmp_path: Path) -> None:
        data = _metadata(tmp_path)
        data["workspace_members"] = []
        with pytest.raises(ConfigError):
            project_from_metadata(data)


class TestLoadProject:
    def test_runs_cargo_metadata(self, tmp_path: Path) -> None:
        runner = MagicMock(
            return_value=MagicMock(returncode=0, stdout=json.dumps(_metadata(tmp_path)), stderr="")
        )
        p = load_project(tmp_path / "Cargo.toml", runner=runner)
        assert p.name == "my-crate"
        (cmd,) = runner.call_args[0]
        assert cmd[:5] == ["cargo", "metadata", "--format-version", "1", "--no-deps"]
        assert cmd[-2:] == ["--manifest-path", str(tmp_path / "Cargo.toml")]

    def test_cargo_error(self) -> None:
        runner = MagicMock(return_value=MagicMock(returncode=101, stdout="", stderr="no Cargo.toml"))
        with pytest.raises(ConfigError) as exc:
            load_project(runner=runner)
        assert "no Cargo.toml" in str(exc.value)

    def test_cargo_missing(self) -> None:
        with pytest.raises(ConfigError):
            load_project(runner=MagicMock(side_effect=FileNotFoundError("cargo")))

    def test_bad_json(self) -> None:
        runner = MagicMock(return_value=MagicMock(returncode=0, stdout="not json", stderr=""))
        with pytest.raises(ConfigError):
            load_project(runner=runner)
