"""Tests for cargo_pod.build (cargo command, builder, orchestrator)."""

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from cargo_pod.build import (
    BuildContext,
    BuildResult,
    CargoBuilder,
    artifact_path,
    cargo_build_command,
    check_cargo_args,
    iter_builds,
    run_builds,
)
from cargo_pod.errors import ConfigError
from cargo_pod.targets import IOS_DEVICE_ARM64, IOS_SIM_ARM64, MACOS_ARM64, MACOS_X86_64


class TestCargoBuildCommand:
    def test_release(self) -> None:
        cmd = cargo_build_command(IOS_SIM_ARM64)
        assert cmd == [
            "cargo",
            "build",
            "--lib",
            "--release",
            "--target",
            "aarch64-apple-ios-sim",
        ]

    def test_debug_has_no_release_flag(self) -> None:
        cmd = cargo_build_command(MACOS_ARM64, profile="debug")
        assert "--release" not in cmd
        assert cmd[-2:] == ["--target", "aarch64-apple-darwin"]

    def test_nightly_build_std(self) -> None:
        cmd = cargo_build_command(MACOS_ARM64, nightly=True)
        assert cmd[:5] == ["cargo", "+nightly", "build", "-Z", "build-std"]

    def test_extra_args_passed_through(self) -> None:
        cmd = cargo_build_command(MACOS_ARM64, cargo_args=["--features", "ffi", "--locked"])
        assert cmd[2:5] == ["--features", "ffi", "--locked"]

    def test_rejects_target_arg(self) -> None:
        with pytest.raises(ConfigError):
            cargo_build_command(MACOS_ARM64, cargo_args=["--target=x86_64-apple-darwin"])

    def test_rejects_unknown_profile(self) -> None:
        with pytest.raises(ConfigError):
            cargo_build_command(MACOS_ARM64, profile="bench")


class TestCheckCargoArgs:
    @pytest.mark.parametrize(
        "args",
        [["--locked"], ["--features", "ffi"], ["--release"], ["--lib", "--offline"]],
    )
    def test_accepts(self, args: list[str]) -> None:
        check_cargo_args(args, "release")

    @pytest.mark.parametrize(
        ("args", "profile"),
        [
            (["--target", "aarch64-apple-ios"], "release"),
            (["--target=aarch64-apple-ios"], "release"),
            (["--profile", "dev"], "release"),
            (["--profile=dev"], "debug"),
            (["--release"], "debug"),
        ],
    )
    def test_rejects(self, args: list[str], profile: str) -> None:
        with pytest.raises(ConfigError):
            check_cargo_args(args, profile)


class TestCargoBuilder:
    def _builder(self, tmp_path: Path, runner: MagicMock, **kwargs) -> CargoBuilder:
        return CargoBuilder(
            package_dir=tmp_path,
            target_dir=tmp_path / "target",
            lib_name="my_crate",
            context=BuildContext(diagnostics_dir=tmp_path / "logs"),
            runner=runner,
            **kwargs,
        )

    def test_success_reports_artifact(self, tmp_path: Path) -> None:
        lib = artifact_path(tmp_path / "target", MACOS_ARM64, "release", "my_crate")
        lib.parent.mkdir(parents=True)
        lib.write_bytes(b"!<arch>\n")
        runner = MagicMock(return_value=MagicMock(returncode=0, stdout="", stderr="Finished"))

        result = self._builder(tmp_path, runner)(MACOS_ARM64)

        assert result.success
        assert result.artifact_path == lib
        assert runner.call_args.kwargs["cwd"] == str(tmp_path)
        assert (tmp_path / "logs" / "aarch64-apple-darwin.log").read_text() == "Finished"

    def test_compiler_error_keeps_diagnostics(self, tmp_path: Path) -> None:
        runner = MagicMock(
            return_value=MagicMock(returncode=101, stdout="", stderr="error[E0308]: mismatched types")
        )
        result = self._builder(tmp_path, runner)(IOS_DEVICE_ARM64)
        assert not result.success
        assert result.artifact_path is None
        assert "error[E0308]: mismatched types" in result.diagnostics

    def test_missing_artifact_is_failure(self, tmp_path: Path) -> None:
        runner = MagicMock(return_value=MagicMock(returncode=0, stdout="", stderr=""))
        result = self._builder(tmp_path, runner)(MACOS_X86_64)
        assert not result.success
        assert "artifact not found" in result.diagnostics

    def test_cargo_not_installed(self, tmp_path: Path) -> None:
        runner = MagicMock(side_effect=FileNotFoundError("cargo"))
        result = self._builder(tmp_path, runner)(MACOS_X86_64)
        assert not result.success
        assert "cargo not found" in result.diagnostics

    def test_cargo_not_executable(self, tmp_path: Path) -> None:
        runner = MagicMock(side_effect=PermissionError(13, "Permission denied", "cargo"))
        result = self._builder(tmp_path, runner)(IOS_DEVICE_ARM64)
        assert not result.success
        assert "Could not run cargo" in result.diagnostics
        assert "Permission denied" in (tmp_path / "logs" / "aarch64-apple-ios.log").read_text()

    def test_undecodable_output_is_replaced(self, tmp_path: Path) -> None:
        runner = MagicMock(return_value=MagicMock(returncode=101, stdout="", stderr="bad \ufffd"))
        result = self._builder(tmp_path, runner)(MACOS_ARM64)
        assert runner.call_args.kwargs["errors"] == "replace"
        assert runner.call_args.kwargs["text"] is True
        assert "bad \ufffd" in result.diagnostics


def _ok(d) -> BuildResult:
    return BuildResult(d, Path(f"/fake/{d.rust_triple}.a"), True)


class TestOrchestrator:
    def test_runs_every_target_in_descriptor_order(self) -> None:
        ds = [MACOS_X86_64, MACOS_ARM64, IOS_DEVICE_ARM64]
        results = run_builds(ds, _ok, BuildContext(), jobs=3)
        assert [r.descriptor for r in results] == ds

    def test_builds_run_concurrently(self) -> None:
        barrier = threading.Barrier(2, timeout=5)

        def builder(d):
            barrier.wait()
            return _ok(d)

        results = run_builds([MACOS_X86_64, MACOS_ARM64], builder, BuildContext(), jobs=2)
        assert all(r.success for r in results)

    def test_failure_does_not_stop_others_by_default(self) -> None:
        def builder(d):
            if d == MACOS_ARM64:
                return BuildResult(d, None, False, "boom")
            return _ok(d)

        ds = [MACOS_X86_64, MACOS_ARM64, IOS_DEVICE_ARM64]
        results = run_builds(ds, builder, BuildContext(), jobs=1)
        assert len(results) == 3
        assert [r.success for r in results] == [True, False, True]

    def test_fail_fast_cancels_pending(self) -> None:
        started = []

        def builder(d):
            started.append(d)
            if d == MACOS_X86_64:
                return BuildResult(d, None, False, "boom")
            time.sleep(0.01)
            return _ok(d)

        ds = [MACOS_X86_64, MACOS_ARM64, IOS_DEVICE_ARM64, IOS_SIM_ARM64]
        results = list(iter_builds(ds, builder, BuildContext(), jobs=1, fail_fast=True))
        assert results[-1].descriptor == MACOS_X86_64
        assert not results[-1].success
        assert len(started) < len(ds)

    def test_builder_exception_becomes_failed_result(self) -> None:
        def builder(d):
            if d == MACOS_ARM64:
                raise RuntimeError("builder crashed")
            return _ok(d)

        ds = [MACOS_X86_64, MACOS_ARM64, IOS_DEVICE_ARM64]
        results = run_builds(ds, builder, BuildContext(), jobs=2)
        assert [r.success for r in results] == [True, False, True]
        failed = results[1]
        assert failed.descriptor == MACOS_ARM64
        assert failed.artifact_path is None
        assert "RuntimeError: builder crashed" in failed.diagnostics
        assert "Traceback" in failed.diagnostics

    def test_builder_exception_with_fail_fast(self) -> None:
        def builder(d):
            raise OSError("disk full")

        ds = [MACOS_X86_64, MACOS_ARM64]
        results = list(iter_builds(ds, builder, BuildContext(), jobs=1, fail_fast=True))
        assert len(results) == 1
        assert results[0].descriptor == MACOS_X86_64
        assert not results[0].success
        assert "disk full" in results[0].diagnostics
