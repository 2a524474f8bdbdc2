"""Run `cargo build` for one Apple target and report the produced static library."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from cargo_pod.errors import ConfigError
from cargo_pod.targets import TargetDescriptor

BUILD_PROFILES = ("release", "debug")


@dataclass(frozen=True)
class BuildResult:
    descriptor: TargetDescriptor
    artifact_path: Path | None
    success: bool
    diagnostics: str = ""


@dataclass
class BuildContext:
    """Diagnostics sink shared by concurrent build tasks.

    Loggers are thread-safe and each task writes its own diagnostics file, so
    no extra locking is needed.
    """

    log: logging.Logger = field(default_factory=lambda: logging.getLogger("cargo_pod.build"))
    diagnostics_dir: Path | None = None

    def record(self, descriptor: TargetDescriptor, output: str) -> Path | None:
        """Write a target's captured compiler output; returns the log path if written."""
        if self.diagnostics_dir is None:
            return None
        self.diagnostics_dir.mkdir(parents=True, exist_ok=True)
        path = self.diagnostics_dir / f"{descriptor.rust_triple}.log"
        path.write_text(output)
        return path


def check_cargo_args(cargo_args: Sequence[str], profile: str = "release") -> None:
    """Raise ConfigError for cargo args that clash with the target list or build profile."""
    if profile not in BUILD_PROFILES:
        msg = f"Unknown build profile {profile!r}; use release or debug"
        raise ConfigError(msg)
    args = list(cargo_args)
    if "--target" in args or any(a.startswith("--target=") for a in args):
        msg = "Do not pass --target in cargo args; targets come from --targets/profiles"
        raise ConfigError(msg)
    if "--profile" in args or any(a.startswith("--profile=") for a in args):
        msg = "Do not pass --profile in cargo args; use profile: release|debug"
        raise ConfigError(msg)
    if "--release" in args and profile != "release":
        msg = f"--release in cargo args conflicts with profile {profile!r}"
        raise ConfigError(msg)


def cargo_build_command(
    descriptor: TargetDescriptor,
    profile: str = "release",
    cargo_args: Sequence[str] = (),
    nightly: bool = False,
) -> list[str]:
    """cargo [+nightly] build [-Z build-std] <args> --lib [--release] --target <triple>."""
    check_cargo_args(cargo_args, profile)
    args = list(cargo_args)
    cmd = ["cargo"]
    if nightly:
        cmd.append("+nightly")
    cmd.append("build")
    if nightly:
        cmd += ["-Z", "build-std"]
    cmd += args
    if "--lib" not in args:
        cmd.append("--lib")
    if profile == "release" and "--release" not in args:
        cmd.append("--release")
    cmd += ["--target", descriptor.rust_triple]
    return cmd


def artifact_path(
    target_dir: Path, descriptor: TargetDescriptor, profile: str, lib_name: str
) -> Path:
    """target/<triple>/<release|debug>/lib<lib_name>.a"""
    return target_dir / descriptor.rust_triple / profile / f"lib{lib_name}.a"


class CargoBuilder:
    """Callable builder: one cargo invocation per TargetDescriptor."""

    def __init__(
        self,
        package_dir: Path,
        target_dir: Path,
        lib_name: str,
        context: BuildContext,
        profile: str = "release",
        cargo_args: Sequence[str] = (),
        nightly: bool = False,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.package_dir = package_dir
        self.target_dir = target_dir
        self.lib_name = lib_name
        self.context = context
        self.profile = profile
        self.cargo_args = list(cargo_args)
        self.nightly = nightly
        self.runner = runner

    def _record(self, descriptor: TargetDescriptor, output: str) -> None:
        try:
            self.context.record(descriptor, output)
        except OSError as e:
            self.context.log.warning("Could not write build log for %s: %s", descriptor, e)

    def _failed(self, descriptor: TargetDescriptor, output: str) -> BuildResult:
        self._record(descriptor, output)
        return BuildResult(descriptor, None, False, output)

    def __call__(self, descriptor: TargetDescriptor) -> BuildResult:
        cmd = cargo_build_command(descriptor, self.profile, self.cargo_args, self.nightly)
        self.context.log.info("Building for target '%s'...", descriptor.rust_triple)
        self.context.log.debug("Calling: %s", " ".join(cmd))
        try:
            r = self.runner(
                cmd,
                cwd=str(self.package_dir),
                capture_output=True,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            return self._failed(descriptor, f"cargo not found: {e}")
        except OSError as e:
            return self._failed(descriptor, f"Could not run cargo: {e}")

        output = (r.stdout or "") + (r.stderr or "")
        self._record(descriptor, output)
        if r.returncode != 0:
            return BuildResult(descriptor, None, False, output)

        path = artifact_path(self.target_dir, descriptor, self.profile, self.lib_name)
        if not path.is_file():
            output += f"\nBuild succeeded but artifact not found: {path}\n"
            return BuildResult(descriptor, None, False, output)
        return BuildResult(descriptor, path, True, output)
