"""Resolve target lists and named profiles into concrete Apple build targets.

A target is (os, arch, abi). Profiles are named groups (device, simulator,
desktop, ...). Resolution preserves request order and drops duplicates.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from cargo_pod.errors import EmptyTargetSetError, MissingToolchainError, UnknownTargetError

log = logging.getLogger(__name__)

MISSING_TOOLCHAIN_POLICIES = ("fail", "skip")


@dataclass(frozen=True)
class TargetDescriptor:
    os: str
    arch: str
    abi: str = ""

    @property
    def platform(self) -> str:
        """Slice group key: os, or os-abi for simulator/catalyst builds."""
        return f"{self.os}-{self.abi}" if self.abi else self.os

    @property
    def rust_triple(self) -> str:
        return SUPPORTED_TARGETS[self]

    def __str__(self) -> str:
        return SUPPORTED_TARGETS.get(self, f"{self.os}:{self.arch}:{self.abi}")


IOS_DEVICE_ARM64 = TargetDescriptor("ios", "arm64")
IOS_SIM_ARM64 = TargetDescriptor("ios", "arm64", "simulator")
IOS_SIM_X86_64 = TargetDescriptor("ios", "x86_64", "simulator")
CATALYST_ARM64 = TargetDescriptor("ios", "arm64", "maccatalyst")
CATALYST_X86_64 = TargetDescriptor("ios", "x86_64", "maccatalyst")
MACOS_ARM64 = TargetDescriptor("macos", "arm64")
MACOS_X86_64 = TargetDescriptor("macos", "x86_64")

SUPPORTED_TARGETS: dict[TargetDescriptor, str] = {
    IOS_DEVICE_ARM64: "aarch64-apple-ios",
    IOS_SIM_ARM64: "aarch64-apple-ios-sim",
    IOS_SIM_X86_64: "x86_64-apple-ios",
    CATALYST_ARM64: "aarch64-apple-ios-macabi",
    CATALYST_X86_64: "x86_64-apple-ios-macabi",
    MACOS_ARM64: "aarch64-apple-darwin",
    MACOS_X86_64: "x86_64-apple-darwin",
}

_BY_TRIPLE = {triple: d for d, triple in SUPPORTED_TARGETS.items()}

PROFILES: dict[str, tuple[TargetDescriptor, ...]] = {
    "device": (IOS_DEVICE_ARM64,),
    "simulator": (IOS_SIM_ARM64, IOS_SIM_X86_64),
    "catalyst": (CATALYST_ARM64, CATALYST_X86_64),
    "desktop": (MACOS_ARM64, MACOS_X86_64),
}
PROFILES["macos"] = PROFILES["desktop"]
PROFILES["ios"] = PROFILES["device"] + PROFILES["simulator"]
PROFILES["all"] = PROFILES["ios"] + PROFILES["desktop"]

DEFAULT_TARGETS = ["ios", "macos"]

_ARCH_ALIASES = {"aarch64": "arm64", "arm64": "arm64", "x86_64": "x86_64", "amd64": "x86_64"}
_OS_ALIASES = {"ios": "ios", "macos": "macos", "macosx": "macos", "darwin": "macos"}
_ABI_ALIASES = {
    "": "",
    "device": "",
    "sim": "simulator",
    "simulator": "simulator",
    "macabi": "maccatalyst",
    "maccatalyst": "maccatalyst",
    "catalyst": "maccatalyst",
}


def parse_target(token: str) -> tuple[TargetDescriptor, ...]:
    """Profile name, Rust triple, or os:arch[:abi] -> descriptors. Raises UnknownTargetError."""
    key = token.strip().lower()
    if key in PROFILES:
        return PROFILES[key]
    if key in _BY_TRIPLE:
        return (_BY_TRIPLE[key],)
    parts = key.split(":")
    if len(parts) in (2, 3):
        os_name = _OS_ALIASES.get(parts[0])
        arch = _ARCH_ALIASES.get(parts[1])
        abi = _ABI_ALIASES.get(parts[2] if len(parts) == 3 else "")
        if os_name is not None and arch is not None and abi is not None:
            d = TargetDescriptor(os_name, arch, abi)
            if d in SUPPORTED_TARGETS:
                return (d,)
    raise UnknownTargetError(token)


def resolve_targets(
    requested: Iterable[str],
    installed: set[str] | None = None,
    missing_toolchain: str = "fail",
) -> list[TargetDescriptor]:
    """Expand requested tokens into an ordered, duplicate-free descriptor list.

    installed: Rust targets known to be installed, or None to skip the check.
    missing_toolchain: "fail" raises MissingToolchainError; "skip" drops the
    target with a warning.
    """
    if missing_toolchain not in MISSING_TOOLCHAIN_POLICIES:
        msg = f"missing_toolchain must be one of {MISSING_TOOLCHAIN_POLICIES}, got {missing_toolchain!r}"
        raise ValueError(msg)

    out: list[TargetDescriptor] = []
    seen: set[TargetDescriptor] = set()
    for token in requested:
        for d in parse_target(token):
            if d not in seen:
                seen.add(d)
                out.append(d)

    if installed is not None:
        missing = [d for d in out if d.rust_triple not in installed]
        if missing and missing_toolchain == "fail":
            raise MissingToolchainError([d.rust_triple for d in missing])
        for d in missing:
            log.warning("Skipping %s: Rust target not installed", d.rust_triple)
        out = [d for d in out if d not in missing]

    if not out:
        raise EmptyTargetSetError()
    return out


def platforms_of(descriptors: Sequence[TargetDescriptor]) -> list[str]:
    """Distinct platform names in first-seen order."""
    return list(dict.fromkeys(d.platform for d in descriptors))


def installed_rust_targets(
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> set[str] | None:
    """Installed Rust targets from rustup, or None when rustup cannot be queried."""
    try:
        r = runner(
            ["rustup", "target", "list", "--installed"],
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        log.debug("rustup not in PATH: %s", e)
        return None
    if r.returncode != 0:
        log.debug("rustup target list failed: %s", (r.stderr or "")[:200])
        return None
    return {line.strip() for line in (r.stdout or "").splitlines() if line.strip()}
