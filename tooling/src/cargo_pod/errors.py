"""Error taxonomy for the build-and-package pipeline.

Each phase has its own base class carrying the process exit code the CLI uses,
so scripts can tell a bad target list from a compiler failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cargo_pod.build.cargo import BuildResult


class PodError(Exception):
    """Base class for all cargo-pod failures."""

    exit_code = 1


class ConfigError(PodError):
    """Bad configuration file, CLI flags or crate metadata."""

    exit_code = 2


# --- Resolution ---


class ResolutionError(PodError):
    exit_code = 3


class UnknownTargetError(ResolutionError):
    def __init__(self, token: str) -> None:
        super().__init__(f"Unknown target or profile: {token!r}")
        self.token = token


class EmptyTargetSetError(ResolutionError):
    def __init__(self, msg: str = "No build targets resolved") -> None:
        super().__init__(msg)


class MissingToolchainError(ResolutionError):
    def __init__(self, triples: Sequence[str]) -> None:
        joined = ", ".join(triples)
        super().__init__(
            f"Rust targets not installed: {joined} (rustup target add {' '.join(triples)})"
        )
        self.triples = list(triples)


# --- Build ---


class BuildError(PodError):
    exit_code = 4


class BuildFailedError(BuildError):
    """One or more per-target builds failed. Carries every failed result."""

    def __init__(self, failed: Sequence[BuildResult]) -> None:
        names = ", ".join(str(r.descriptor) for r in failed)
        super().__init__(f"Build failed for {len(failed)} target(s): {names}")
        self.failed = list(failed)


# --- Assembly ---


class AssemblyError(PodError):
    exit_code = 5


class ArchitectureMergeError(AssemblyError):
    pass


class MissingPlatformError(AssemblyError):
    pass


# --- Interface ---


class InterfaceError(PodError):
    exit_code = 6


class MissingInterfaceError(InterfaceError):
    pass


# --- Manifest ---


class ManifestError(PodError):
    exit_code = 7


class MissingPlaceholderValueError(ManifestError):
    def __init__(self, keys: Sequence[str]) -> None:
        super().__init__(f"Manifest template references unknown keys: {', '.join(keys)}")
        self.keys = list(keys)


# --- Packaging ---


class PackagingError(PodError):
    exit_code = 8
