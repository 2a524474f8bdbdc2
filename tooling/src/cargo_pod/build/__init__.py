"""Per-target cargo builds (one static library per Apple target), run in parallel."""

from .cargo import (
    BUILD_PROFILES,
    BuildContext,
    BuildResult,
    CargoBuilder,
    artifact_path,
    cargo_build_command,
    check_cargo_args,
)
from .orchestrator import default_jobs, iter_builds, run_builds

__all__ = [
    "BUILD_PROFILES",
    "BuildContext",
    "BuildResult",
    "CargoBuilder",
    "artifact_path",
    "cargo_build_command",
    "check_cargo_args",
    "default_jobs",
    "iter_builds",
    "run_builds",
]
