"""Pipeline options from cargo-pod.yaml, crate metadata and CLI flags.

cargo-pod.yaml (optional, next to Cargo.toml):
- name: pod name (default: PascalCase crate name)
- targets: list of profiles (device, simulator, catalyst, desktop, ios, macos, all),
  Rust triples or os:arch[:abi]
- profile: release | debug
- destination: output directory (relative to the crate directory)
- jobs, fail_fast, missing_toolchain (fail | skip)
- header_dirs, header_patterns, require_headers
- template: podspec template path
- archive, archive_name, source_url, verify_remote, verify_timeout
- deployment_targets: {ios: "10.0", macos: "10.10"}
- cargo_args, nightly

Precedence: CLI flags > cargo-pod.yaml > [package.metadata.pod] > defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from cargo_pod.build.cargo import BUILD_PROFILES, check_cargo_args
from cargo_pod.errors import ConfigError
from cargo_pod.package.archive import destination_conflict
from cargo_pod.project import ProjectDescriptor
from cargo_pod.targets import DEFAULT_TARGETS, MISSING_TOOLCHAIN_POLICIES

log = logging.getLogger(__name__)

CONFIG_FILENAME = "cargo-pod.yaml"

# scratch space under the cargo target directory
SCRATCH_DIRNAME = "cargo-pod"

# [package.metadata.pod] keys read by ProjectDescriptor, not pipeline options
PROJECT_ONLY_KEYS = ("features",)

DEFAULT_CONFIG: dict[str, Any] = {
    "name": None,
    "targets": list(DEFAULT_TARGETS),
    "profile": "release",
    "destination": "dist",
    "jobs": None,
    "fail_fast": False,
    "missing_toolchain": "fail",
    "header_dirs": ["headers", "include"],
    "header_patterns": ["*.h", "*.hpp"],
    "require_headers": True,
    "template": None,
    "archive": True,
    "archive_name": "cargo-pod.tgz",
    "source_url": None,
    "verify_remote": True,
    "verify_timeout": 10.0,
    "deployment_targets": {"ios": "10.0", "macos": "10.10"},
    "cargo_args": [],
    "nightly": False,
    "scratch_dir": None,
}


@dataclass
class PipelineOptions:
    name: str | None = None
    targets: list[str] = field(default_factory=lambda: list(DEFAULT_TARGETS))
    profile: str = "release"
    destination: Path = Path("dist")
    jobs: int | None = None
    fail_fast: bool = False
    missing_toolchain: str = "fail"
    header_dirs: list[Path] = field(default_factory=list)
    header_patterns: list[str] = field(default_factory=lambda: ["*.h", "*.hpp"])
    require_headers: bool = True
    template: Path | None = None
    archive: bool = True
    archive_name: str = "cargo-pod.tgz"
    source_url: str | None = None
    verify_remote: bool = True
    verify_timeout: float = 10.0
    deployment_targets: dict[str, str] = field(
        default_factory=lambda: {"ios": "10.0", "macos": "10.10"}
    )
    cargo_args: list[str] = field(default_factory=list)
    nightly: bool = False
    scratch_dir: Path | None = None


def default_scratch_dir(project: ProjectDescriptor) -> Path:
    return project.target_dir / SCRATCH_DIRNAME


def load_config_file(path: Path) -> dict[str, Any]:
    """Parse cargo-pod.yaml. Missing file -> {}."""
    if not path.is_file():
        return {}
    try:
        with path.open() as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        msg = f"Could not parse {path}: {e}"
        raise ConfigError(msg) from e
    if not isinstance(data, dict):
        msg = f"{path}: expected a mapping at top level"
        raise ConfigError(msg)
    return data


def _as_list(key: str, value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value]
    msg = f"{key} must be a list of strings"
    raise ConfigError(msg)


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    msg = f"{key} must be true or false, got {value!r}"
    raise ConfigError(msg)


def _resolve_path(base: Path, value: str | Path) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else (base / p).resolve()


def resolve_options(
    project: ProjectDescriptor,
    file_config: dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> PipelineOptions:
    """Merge defaults, [package.metadata.pod], cargo-pod.yaml and CLI overrides."""
    merged = dict(DEFAULT_CONFIG)
    merged["deployment_targets"] = dict(DEFAULT_CONFIG["deployment_targets"])
    metadata_config = {k: v for k, v in project.pod.items() if k not in PROJECT_ONLY_KEYS}
    cli_config = {k: v for k, v in (overrides or {}).items() if v is not None}
    for source in (metadata_config, file_config or {}, cli_config):
        for key, value in source.items():
            if key not in DEFAULT_CONFIG:
                log.warning("Ignoring unknown config key: %s", key)
                continue
            if key == "deployment_targets":
                if not isinstance(value, dict):
                    msg = "deployment_targets must be a mapping of os -> version"
                    raise ConfigError(msg)
                merged[key].update({str(k): str(v) for k, v in value.items()})
            else:
                merged[key] = value

    base = project.package_dir
    if merged["profile"] not in BUILD_PROFILES:
        msg = f"profile must be one of {BUILD_PROFILES}, got {merged['profile']!r}"
        raise ConfigError(msg)
    if merged["missing_toolchain"] not in MISSING_TOOLCHAIN_POLICIES:
        msg = (
            f"missing_toolchain must be one of {MISSING_TOOLCHAIN_POLICIES}, "
            f"got {merged['missing_toolchain']!r}"
        )
        raise ConfigError(msg)
    jobs = merged["jobs"]
    if jobs is not None and (not isinstance(jobs, int) or isinstance(jobs, bool) or jobs < 1):
        msg = f"jobs must be a positive integer, got {jobs!r}"
        raise ConfigError(msg)
    try:
        verify_timeout = float(merged["verify_timeout"])
    except (TypeError, ValueError) as e:
        msg = f"verify_timeout must be a number, got {merged['verify_timeout']!r}"
        raise ConfigError(msg) from e

    cargo_args = _as_list("cargo_args", merged["cargo_args"])
    if project.features and "--features" not in cargo_args:
        cargo_args += ["--features", ",".join(project.features)]
    check_cargo_args(cargo_args, merged["profile"])

    destination = _resolve_path(base, merged["destination"])
    scratch = (
        _resolve_path(base, merged["scratch_dir"])
        if merged["scratch_dir"]
        else default_scratch_dir(project)
    )
    conflict = destination_conflict(
        destination, (project.package_dir, project.target_dir), scratch=scratch
    )
    if conflict:
        msg = f"Invalid destination: {conflict}"
        raise ConfigError(msg)

    return PipelineOptions(
        name=str(merged["name"]) if merged["name"] else None,
        targets=_as_list("targets", merged["targets"]),
        profile=merged["profile"],
        destination=destination,
        jobs=jobs,
        fail_fast=_as_bool("fail_fast", merged["fail_fast"]),
        missing_toolchain=merged["missing_toolchain"],
        header_dirs=[_resolve_path(base, d) for d in _as_list("header_dirs", merged["header_dirs"])],
        header_patterns=_as_list("header_patterns", merged["header_patterns"]),
        require_headers=_as_bool("require_headers", merged["require_headers"]),
        template=_resolve_path(base, merged["template"]) if merged["template"] else None,
        archive=_as_bool("archive", merged["archive"]),
        archive_name=str(merged["archive_name"]),
        source_url=merged["source_url"] or None,
        verify_remote=_as_bool("verify_remote", merged["verify_remote"]),
        verify_timeout=verify_timeout,
        deployment_targets=merged["deployment_targets"],
        cargo_args=cargo_args,
        nightly=_as_bool("nightly", merged["nightly"]),
        scratch_dir=scratch,
    )


def load_options(
    project: ProjectDescriptor,
    config_path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> PipelineOptions:
    path = config_path or (project.package_dir / CONFIG_FILENAME)
    if config_path is not None and not config_path.is_file():
        msg = f"Config file not found: {config_path}"
        raise ConfigError(msg)
    return resolve_options(project, load_config_file(path), overrides)


def render_default_config(targets: list[str] | None = None) -> str:
    """YAML for `cargo-pod init`."""
    data = {k: v for k, v in DEFAULT_CONFIG.items() if v is not None}
    if targets:
        data["targets"] = targets
    return yaml.safe_dump(data, sort_keys=False)
