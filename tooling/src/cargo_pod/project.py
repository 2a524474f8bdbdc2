"""Read crate metadata via `cargo metadata`: name, version, staticlib target, pod config."""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from cargo_pod.errors import ConfigError
from cargo_pod.helpers import lib_stem, to_pascal_case

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectDescriptor:
    name: str
    version: str
    lib_name: str
    package_dir: Path
    target_dir: Path
    description: str | None = None
    license: str | None = None
    repository: str | None = None
    authors: tuple[str, ...] = ()
    pod: dict[str, Any] = field(default_factory=dict)

    @property
    def pod_name(self) -> str:
        """[package.metadata.pod].name, else the PascalCase crate name."""
        return self.pod.get("name") or to_pascal_case(self.name)

    @property
    def features(self) -> list[str]:
        return [str(f) for f in self.pod.get("features") or []]

    def with_pod_name(self, name: str) -> ProjectDescriptor:
        return replace(self, pod={**self.pod, "name": name})


def _staticlib_targets(package: dict[str, Any]) -> list[dict[str, Any]]:
    return [t for t in package.get("targets") or [] if "staticlib" in (t.get("kind") or [])]


def project_from_metadata(metadata: dict[str, Any]) -> ProjectDescriptor:
    """First workspace member with a staticlib target. Raises ConfigError if none."""
    members = set(metadata.get("workspace_members") or [])
    packages = [p for p in metadata.get("packages") or [] if p.get("id") in members]
    log.debug("Workspace packages: %s", [p.get("name") for p in packages])

    for package in packages:
        libs = _staticlib_targets(package)
        if not libs:
            continue
        if len(libs) > 1:
            log.warning(
                "%s has %d staticlib targets; using %s",
                package["name"],
                len(libs),
                libs[0]["name"],
            )
        pod = (package.get("metadata") or {}).get("pod") or {}
        if not isinstance(pod, dict):
            log.warning("Ignoring non-table [package.metadata.pod] in %s", package["name"])
            pod = {}
        return ProjectDescriptor(
            name=package["name"],
            version=str(package["version"]),
            lib_name=lib_stem(libs[0]["name"]),
            package_dir=Path(package["manifest_path"]).parent,
            target_dir=Path(metadata["target_directory"]),
            description=package.get("description"),
            license=package.get("license"),
            repository=package.get("repository"),
            authors=tuple(package.get("authors") or ()),
            pod=dict(pod),
        )

    msg = 'No lib crates found! Add crate-type = ["staticlib"] to [lib] in Cargo.toml'
    raise ConfigError(msg)


def load_project(
    manifest_path: Path | None = None,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> ProjectDescriptor:
    """Run `cargo metadata --no-deps` and pick the staticlib crate."""
    cmd = ["cargo", "metadata", "--format-version", "1", "--no-deps"]
    if manifest_path is not None:
        cmd += ["--manifest-path", str(manifest_path)]
    try:
        r = runner(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        msg = f"cargo not in PATH: {e}"
        raise ConfigError(msg) from e
    if r.returncode != 0:
        msg = f"Failed to load Cargo.toml: {(r.stderr or '').strip()}"
        raise ConfigError(msg)
    try:
        metadata = json.loads(r.stdout)
    except json.JSONDecodeError as e:
        msg = f"Invalid cargo metadata output: {e}"
        raise ConfigError(msg) from e
    return project_from_metadata(metadata)
