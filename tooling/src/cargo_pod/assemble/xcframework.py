"""Lay out platform slices as an .xcframework bundle with an Info.plist.

Slice directories follow Xcode's naming: <os>-<arch>[_<arch>...][-<variant>],
architectures sorted (e.g. ios-arm64_x86_64-simulator).
"""

from __future__ import annotations

import logging
import plistlib
import shutil
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from cargo_pod.assemble.merge import MergeStrategy, check_compatible
from cargo_pod.build.cargo import BuildResult
from cargo_pod.errors import AssemblyError, MissingPlatformError

log = logging.getLogger(__name__)

INFO_PLIST = "Info.plist"


@dataclass(frozen=True)
class PlatformSlice:
    platform: str
    os: str
    variant: str
    architectures: tuple[str, ...]
    binary_path: Path

    @property
    def identifier(self) -> str:
        ident = f"{self.os}-{'_'.join(self.architectures)}"
        return f"{ident}-{self.variant}" if self.variant else ident


@dataclass
class BundleLayout:
    root: Path
    slices: list[PlatformSlice]
    info_plist_path: Path
    module_map_path: Path | None = None
    headers: list[Path] = field(default_factory=list)

    @property
    def platforms(self) -> list[str]:
        return [s.platform for s in self.slices]


def slice_identifier(os_name: str, architectures: Sequence[str], variant: str = "") -> str:
    ident = f"{os_name}-{'_'.join(sorted(architectures))}"
    return f"{ident}-{variant}" if variant else ident


def assemble_slice(
    platform: str,
    results: Sequence[BuildResult],
    bundle_root: Path,
    binary_name: str,
    merge: MergeStrategy,
) -> PlatformSlice:
    """Merge (or copy, for one architecture) a platform group's artifacts into the bundle.

    Source artifacts are only read; output always goes to a new file.
    """
    if not results:
        msg = f"No build results for platform {platform}"
        raise MissingPlatformError(msg)
    failed = [r for r in results if not r.success or r.artifact_path is None]
    if failed:
        msg = f"Cannot assemble {platform}: {len(failed)} target(s) did not build"
        raise AssemblyError(msg)
    descriptors = {r.descriptor.platform for r in results}
    if descriptors != {platform}:
        msg = f"Results for {sorted(descriptors)} passed to {platform} slice"
        raise AssemblyError(msg)

    first = results[0].descriptor
    inputs = sorted(((r.descriptor.arch, r.artifact_path) for r in results), key=lambda x: x[0])
    archs = tuple(arch for arch, _ in inputs)
    check_compatible(inputs)

    out_dir = bundle_root / slice_identifier(first.os, archs, first.abi)
    if out_dir.exists():
        shutil.rmtree(out_dir)
    out_dir.mkdir(parents=True)
    out = out_dir / binary_name

    if len(inputs) == 1:
        shutil.copyfile(inputs[0][1], out)
        log.info("Copied %s slice (%s)", platform, archs[0])
    else:
        merge(inputs, out)
        if not out.is_file():
            msg = f"Merge produced no output for {platform}: {out}"
            raise AssemblyError(msg)
        log.info("Merged %s slice (%s)", platform, ", ".join(archs))

    return PlatformSlice(platform, first.os, first.abi, archs, out)


def info_plist_data(slices: Sequence[PlatformSlice]) -> dict:
    libraries = []
    for s in sorted(slices, key=lambda s: s.identifier):
        entry = {
            "LibraryIdentifier": s.identifier,
            "LibraryPath": s.binary_path.name,
            "SupportedArchitectures": list(s.architectures),
            "SupportedPlatform": s.os,
        }
        if s.variant:
            entry["SupportedPlatformVariant"] = s.variant
        libraries.append(entry)
    return {
        "AvailableLibraries": libraries,
        "CFBundlePackageType": "XFWK",
        "XCFrameworkFormatVersion": "1.0",
    }


def write_info_plist(bundle_root: Path, slices: Sequence[PlatformSlice]) -> Path:
    path = bundle_root / INFO_PLIST
    path.write_bytes(plistlib.dumps(info_plist_data(slices), sort_keys=True))
    return path


def layout_bundle(
    bundle_root: Path,
    slices: Sequence[PlatformSlice],
    expected_platforms: Sequence[str],
) -> BundleLayout:
    """Check every expected platform has exactly one slice, then write Info.plist."""
    have = [s.platform for s in slices]
    missing = sorted(set(expected_platforms) - set(have))
    extra = sorted(set(have) - set(expected_platforms))
    dupes = sorted({p for p in have if have.count(p) > 1})
    if missing or extra or dupes:
        parts = []
        if missing:
            parts.append(f"missing {missing}")
        if extra:
            parts.append(f"unexpected {extra}")
        if dupes:
            parts.append(f"duplicated {dupes}")
        msg = "Bundle slices do not match platforms: " + "; ".join(parts)
        raise MissingPlatformError(msg)

    ordered = sorted(slices, key=lambda s: s.identifier)
    info = write_info_plist(bundle_root, ordered)
    return BundleLayout(root=bundle_root, slices=ordered, info_plist_path=info)
