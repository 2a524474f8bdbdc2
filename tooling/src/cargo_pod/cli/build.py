"""`cargo-pod build`: build every target, assemble the xcframework, write the podspec."""

from __future__ import annotations

import sys
from pathlib import Path

from cargo_pod.assemble.merge import lipo_merge
from cargo_pod.build.cargo import BuildResult
from cargo_pod.config import load_options
from cargo_pod.errors import BuildFailedError, PodError
from cargo_pod.package.verify import HttpVerifier
from cargo_pod.pipeline import run_pipeline
from cargo_pod.project import load_project
from cargo_pod.targets import installed_rust_targets


def _parser():
    import argparse

    ap = argparse.ArgumentParser(
        prog="cargo-pod build",
        description="Build a staticlib crate for Apple targets into an .xcframework and podspec",
    )
    ap.add_argument(
        "--targets",
        "-t",
        action="append",
        default=None,
        metavar="TARGET",
        help="Profile (device, simulator, catalyst, desktop, ios, macos, all), Rust triple, "
        "or os:arch[:abi]. Repeatable; default: ios macos",
    )
    ap.add_argument("--ios", action="store_true", help="iOS builds only (device + simulator)")
    ap.add_argument("--macos", action="store_true", help="macOS builds only")
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--release", dest="profile", action="store_const", const="release")
    mode.add_argument("--debug", dest="profile", action="store_const", const="debug")
    ap.add_argument("--output", "-o", type=Path, default=None, help="Destination directory")
    ap.add_argument(
        "--fail-fast", action="store_true", default=None, help="Stop at the first failed build"
    )
    ap.add_argument("--jobs", "-j", type=int, default=None, help="Concurrent cargo builds")
    ap.add_argument(
        "--missing-toolchain",
        choices=["fail", "skip"],
        default=None,
        help="When a Rust target is not installed: fail (default) or skip it",
    )
    ap.add_argument(
        "--no-archive", dest="archive", action="store_false", default=None, help="Skip the .tgz"
    )
    ap.add_argument(
        "--no-verify",
        dest="verify_remote",
        action="store_false",
        default=None,
        help="Do not check the source URL",
    )
    ap.add_argument("--manifest-path", type=Path, default=None, help="Path to Cargo.toml")
    ap.add_argument("--config", type=Path, default=None, help="Path to cargo-pod.yaml")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    ap.add_argument("cargo_args", nargs="*", help="Args passed to `cargo build` (after --)")
    return ap


def _targets_from_args(args) -> list[str] | None:
    targets = list(args.targets or [])
    if args.ios:
        targets.append("ios")
    if args.macos:
        targets.append("macos")
    return targets or None


def print_build_failures(err: BuildFailedError) -> None:
    print(f"❌ {len(err.failed)} target(s) failed:", file=sys.stderr)
    for result in err.failed:
        print(f"\n--- {result.descriptor} ---", file=sys.stderr)
        print(result.diagnostics.rstrip(), file=sys.stderr)


def _report(result: BuildResult) -> None:
    mark = "✅" if result.success else "❌"
    print(f"  {mark} {result.descriptor}")


def run_build_argv(argv: list[str] | None = None) -> int:
    """Parse argv and run the pipeline. Returns the process exit code."""
    if argv is None:
        argv = sys.argv[2:] if len(sys.argv) > 2 else []
    args = _parser().parse_args(argv)

    from cargo_pod.cli.main import configure_logging

    configure_logging(args.verbose)

    try:
        project = load_project(args.manifest_path)
        options = load_options(
            project,
            config_path=args.config,
            overrides={
                "targets": _targets_from_args(args),
                "profile": args.profile,
                "destination": str(args.output.resolve()) if args.output else None,
                "jobs": args.jobs,
                "fail_fast": args.fail_fast,
                "missing_toolchain": args.missing_toolchain,
                "archive": args.archive,
                "verify_remote": args.verify_remote,
                "cargo_args": args.cargo_args or None,
            },
        )
        name = options.name or project.pod_name
        print(f"🔨 Building {name} {project.version} ({options.profile})...")
        result = run_pipeline(
            project,
            options,
            installed_targets=installed_rust_targets(),
            merge=lipo_merge,
            verifier=HttpVerifier(),
            on_result=_report,
        )
    except BuildFailedError as e:
        print_build_failures(e)
        return e.exit_code
    except PodError as e:
        print(f"❌ {e}", file=sys.stderr)
        return e.exit_code

    for warning in result.warnings:
        print(f"⚠️  {warning}", file=sys.stderr)
    slices = ", ".join(s.identifier for s in result.layout.slices)
    print(f"📦 Slices: {slices}")
    if result.checksum:
        print(f"🔒 sha256: {result.checksum}")
    print(f"✅ Wrote {result.manifest_path}")
    return 0
