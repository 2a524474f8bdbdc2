"""`cargo-pod targets`: show how target tokens resolve."""

from __future__ import annotations

import sys

from cargo_pod.errors import PodError
from cargo_pod.targets import DEFAULT_TARGETS, installed_rust_targets, resolve_targets


def run_targets_argv(argv: list[str] | None = None) -> int:
    import argparse

    ap = argparse.ArgumentParser(prog="cargo-pod targets", description="Show resolved build targets")
    ap.add_argument("tokens", nargs="*", help="Profiles, Rust triples or os:arch[:abi]")
    ap.add_argument("--targets", "-t", action="append", default=[], metavar="TARGET")
    ap.add_argument(
        "--check",
        action="store_true",
        help="Mark targets that rustup does not report as installed",
    )
    args = ap.parse_args(argv if argv is not None else sys.argv[2:])

    try:
        targets = resolve_targets(args.targets + args.tokens or DEFAULT_TARGETS)
    except PodError as e:
        print(f"❌ {e}", file=sys.stderr)
        return e.exit_code

    installed = installed_rust_targets() if args.check else None
    if args.check and installed is None:
        print("⚠️  rustup not available; cannot check installed targets", file=sys.stderr)
    for d in targets:
        line = f"{d.rust_triple:<28} {d.platform:<18} {d.arch}"
        if installed is not None and d.rust_triple not in installed:
            line += f"  (not installed: rustup target add {d.rust_triple})"
        print(line)
    return 0
