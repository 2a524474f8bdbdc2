"""Main CLI entry point for cargo-pod."""

from __future__ import annotations

import logging
import os
import sys

from cargo_pod.cli import init_cmd, targets_cmd
from cargo_pod.cli import build as build_cli

LOG_ENV = "CARGO_POD_LOG"


def configure_logging(verbose: bool = False) -> None:
    """Log level from -v, else $CARGO_POD_LOG, else WARNING."""
    if verbose:
        level = logging.DEBUG
    else:
        name = os.environ.get(LOG_ENV, "WARNING").upper()
        level = getattr(logging, name, None)
        if not isinstance(level, int):
            print(f"Warning: invalid {LOG_ENV}={name!r}, using WARNING", file=sys.stderr)
            level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _usage() -> None:
    print("Usage: cargo-pod <command> [args...]", file=sys.stderr)
    print("Commands:", file=sys.stderr)
    print(
        "  build [options] [-- cargo args]  - Build targets, assemble .xcframework, write podspec",
        file=sys.stderr,
    )
    print("  targets [TARGET...]              - Show resolved build targets", file=sys.stderr)
    print(
        "  init [--name N] [--force]        - Write cargo-pod.yaml and a podspec template",
        file=sys.stderr,
    )


def main() -> None:
    """Main CLI entry point."""
    argv = sys.argv[1:]
    # invoked as `cargo pod ...`: cargo passes the subcommand name first
    if argv and argv[0] == "pod":
        argv = argv[1:]
    if not argv:
        _usage()
        sys.exit(1)

    command, rest = argv[0], argv[1:]
    if command == "build":
        sys.exit(build_cli.run_build_argv(rest))
    elif command == "targets":
        sys.exit(targets_cmd.run_targets_argv(rest))
    elif command == "init":
        sys.exit(init_cmd.run_init_argv(rest))
    elif command in ("-h", "--help", "help"):
        _usage()
        sys.exit(0)
    else:
        print(f"Error: Unknown command: {command}", file=sys.stderr)
        _usage()
        sys.exit(1)


if __name__ == "__main__":
    main()
