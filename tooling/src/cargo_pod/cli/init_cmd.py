"""`cargo-pod init`: write a starter cargo-pod.yaml and podspec template for a crate."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import yaml

from cargo_pod.config import CONFIG_FILENAME, DEFAULT_CONFIG, render_default_config
from cargo_pod.errors import PodError
from cargo_pod.helpers import github_owner_repo
from cargo_pod.manifest.podspec import DEFAULT_TEMPLATE, default_source_url
from cargo_pod.project import ProjectDescriptor, load_project

log = logging.getLogger(__name__)

TEMPLATE_FILENAME = "podspec.template"


def init_config(
    project: ProjectDescriptor,
    name: str | None = None,
    repo: str | None = None,
    targets: list[str] | None = None,
) -> str:
    """cargo-pod.yaml text: defaults plus name/source_url derived from crate metadata and flags."""
    text = render_default_config(targets)
    extra: dict[str, str] = {"template": TEMPLATE_FILENAME}
    if name:
        extra["name"] = name
    repository = repo or project.repository
    if repository:
        if github_owner_repo(repository) is None:
            log.warning("%s is not a GitHub repository; set source_url by hand", repository)
        else:
            extra["source_url"] = default_source_url(repository, DEFAULT_CONFIG["archive_name"])
    return text + yaml.safe_dump(extra, sort_keys=False)


def init_files(
    directory: Path,
    config_text: str,
    force: bool = False,
) -> list[Path]:
    """Write cargo-pod.yaml and podspec.template into directory. Existing files are kept unless force."""
    written: list[Path] = []
    for path, text in (
        (directory / CONFIG_FILENAME, config_text),
        (directory / TEMPLATE_FILENAME, DEFAULT_TEMPLATE),
    ):
        if path.exists() and not force:
            print(f"⚠️  {path} exists, skipping (use --force to overwrite)", file=sys.stderr)
            continue
        path.write_text(text)
        written.append(path)
    return written


def run_init_argv(argv: list[str] | None = None) -> int:
    import argparse

    ap = argparse.ArgumentParser(prog="cargo-pod init", description=__doc__)
    ap.add_argument("--name", default=None, help="Override the pod name")
    ap.add_argument("--repo", default=None, help="Override the repository URL")
    ap.add_argument("--manifest-path", type=Path, default=None, help="Path to Cargo.toml")
    ap.add_argument("--targets", "-t", action="append", default=None, metavar="TARGET")
    ap.add_argument("--force", action="store_true", help="Overwrite existing files")
    args = ap.parse_args(argv if argv is not None else sys.argv[2:])

    try:
        project = load_project(args.manifest_path)
    except PodError as e:
        print(f"❌ {e}", file=sys.stderr)
        return e.exit_code

    config_text = init_config(project, args.name, args.repo, args.targets)
    for path in init_files(project.package_dir, config_text, args.force):
        print(f"✅ Wrote {path}")
    return 0
