"""Build-and-package pipeline: resolve -> build -> assemble -> headers -> archive -> podspec -> finalize.

Ordering rules:
- Target, template, cargo arg and destination errors are raised before any
  build starts.
- A platform is assembled as soon as all of its targets have built; other
  platforms may still be building.
- Any build failure stops the run before Info.plist, headers or the destination
  are written. Scratch output stays in place for inspection.
- The podspec is rendered after the archive exists, since it carries its checksum.
- The destination is written last. Each output entry is swapped in whole;
  other files there are left alone.
"""

from __future__ import annotations

import logging
import shutil
from collections import Counter, defaultdict
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path

from cargo_pod.assemble.headers import collect_headers, install_headers
from cargo_pod.assemble.merge import MergeStrategy, lipo_merge
from cargo_pod.assemble.xcframework import BundleLayout, PlatformSlice, assemble_slice, layout_bundle
from cargo_pod.build.cargo import BuildContext, BuildResult, CargoBuilder, check_cargo_args
from cargo_pod.build.orchestrator import Builder, iter_builds
from cargo_pod.config import PipelineOptions, default_scratch_dir
from cargo_pod.errors import BuildFailedError, ConfigError, PackagingError
from cargo_pod.helpers import sha256_file, top_level_matches
from cargo_pod.manifest.podspec import (
    UNKNOWN,
    Manifest,
    available_keys,
    check_template,
    deployment_constraints,
    expand_source_url,
    load_template,
)
from cargo_pod.package.archive import archive_tree, destination_conflict, finalize
from cargo_pod.package.verify import RemoteVerifier, start_verification, verification_warning
from cargo_pod.project import ProjectDescriptor
from cargo_pod.targets import TargetDescriptor, platforms_of, resolve_targets

log = logging.getLogger(__name__)

EXTRA_ARCHIVE_FILES = ("LICENSE", "README")


@dataclass
class PipelineResult:
    targets: list[TargetDescriptor]
    builds: list[BuildResult]
    layout: BundleLayout
    destination: Path
    manifest_path: Path
    archive_path: Path | None = None
    checksum: str | None = None
    warnings: list[str] = field(default_factory=list)


def bundle_name(project: ProjectDescriptor) -> str:
    return f"{project.pod_name}.xcframework"


def scratch_dir(project: ProjectDescriptor, options: PipelineOptions) -> Path:
    return options.scratch_dir or default_scratch_dir(project)


def run_pipeline(
    project: ProjectDescriptor,
    options: PipelineOptions,
    *,
    installed_targets: set[str] | None = None,
    builder: Builder | None = None,
    merge: MergeStrategy = lipo_merge,
    verifier: RemoteVerifier | None = None,
    context: BuildContext | None = None,
    on_result: Callable[[BuildResult], None] | None = None,
) -> PipelineResult:
    """Run the whole pipeline for one crate. Raises a PodError subclass on failure."""
    if options.name:
        project = project.with_pod_name(options.name)
    # Resolution and template checks: nothing is built or written if these fail.
    targets = resolve_targets(options.targets, installed_targets, options.missing_toolchain)
    platforms = platforms_of(targets)
    template = load_template(options.template)
    check_template(template, available_keys(with_checksum=options.archive))
    deployment_constraints((d.os for d in targets), options.deployment_targets)
    check_cargo_args(options.cargo_args, options.profile)
    scratch = scratch_dir(project, options)
    protected = (project.package_dir, project.target_dir)
    conflict = destination_conflict(options.destination, protected, scratch=scratch)
    if conflict:
        msg = f"Invalid destination: {conflict}"
        raise ConfigError(msg)

    staging = scratch / "staging"
    if staging.exists():
        shutil.rmtree(staging)
    bundle_root = staging / bundle_name(project)
    bundle_root.mkdir(parents=True)

    if context is None:
        context = BuildContext(diagnostics_dir=scratch / "logs")
    if builder is None:
        builder = CargoBuilder(
            package_dir=project.package_dir,
            target_dir=project.target_dir,
            lib_name=project.lib_name,
            context=context,
            profile=options.profile,
            cargo_args=options.cargo_args,
            nightly=options.nightly,
        )

    binary_name = f"lib{project.lib_name}.a"
    remaining = Counter(d.platform for d in targets)
    groups: dict[str, list[BuildResult]] = defaultdict(list)
    slices: dict[str, PlatformSlice] = {}
    builds: list[BuildResult] = []
    failed: list[BuildResult] = []

    for result in iter_builds(
        targets, builder, context, jobs=options.jobs, fail_fast=options.fail_fast
    ):
        builds.append(result)
        if on_result is not None:
            on_result(result)
        platform = result.descriptor.platform
        remaining[platform] -= 1
        groups[platform].append(result)
        if not result.success:
            failed.append(result)
            continue
        group_ok = all(r.success for r in groups[platform])
        if remaining[platform] == 0 and group_ok and not failed:
            slices[platform] = assemble_slice(
                platform, groups[platform], bundle_root, binary_name, merge
            )

    order = {d: i for i, d in enumerate(targets)}
    builds.sort(key=lambda r: order[r.descriptor])
    if failed:
        failed.sort(key=lambda r: order[r.descriptor])
        raise BuildFailedError(failed)

    layout = layout_bundle(bundle_root, [slices[p] for p in platforms if p in slices], platforms)
    headers = collect_headers(options.header_dirs, options.header_patterns)
    install_headers(
        layout,
        headers,
        module_name=project.pod_name,
        link_name=project.lib_name,
        required=options.require_headers,
    )

    manifest = Manifest.from_project(
        project,
        layout.slices,
        bundle=bundle_root.name,
        deployment_targets=options.deployment_targets,
        source_url=options.source_url,
        archive_name=options.archive_name,
    )
    warnings: list[str] = []
    # Verification runs beside archiving; its thread is never joined.
    pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="cargo-pod-verify")
    try:
        verification = None
        remote = expand_source_url(manifest.source, project.version)
        if options.verify_remote and verifier is not None and manifest.source != UNKNOWN:
            verification = start_verification(verifier, remote, options.verify_timeout, pool)

        archive_path: Path | None = None
        checksum: str | None = None
        if options.archive:
            entries = [(bundle_root, bundle_root.name)]
            entries += [
                (p, p.name) for p in top_level_matches(project.package_dir, EXTRA_ARCHIVE_FILES)
            ]
            archive_path = archive_tree(entries, staging / options.archive_name)
            try:
                checksum = sha256_file(archive_path)
            except OSError as e:
                msg = f"Failed to checksum {archive_path}: {e}"
                raise PackagingError(msg) from e
            manifest = replace(manifest, checksum=checksum)

        manifest_path = staging / f"{project.pod_name}.podspec"
        manifest_path.write_text(manifest.render(template))

        if verification is not None:
            warning = verification_warning(verification, remote, options.verify_timeout)
            if warning:
                log.warning("%s", warning)
                warnings.append(warning)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    destination = finalize(staging, options.destination, protected=(*protected, scratch))
    return PipelineResult(
        targets=targets,
        builds=builds,
        layout=layout,
        destination=destination,
        manifest_path=destination / manifest_path.name,
        archive_path=destination / archive_path.name if archive_path else None,
        checksum=checksum,
        warnings=warnings,
    )
