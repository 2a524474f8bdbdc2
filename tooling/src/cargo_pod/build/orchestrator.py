"""Run one build per target on a bounded thread pool.

Targets never depend on each other's output, so builds run concurrently. Native
toolchains are heavy, so the pool is small by default.
"""

from __future__ import annotations

import os
import traceback
from collections.abc import Callable, Iterator, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from cargo_pod.build.cargo import BuildContext, BuildResult
from cargo_pod.targets import TargetDescriptor

Builder = Callable[[TargetDescriptor], BuildResult]


def default_jobs() -> int:
    return max(1, min(4, (os.cpu_count() or 1) // 4))


def _result_of(fut: Future[BuildResult], descriptor: TargetDescriptor) -> BuildResult:
    """The builder's result, or a failed result carrying the exception it raised."""
    try:
        return fut.result()
    except Exception:
        return BuildResult(descriptor, None, False, traceback.format_exc())


def iter_builds(
    descriptors: Sequence[TargetDescriptor],
    builder: Builder,
    context: BuildContext,
    jobs: int | None = None,
    fail_fast: bool = False,
) -> Iterator[BuildResult]:
    """Yield BuildResults as builds complete.

    With fail_fast, the first failure cancels every build that has not started
    and iteration stops after yielding it. Builds already running finish before
    the pool shuts down.
    """
    workers = max(1, min(jobs or default_jobs(), len(descriptors) or 1))
    pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cargo-pod-build")
    pending: set[Future[BuildResult]] = set()
    try:
        submitted = {pool.submit(builder, d): d for d in descriptors}
        pending = set(submitted)
        while pending:
            done, pending = wait(pending, return_when=FIRST_COMPLETED)
            for fut in done:
                result = _result_of(fut, submitted[fut])
                if not result.success:
                    context.log.error("Build failed for %s", result.descriptor)
                yield result
                if fail_fast and not result.success:
                    context.log.warning(
                        "Fail-fast: cancelling %d outstanding build(s)", len(pending)
                    )
                    for other in pending:
                        other.cancel()
                    return
    finally:
        pool.shutdown(wait=True, cancel_futures=True)


def run_builds(
    descriptors: Sequence[TargetDescriptor],
    builder: Builder,
    context: BuildContext,
    jobs: int | None = None,
    fail_fast: bool = False,
) -> list[BuildResult]:
    """All results (or up to the first failure with fail_fast), in descriptor order."""
    order = {d: i for i, d in enumerate(descriptors)}
    results = list(iter_builds(descriptors, builder, context, jobs=jobs, fail_fast=fail_fast))
    return sorted(results, key=lambda r: order[r.descriptor])
