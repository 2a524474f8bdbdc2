"""Archive the finished bundle and move the result into place.

Archives are reproducible: entries sorted, timestamps and owners zeroed, modes
normalised, gzip header mtime zero. The same inputs give the same checksum.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
from collections.abc import Iterator, Sequence
from pathlib import Path

from cargo_pod.errors import PackagingError

log = logging.getLogger(__name__)


def _walk(path: Path) -> Iterator[Path]:
    yield path
    if path.is_dir() and not path.is_symlink():
        for child in sorted(path.iterdir(), key=lambda p: p.name):
            yield from _walk(child)


def _tarinfo(tar: tarfile.TarFile, path: Path, arcname: str) -> tarfile.TarInfo:
    info = tar.gettarinfo(str(path), arcname=arcname)
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    if info.isdir():
        info.mode = 0o755
    elif info.isfile():
        info.mode = 0o755 if os.access(path, os.X_OK) else 0o644
    return info


def archive_tree(entries: Sequence[tuple[Path, str]], archive_path: Path) -> Path:
    """Write a deterministic .tgz. entries: (source file or directory, name in archive)."""
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with (
            archive_path.open("wb") as raw,
            gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz,
            tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar,
        ):
            for source, name in sorted(entries, key=lambda e: e[1]):
                for path in _walk(source):
                    rel = path.relative_to(source).as_posix()
                    arcname = name if rel == "." else f"{name}/{rel}"
                    info = _tarinfo(tar, path, arcname)
                    if info.isfile():
                        with path.open("rb") as f:
                            tar.addfile(info, f)
                    else:
                        tar.addfile(info)
    except (OSError, tarfile.TarError, ValueError) as e:
        msg = f"Failed to write archive {archive_path}: {e}"
        raise PackagingError(msg) from e
    log.info("Wrote %s", archive_path.name)
    return archive_path


def destination_conflict(
    destination: Path,
    protected: Sequence[Path] = (),
    scratch: Path | None = None,
) -> str | None:
    """Why destination cannot be replaced as a whole, or None.

    The destination may not be, or contain, a protected directory (the crate,
    the cargo target directory). It may not overlap the scratch directory.
    """
    dest = destination.resolve()
    for path in protected:
        path = path.resolve()
        if dest == path or dest in path.parents:
            return f"Destination {dest} would replace {path}"
    if scratch is not None:
        scratch = scratch.resolve()
        if dest == scratch or dest in scratch.parents or scratch in dest.parents:
            return f"Destination {dest} overlaps scratch directory {scratch}"
    return None


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def _swap_in(source: Path, target: Path) -> None:
    partial = target.with_name(f".{target.name}.partial")
    old = target.with_name(f".{target.name}.old")
    _remove(partial)
    _remove(old)
    if source.is_dir():
        shutil.copytree(source, partial)
    else:
        shutil.copy2(source, partial)
    if target.exists() or target.is_symlink():
        target.rename(old)
    partial.rename(target)
    _remove(old)


def finalize(staging: Path, destination: Path, protected: Sequence[Path] = ()) -> Path:
    """Copy each top-level entry of staging into destination, replacing earlier output.

    Each entry is copied to a sibling .partial path and swapped in with renames,
    so it is either the old complete copy or the new one. Other files in
    destination are left alone. Raises PackagingError if destination would
    replace a protected directory or overlaps staging.
    """
    if not staging.is_dir():
        msg = f"Staging directory missing: {staging}"
        raise PackagingError(msg)
    conflict = destination_conflict(destination, protected, scratch=staging)
    if conflict:
        raise PackagingError(conflict)
    destination = destination.resolve()
    try:
        destination.mkdir(parents=True, exist_ok=True)
        for entry in sorted(staging.iterdir(), key=lambda p: p.name):
            _swap_in(entry, destination / entry.name)
    except OSError as e:
        msg = f"Failed to write {destination}: {e}"
        raise PackagingError(msg) from e
    log.info("Output written to %s", destination)
    return destination
