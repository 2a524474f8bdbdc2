"""Merge per-architecture static libraries into one multi-architecture binary.

The merge is a strategy (callable) so tests can substitute a fake and assert on
its arguments without lipo installed.
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from pathlib import Path

from cargo_pod.errors import ArchitectureMergeError

# (architecture, artifact path) pairs -> output path
MergeStrategy = Callable[[Sequence[tuple[str, Path]], Path], None]

_AR_MAGIC = b"!<arch>\n"
_MACHO_MAGICS = {
    b"\xfe\xed\xfa\xce",
    b"\xce\xfa\xed\xfe",
    b"\xfe\xed\xfa\xcf",
    b"\xcf\xfa\xed\xfe",
}
_FAT_MAGICS = {b"\xca\xfe\xba\xbe", b"\xca\xfe\xba\xbf"}


def binary_format(path: Path) -> str:
    """'archive', 'macho', 'fat' or 'unknown' from the file's magic bytes."""
    with path.open("rb") as f:
        head = f.read(8)
    if head.startswith(_AR_MAGIC):
        return "archive"
    if head[:4] in _MACHO_MAGICS:
        return "macho"
    if head[:4] in _FAT_MAGICS:
        return "fat"
    return "unknown"


def check_compatible(inputs: Sequence[tuple[str, Path]]) -> None:
    """Raise ArchitectureMergeError on duplicate architectures or mixed binary formats."""
    archs = [arch for arch, _ in inputs]
    if len(set(archs)) != len(archs):
        msg = f"Duplicate architectures in merge inputs: {sorted(archs)}"
        raise ArchitectureMergeError(msg)
    formats = {binary_format(path) for _, path in inputs}
    if len(formats) > 1:
        detail = ", ".join(f"{arch}={binary_format(path)}" for arch, path in inputs)
        msg = f"Cannot merge mismatched binary formats: {detail}"
        raise ArchitectureMergeError(msg)


def lipo_merge(
    inputs: Sequence[tuple[str, Path]],
    output: Path,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> None:
    """lipo -create -output <output> <inputs...>"""
    cmd = ["lipo", "-create", "-output", str(output), *(str(p) for _, p in inputs)]
    try:
        r = runner(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        msg = f"lipo not found (Xcode command line tools required): {e}"
        raise ArchitectureMergeError(msg) from e
    if r.returncode != 0:
        msg = f"lipo failed for {output.name}: {(r.stderr or r.stdout or '').strip()}"
        raise ArchitectureMergeError(msg)
