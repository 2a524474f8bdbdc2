"""Shared helpers for cargo_pod (text, hashing, file discovery).

Used by project, manifest, assemble and package modules.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

# --- Text ---


def to_pascal_case(name: str) -> str:
    """Convert kebab-case or snake_case to PascalCase (e.g. my-crate_ffi -> MyCrateFfi)."""
    return "".join(word.capitalize() for word in re.split(r"[-_\s]+", name) if word)


def lib_stem(crate_target: str) -> str:
    """Cargo library file stem for a target name (hyphens become underscores)."""
    return crate_target.replace("-", "_")


def escape_apos(s: str) -> str:
    """Escape single quotes for a Ruby single-quoted string literal."""
    return s.replace("\\", "\\\\").replace("'", "\\'")


_AUTHOR_RE = re.compile(r"^\s*(.+?)(?: <(.+?)>)?\s*$")


def parse_author(line: str) -> tuple[str, str] | None:
    """Split 'Name <email>' into (name, email). Email may be empty. None if unparseable."""
    m = _AUTHOR_RE.match(line)
    if not m:
        return None
    return m.group(1), m.group(2) or ""


_GITHUB_RE = re.compile(r"^https://github\.com/(.*?)/(.*?)(?:\.git)?/?$")


def github_owner_repo(url: str | None) -> tuple[str, str] | None:
    """Return (owner, repo) for a https://github.com/owner/repo URL, else None."""
    if not url:
        return None
    m = _GITHUB_RE.match(url.strip())
    if not m or not m.group(1) or not m.group(2):
        return None
    return m.group(1), m.group(2)


# --- Hashing ---


def sha256_file(path: Path, chunk_size: int = 1 << 20) -> str:
    """Hex SHA-256 of a file, read in chunks."""
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            h.update(chunk)
    return h.hexdigest()


# --- Files ---


def find_files(root: Path, patterns: tuple[str, ...] | list[str]) -> list[Path]:
    """Files under root matching any glob pattern (rglob), sorted and unique."""
    out: set[Path] = set()
    for pattern in patterns:
        out.update(p for p in root.rglob(pattern) if p.is_file())
    return sorted(out)


def top_level_matches(root: Path, prefixes: tuple[str, ...]) -> list[Path]:
    """Files directly in root whose name starts with one of prefixes (LICENSE*, README*)."""
    if not root.is_dir():
        return []
    return sorted(p for p in root.iterdir() if p.is_file() and p.name.startswith(prefixes))
