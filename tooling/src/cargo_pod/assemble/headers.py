"""Collect public C headers into the bundle and write its module map."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

from cargo_pod.assemble.xcframework import BundleLayout
from cargo_pod.errors import MissingInterfaceError
from cargo_pod.helpers import find_files

log = logging.getLogger(__name__)

DEFAULT_HEADER_DIRS = ("headers", "include")
DEFAULT_HEADER_PATTERNS = ("*.h", "*.hpp")
HEADERS_DIR = "Headers"
MODULE_MAP = "module.modulemap"


def collect_headers(
    source_dirs: Sequence[Path],
    patterns: Sequence[str] = DEFAULT_HEADER_PATTERNS,
) -> dict[str, Path]:
    """Relative path -> source file, first directory wins on duplicates. Sorted by relative path."""
    found: dict[str, Path] = {}
    for d in source_dirs:
        if not d.is_dir():
            log.debug("Header directory not found: %s", d)
            continue
        for p in find_files(d, tuple(patterns)):
            rel = p.relative_to(d).as_posix()
            if rel in found:
                if found[rel].read_bytes() != p.read_bytes():
                    log.warning("Header %s in %s shadowed by %s", rel, p, found[rel])
                continue
            found[rel] = p
    return dict(sorted(found.items()))


def render_module_map(module_name: str, headers: Sequence[str], link_name: str) -> str:
    lines = [f"module {module_name} {{"]
    lines += [f'    header "{HEADERS_DIR}/{rel}"' for rel in headers]
    lines.append(f'    link "{link_name}"')
    lines.append("    export *")
    lines.append("}")
    return "\n".join(lines) + "\n"


def install_headers(
    layout: BundleLayout,
    headers: dict[str, Path],
    module_name: str,
    link_name: str,
    required: bool = True,
) -> BundleLayout:
    """Copy headers to <bundle>/Headers and write <bundle>/module.modulemap."""
    if not headers:
        if required:
            msg = "No public headers found; a bundle without headers cannot be imported"
            raise MissingInterfaceError(msg)
        log.warning("No public headers found; bundle has no module map")
        return layout

    dest = layout.root / HEADERS_DIR
    if dest.exists():
        shutil.rmtree(dest)
    copied: list[Path] = []
    for rel, src in headers.items():
        target = dest / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, target)
        copied.append(target)

    module_map = layout.root / MODULE_MAP
    module_map.write_text(render_module_map(module_name, list(headers), link_name))
    layout.headers = copied
    layout.module_map_path = module_map
    log.info("Installed %d header(s) and %s", len(copied), MODULE_MAP)
    return layout
