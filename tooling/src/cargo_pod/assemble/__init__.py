"""Assemble per-target static libraries into an .xcframework (slices, headers, module map)."""

from .headers import collect_headers, install_headers, render_module_map
from .merge import MergeStrategy, binary_format, check_compatible, lipo_merge
from .xcframework import (
    BundleLayout,
    PlatformSlice,
    assemble_slice,
    info_plist_data,
    layout_bundle,
    slice_identifier,
)

__all__ = [
    "BundleLayout",
    "MergeStrategy",
    "PlatformSlice",
    "assemble_slice",
    "binary_format",
    "check_compatible",
    "collect_headers",
    "info_plist_data",
    "install_headers",
    "layout_bundle",
    "lipo_merge",
    "render_module_map",
    "slice_identifier",
]
