"""Podspec manifest: template placeholders, substitution values, rendering."""

from .podspec import (
    DEFAULT_DEPLOYMENT_TARGETS,
    DEFAULT_TEMPLATE,
    Manifest,
    available_keys,
    check_template,
    default_source_url,
    deployment_constraints,
    expand_source_url,
    load_template,
    render_manifest,
    template_keys,
)

__all__ = [
    "DEFAULT_DEPLOYMENT_TARGETS",
    "DEFAULT_TEMPLATE",
    "Manifest",
    "available_keys",
    "check_template",
    "default_source_url",
    "deployment_constraints",
    "expand_source_url",
    "load_template",
    "render_manifest",
    "template_keys",
]
