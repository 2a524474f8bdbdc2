"""Render the CocoaPods podspec from a template.

Templates use {{ key }} placeholders. Substitution is literal and single-pass:
substituted text is never re-scanned, and a placeholder without a value is an
error rather than a blank field.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from cargo_pod.assemble.xcframework import PlatformSlice
from cargo_pod.errors import ManifestError, MissingPlaceholderValueError
from cargo_pod.helpers import escape_apos, github_owner_repo, parse_author
from cargo_pod.project import ProjectDescriptor

log = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")

UNKNOWN = "UNKNOWN"

DEFAULT_DEPLOYMENT_TARGETS: dict[str, str] = {"ios": "10.0", "macos": "10.10"}

# podspec attribute per Apple OS
_PODSPEC_PLATFORM = {"ios": "ios", "macos": "osx"}

DEFAULT_TEMPLATE = """\
Pod::Spec.new { |spec|
  spec.name = '{{ name }}'
  spec.version = '{{ version }}'
  spec.summary = '{{ summary }}'
  spec.authors = {
{{ authors }}
  }
  spec.license = { :type => '{{ license }}' }
  spec.homepage = '{{ homepage }}'
{{ platforms }}
  spec.pod_target_xcconfig = {
    'ENABLE_BITCODE' => 'NO',
  }
  spec.vendored_frameworks = '{{ bundle }}'
  spec.source_files = '{{ bundle }}/Headers/**/*.{h,hpp}'
  spec.module_map = '{{ bundle }}/module.modulemap'
  spec.source = {
    :http => '{{ source }}',
    :sha256 => '{{ checksum }}',
  }
}
"""


def template_keys(template: str) -> list[str]:
    """Placeholder keys in first-seen order."""
    return list(dict.fromkeys(PLACEHOLDER_RE.findall(template)))


def check_template(template: str, available: Iterable[str]) -> None:
    """Raise MissingPlaceholderValueError if the template needs a key not in available."""
    have = set(available)
    missing = [k for k in template_keys(template) if k not in have]
    if missing:
        raise MissingPlaceholderValueError(missing)


def render_manifest(template: str, values: Mapping[str, str]) -> str:
    check_template(template, values)
    return PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)


def load_template(path: Path | None) -> str:
    if path is None:
        return DEFAULT_TEMPLATE
    try:
        return path.read_text()
    except OSError as e:
        msg = f"Cannot read manifest template {path}: {e}"
        raise ManifestError(msg) from e


def default_source_url(repository: str | None, archive_name: str) -> str:
    """GitHub release download URL for the archive, else UNKNOWN."""
    owner_repo = github_owner_repo(repository)
    if owner_repo is None:
        return UNKNOWN
    owner, repo = owner_repo
    return f"https://github.com/{owner}/{repo}/releases/download/v#{{spec.version}}/{archive_name}"


def expand_source_url(url: str, version: str) -> str:
    """Substitute the podspec's #{spec.version} so the URL can be fetched."""
    return url.replace("#{spec.version}", version)


def deployment_constraints(
    os_names: Iterable[str],
    deployment_targets: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """OS -> minimum deployment target for each OS given (sorted). Raises ManifestError if one is unconfigured."""
    targets = dict(DEFAULT_DEPLOYMENT_TARGETS)
    targets.update(deployment_targets or {})
    out: dict[str, str] = {}
    for os_name in sorted(set(os_names)):
        if os_name not in targets:
            msg = f"No deployment target configured for {os_name}"
            raise ManifestError(msg)
        out[os_name] = str(targets[os_name])
    return out


@dataclass(frozen=True)
class Manifest:
    name: str
    version: str
    summary: str
    license: str
    homepage: str
    source: str
    bundle: str
    authors: tuple[tuple[str, str], ...] = ()
    platform_constraints: dict[str, str] = field(default_factory=dict)
    checksum: str | None = None

    @classmethod
    def from_project(
        cls,
        project: ProjectDescriptor,
        slices: Sequence[PlatformSlice],
        bundle: str,
        deployment_targets: Mapping[str, str] | None = None,
        source_url: str | None = None,
        archive_name: str = "cargo-pod.tgz",
        checksum: str | None = None,
    ) -> Manifest:
        authors: list[tuple[str, str]] = []
        for line in project.authors:
            parsed = parse_author(line)
            if parsed is None:
                log.warning("Could not parse author line: '%s', skipping.", line)
                continue
            authors.append(parsed)
        return cls(
            name=project.pod_name,
            version=project.version,
            summary=project.description or UNKNOWN,
            license=project.license or UNKNOWN,
            homepage=project.repository or UNKNOWN,
            source=source_url or default_source_url(project.repository, archive_name),
            bundle=bundle,
            authors=tuple(authors),
            platform_constraints=deployment_constraints((s.os for s in slices), deployment_targets),
            checksum=checksum,
        )

    def substitutions(self) -> dict[str, str]:
        """Placeholder values; checksum is only present once known."""
        authors = "\n".join(
            f"    '{escape_apos(name)}' => '{escape_apos(email)}'," for name, email in self.authors
        )
        platforms = "\n".join(
            f"  spec.{_PODSPEC_PLATFORM.get(os_name, os_name)}.deployment_target = '{escape_apos(v)}'"
            for os_name, v in self.platform_constraints.items()
        )
        values = {
            "name": escape_apos(self.name),
            "version": escape_apos(self.version),
            "summary": escape_apos(self.summary),
            "license": escape_apos(self.license),
            "homepage": escape_apos(self.homepage),
            "source": escape_apos(self.source),
            "bundle": escape_apos(self.bundle),
            "authors": authors,
            "platforms": platforms,
        }
        if self.checksum is not None:
            values["checksum"] = self.checksum
        return values

    def render(self, template: str = DEFAULT_TEMPLATE) -> str:
        return render_manifest(template, self.substitutions())


MANIFEST_KEYS = (
    "name",
    "version",
    "summary",
    "license",
    "homepage",
    "source",
    "bundle",
    "authors",
    "platforms",
)


def available_keys(with_checksum: bool) -> list[str]:
    """Keys the pipeline will supply, for checking a template before building."""
    return [*MANIFEST_KEYS, "checksum"] if with_checksum else list(MANIFEST_KEYS)
