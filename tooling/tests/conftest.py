"""Pytest fixtures for cargo-pod tests: a fake crate, builder, merge and verifier."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from pathlib import Path

import pytest

from cargo_pod.build.cargo import BuildResult, artifact_path
from cargo_pod.package.verify import VerifyOutcome
from cargo_pod.project import ProjectDescriptor
from cargo_pod.targets import TargetDescriptor

AR_MAGIC = b"!<arch>\n"


class FakeBuilder:
    """Writes a fake static library per target; triples in `fail` report a compiler error."""

    def __init__(
        self,
        target_dir: Path,
        lib_name: str = "my_crate",
        fail: Sequence[str] = (),
        profile: str = "release",
    ) -> None:
        self.target_dir = target_dir
        self.lib_name = lib_name
        self.fail = set(fail)
        self.profile = profile
        self.calls: list[TargetDescriptor] = []
        self._lock = threading.Lock()

    def __call__(self, descriptor: TargetDescriptor) -> BuildResult:
        with self._lock:
            self.calls.append(descriptor)
        if descriptor.rust_triple in self.fail:
            return BuildResult(
                descriptor,
                None,
                False,
                f"error[E0425]: cannot find value `x` ({descriptor.rust_triple})",
            )
        path = artifact_path(self.target_dir, descriptor, self.profile, self.lib_name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(AR_MAGIC + descriptor.rust_triple.encode())
        return BuildResult(descriptor, path, True, "Finished release")


class FakeMerge:
    """Concatenates inputs (in order) instead of running lipo; records each call."""

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], Path]] = []

    def __call__(self, inputs: Sequence[tuple[str, Path]], output: Path) -> None:
        self.calls.append(([arch for arch, _ in inputs], output))
        output.write_bytes(AR_MAGIC + b"".join(p.read_bytes() for _, p in inputs))


class FakeVerifier:
    def __init__(self, outcome: VerifyOutcome = VerifyOutcome.SUCCESS) -> None:
        self.outcome = outcome
        self.urls: list[str] = []

    def verify(self, url: str, timeout: float) -> VerifyOutcome:
        self.urls.append(url)
        return self.outcome


@pytest.fixture
def crate_dir(tmp_path: Path) -> Path:
    """Crate directory with one public header, a LICENSE and a README."""
    crate = tmp_path / "my-crate"
    (crate / "include").mkdir(parents=True)
    (crate / "include" / "my_crate.h").write_text("void my_crate_hello(void);\n")
    (crate / "LICENSE").write_text("MIT\n")
    (crate / "README.md").write_text("# my-crate\n")
    (crate / "Cargo.toml").write_text('[package]\nname = "my-crate"\n')
    return crate


@pytest.fixture
def project(crate_dir: Path) -> ProjectDescriptor:
    return ProjectDescriptor(
        name="my-crate",
        version="1.2.3",
        lib_name="my_crate",
        package_dir=crate_dir,
        target_dir=crate_dir / "target",
        description="Does things",
        license="MIT",
        repository="https://github.com/acme/my-crate",
        authors=("Jane Doe <jane@example.com>",),
    )


@pytest.fixture
def fake_builder(project: ProjectDescriptor) -> FakeBuilder:
    return FakeBuilder(project.target_dir, project.lib_name)


@pytest.fixture
def fake_merge() -> FakeMerge:
    return FakeMerge()


@pytest.fixture
def fake_verifier() -> FakeVerifier:
    return FakeVerifier()
