"""Shared test fixtures for depcache.

The external collaborators are replaced by deterministic stand-ins:
``StubInstaller`` for podman/npm, ``FakeProject`` for the enclosing git
repository, and a pair of ``LocalObjectStore`` instances for the local
object database and the remote cache repository.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import pytest

from depcache.config import DepcacheConfig
from depcache.core.errors import ObjectNotFoundError, UsageError
from depcache.core.hasher import canonical_json_bytes
from depcache.core.lifecycle import LifecycleOrchestrator
from depcache.core.object_store import LocalObjectStore
from depcache.models.layout import ProjectLayout
from depcache.models.payload import ArtifactPayload, FileEntry, FileMode

MANIFEST_V1 = b'{"deps":{"a":"1.0"}}'
MANIFEST_V2 = b'{"deps":{"a":"2.0"}}'


# ---------------------------------------------------------------------------
# Stand-ins for external collaborators
# ---------------------------------------------------------------------------


class StubInstaller:
    """Deterministic installer: a small directory per declared dependency."""

    def __init__(self, layout: ProjectLayout | None = None) -> None:
        self.layout = layout or ProjectLayout()
        self.calls = 0

    def install(self, manifest: bytes) -> ArtifactPayload:
        self.calls += 1
        declared = json.loads(manifest or b"{}").get("deps", {})
        files: dict[str, FileEntry] = {}
        for name, version in sorted(declared.items()):
            files[f"{name}/package.json"] = FileEntry(
                data=canonical_json_bytes({"name": name, "version": version})
            )
            files[f"{name}/index.js"] = FileEntry(
                data=f"module.exports = '{name}@{version}';\n".encode()
            )
            files[f"{name}/bin/{name}"] = FileEntry(
                data=b"#!/bin/sh\nexit 0\n", mode=FileMode.EXECUTABLE
            )
        files[self.layout.lock_source] = FileEntry(
            data=canonical_json_bytes({"lockfileVersion": 3, "packages": declared})
        )
        files[self.layout.snapshot_name] = FileEntry(data=manifest)
        return ArtifactPayload(files=files, snapshot_path=self.layout.snapshot_name)


@dataclass
class FakeCommit:
    sha: str
    manifest: bytes
    pointer: str | None
    touches: bool = True


class FakeProject:
    """In-memory project history over a real working directory."""

    def __init__(self, root: Path, layout: ProjectLayout | None = None) -> None:
        self.root = root
        self.layout = layout or ProjectLayout()
        self.root.mkdir(parents=True, exist_ok=True)
        self.vcs = True
        self.index_pointer: str | None = None
        self.history: list[FakeCommit] = []
        self.leftovers: list[Path] = []
        self.manifest_reads: list[str] = []

    # test helpers

    def write_manifest(self, data: bytes) -> None:
        (self.root / self.layout.manifest_name).write_bytes(data)

    def commit(self, sha: str, *, touches: bool = True) -> None:
        """Record the working manifest and index pointer as a commit."""
        self.history.append(
            FakeCommit(sha, self.read_manifest(), self.index_pointer, touches)
        )

    def _find(self, sha: str) -> FakeCommit:
        for commit in self.history:
            if commit.sha == sha:
                return commit
        raise ObjectNotFoundError(f"unknown commit {sha}")

    # ProjectRepository

    def has_vcs(self) -> bool:
        return self.vcs

    def read_manifest(self) -> bytes:
        path = self.root / self.layout.manifest_name
        if not path.is_file():
            raise UsageError(f"No {self.layout.manifest_name} in {self.root}")
        return path.read_bytes()

    def pointer(self) -> str | None:
        return self.index_pointer

    def pointer_at(self, commit: str) -> str:
        pointer = self._find(commit).pointer
        if pointer is None:
            raise ObjectNotFoundError(f"Commit {commit} records no pointer")
        return pointer

    def manifest_at(self, commit: str) -> bytes:
        self.manifest_reads.append(commit)
        return self._find(commit).manifest

    def commits_touching(self, base: str, head: str) -> list[str]:
        shas = [c.sha for c in self.history]
        start = shas.index(base) + 1 if base in shas else 0
        end = shas.index(head) + 1
        return [c.sha for c in self.history[start:end] if c.touches]

    def describe(self, commit: str) -> str:
        return f"commit {commit}\n {self.layout.manifest_name} | 2 +-"

    def submodule_leftovers(self) -> list[Path]:
        return [p for p in self.leftovers if p.exists()]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's DEPCACHE_* and V variables out of the tests."""
    import os

    for name in list(os.environ):
        if name.startswith("DEPCACHE_") or name == "V":
            monkeypatch.delenv(name)


@pytest.fixture
def layout() -> ProjectLayout:
    return ProjectLayout()


@pytest.fixture
def stub_installer(layout: ProjectLayout) -> StubInstaller:
    return StubInstaller(layout)


@pytest.fixture
def project(tmp_path: Path, layout: ProjectLayout) -> FakeProject:
    """A project whose working manifest is MANIFEST_V1."""
    fake = FakeProject(tmp_path / "project", layout)
    fake.write_manifest(MANIFEST_V1)
    return fake


@pytest.fixture
def make_project(layout: ProjectLayout) -> Callable[[Path], FakeProject]:
    """Factory fixture: another checkout of the project, e.g. on a second machine."""

    def _factory(root: Path) -> FakeProject:
        return FakeProject(root, layout)

    return _factory


@pytest.fixture
def remote_store(tmp_path: Path) -> LocalObjectStore:
    """Stands in for the remote cache repository."""
    return LocalObjectStore(tmp_path / "remote")


@pytest.fixture
def local_store(tmp_path: Path, remote_store: LocalObjectStore) -> LocalObjectStore:
    """The local object database, paired with ``remote_store``."""
    return LocalObjectStore(tmp_path / "local", remote=remote_store)


@pytest.fixture
def config(tmp_path: Path, project: FakeProject) -> DepcacheConfig:
    return DepcacheConfig(project_root=project.root, cache_dir=tmp_path / "cache.git")


@pytest.fixture
def messages() -> list[tuple[str, str]]:
    """Collects the orchestrator's progress lines."""
    return []


@pytest.fixture
def make_orchestrator(
    config: DepcacheConfig,
    project: FakeProject,
    local_store: LocalObjectStore,
    stub_installer: StubInstaller,
    messages: list[tuple[str, str]],
) -> Callable[..., LifecycleOrchestrator]:
    """Factory fixture: an orchestrator wired to the test doubles."""

    def _factory(**overrides: object) -> LifecycleOrchestrator:
        kwargs: dict[str, object] = {
            "project": project,
            "store": local_store,
            "installer": stub_installer,
            "notify": lambda verb, subject: messages.append((verb, subject)),
        }
        kwargs.update(overrides)
        return LifecycleOrchestrator(config, **kwargs)

    return _factory


@pytest.fixture
def orchestrator(make_orchestrator: Callable[..., LifecycleOrchestrator]) -> LifecycleOrchestrator:
    return make_orchestrator()


@pytest.fixture
def manifest_v1() -> bytes:
    return MANIFEST_V1


@pytest.fixture
def manifest_v2() -> bytes:
    return MANIFEST_V2
