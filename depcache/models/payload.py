"""Artifact payload models — the file content an installer produces."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, model_validator


class FileMode(str, Enum):
    """Git-compatible file modes supported in an artifact tree."""

    REGULAR = "100644"
    EXECUTABLE = "100755"
    SYMLINK = "120000"  # data holds the link target


class FileEntry(BaseModel):
    """A single file in an artifact tree."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    mode: FileMode = FileMode.REGULAR


class ArtifactPayload(BaseModel):
    """The artifact tree produced by one installer run.

    ``files`` maps relative POSIX paths to their content. The manifest the
    installer actually consumed travels inside the tree at
    ``snapshot_path`` so it can be compared after the fact.
    """

    model_config = ConfigDict(frozen=True)

    files: dict[str, FileEntry]
    snapshot_path: str

    @model_validator(mode="after")
    def _check_paths(self) -> ArtifactPayload:
        directories: set[str] = set()
        for path in self.files:
            pure = PurePosixPath(path)
            if (
                not path
                or pure.is_absolute()
                or any(part in ("", ".", "..") for part in path.split("/"))
            ):
                raise ValueError(f"Invalid artifact path: {path!r}")
            directories.update(str(parent) for parent in pure.parents if str(parent) != ".")
        clashes = sorted(directories.intersection(self.files))
        if clashes:
            raise ValueError(f"Paths used as both file and directory: {clashes}")
        if self.snapshot_path not in self.files:
            raise ValueError(
                f"Payload has no manifest snapshot at {self.snapshot_path!r}"
            )
        return self

    @property
    def manifest_snapshot(self) -> bytes:
        """The manifest bytes as consumed by the installer."""
        return self.files[self.snapshot_path].data

    def without(self, names: Iterable[str]) -> ArtifactPayload:
        """Return a copy with every path that has a component in *names* removed."""
        excluded = frozenset(names)
        kept = {
            path: entry
            for path, entry in self.files.items()
            if excluded.isdisjoint(path.split("/"))
        }
        return ArtifactPayload(files=kept, snapshot_path=self.snapshot_path)
