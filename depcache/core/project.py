"""The enclosing project — its manifest, its pointer and its history.

The pointer is a gitlink: the index (and every commit) records the entry
id the checkout directory is expected to hold, exactly like a submodule.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

from depcache.core.errors import ObjectNotFoundError, UsageError
from depcache.core.process import run_command
from depcache.models.layout import ProjectLayout

logger = logging.getLogger(__name__)

_GITLINK_MODE = "160000"


@runtime_checkable
class ProjectRepository(Protocol):
    """Read access to the project that consumes the cached tree."""

    root: Path

    def has_vcs(self) -> bool:
        """Whether the project is a version-controlled checkout."""
        ...

    def read_manifest(self) -> bytes:
        """The manifest in the working tree."""
        ...

    def pointer(self) -> str | None:
        """Entry id recorded in the index for the checkout directory."""
        ...

    def pointer_at(self, commit: str) -> str:
        """Entry id recorded for the checkout directory at *commit*."""
        ...

    def manifest_at(self, commit: str) -> bytes:
        """The manifest as of *commit*."""
        ...

    def commits_touching(self, base: str, head: str) -> list[str]:
        """Commits in ``base..head``, oldest first, that change the manifest or pointer."""
        ...

    def describe(self, commit: str) -> str:
        """Human-readable summary of *commit* for diagnostics."""
        ...

    def submodule_leftovers(self) -> list[Path]:
        """Metadata left behind when the checkout was made as a real submodule."""
        ...


class GitProject:
    """A project living in a git working tree.

    Parameters
    ----------
    root:
        Top of the working tree.
    layout:
        File names of the manifest and checkout directory.
    """

    def __init__(self, root: Path, layout: ProjectLayout | None = None) -> None:
        self.root = Path(root).resolve()
        self.layout = layout or ProjectLayout()

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[bytes]:
        return run_command(["git", *args], cwd=self.root, check=check)

    def has_vcs(self) -> bool:
        return (self.root / ".git").exists()

    def read_manifest(self) -> bytes:
        path = self.root / self.layout.manifest_name
        if not path.is_file():
            raise UsageError(f"No {self.layout.manifest_name} in {self.root}")
        return path.read_bytes()

    def pointer(self) -> str | None:
        out = self._git("ls-files", "--stage", "-z", "--", self.layout.checkout_dir).stdout
        for record in out.split(b"\0"):
            meta, _, path = record.partition(b"\t")
            fields = meta.decode().split()
            if fields and fields[0] == _GITLINK_MODE and path.decode() == self.layout.checkout_dir:
                return fields[1]
        return None

    def pointer_at(self, commit: str) -> str:
        spec = f"{commit}:{self.layout.checkout_dir}"
        result = self._git("rev-parse", "--verify", "--quiet", spec, check=False)
        if result.returncode != 0:
            raise ObjectNotFoundError(
                f"Commit {commit} records no {self.layout.checkout_dir} pointer"
            )
        return result.stdout.decode().strip()

    def manifest_at(self, commit: str) -> bytes:
        spec = f"{commit}:{self.layout.manifest_name}"
        result = self._git("cat-file", "blob", spec, check=False)
        if result.returncode != 0:
            raise ObjectNotFoundError(f"Commit {commit} has no {self.layout.manifest_name}")
        return result.stdout

    def commits_touching(self, base: str, head: str) -> list[str]:
        out = self._git(
            "log", "--reverse", "--full-history", "--format=%H",
            head, "--not", base,
            "--", self.layout.manifest_name, self.layout.checkout_dir,
        ).stdout
        return out.decode().split()

    def describe(self, commit: str) -> str:
        return self._git("show", "--stat", commit).stdout.decode("utf-8", errors="replace")

    def submodule_leftovers(self) -> list[Path]:
        if not self.has_vcs():
            return []
        git_dir = self._git("rev-parse", "--absolute-git-dir").stdout.decode().strip()
        leftover = Path(git_dir) / "modules" / self.layout.checkout_dir
        return [leftover] if leftover.exists() else []
