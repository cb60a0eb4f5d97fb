"""Git-backed object store — a bare cache repository plus a remote.

Entries are git commits whose tree is the artifact tree. An entry built
locally is reachable through the tag ``sha-<commit>``, which is also what is
pushed to and fetched from the remote cache repository. Entries fetched
from the remote are kept under ``refs/fetched/`` instead, so the local tag
namespace only ever names entries this machine built.

Author, committer and date are pinned so that committing the same tree with
the same message always yields the same entry id. Blobs are stored and
checked out byte for byte: neither the user's git configuration nor any
``.gitattributes`` shipped inside a payload may alter them, otherwise tree
hashes would stop agreeing with ``hasher.tree_hash``.
"""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from collections.abc import Mapping
from pathlib import Path

from depcache.core.errors import (
    ExternalProcessError,
    ObjectNotFoundError,
    RemoteMissingError,
    StoreIntegrityError,
    UsageError,
)
from depcache.core.hasher import listing_for, tag_for
from depcache.core.process import run_command
from depcache.models.entries import TreeListing
from depcache.models.payload import FileEntry

logger = logging.getLogger(__name__)

FETCHED_REF_PREFIX = "refs/fetched/"

_IDENTITY_ENV = {
    "GIT_AUTHOR_NAME": "depcache",
    "GIT_AUTHOR_EMAIL": "depcache@localhost",
    "GIT_AUTHOR_DATE": "@0 +0000",
    "GIT_COMMITTER_NAME": "depcache",
    "GIT_COMMITTER_EMAIL": "depcache@localhost",
    "GIT_COMMITTER_DATE": "@0 +0000",
}

# Local object work ignores system and user configuration (autocrlf,
# gpgSign, hooks, templates). Fetch and push keep it for credentials.
_ISOLATED_ENV = {
    "GIT_CONFIG_NOSYSTEM": "1",
    "GIT_CONFIG_GLOBAL": os.devnull,
    "GIT_ATTR_NOSYSTEM": "1",
}

# $GIT_DIR/info/attributes outranks every .gitattributes in the tree
_RAW_ATTRIBUTES = "* -text -eol -filter -ident -working-tree-encoding\n"


def _env(extra: Mapping[str, str] | None = None, *, isolated: bool = True) -> dict[str, str]:
    env = dict(os.environ)
    if isolated:
        env.update(_ISOLATED_ENV)
    env.update(extra or {})
    return env


class GitObjectStore:
    """Object store backed by a bare git repository.

    Parameters
    ----------
    git_dir:
        The bare cache repository; created on first use.
    remote_url:
        Where entries are fetched from.
    push_url:
        Where tags are pushed to. Defaults to *remote_url*.
    """

    def __init__(
        self,
        git_dir: Path,
        *,
        remote_url: str = "",
        push_url: str = "",
    ) -> None:
        self.git_dir = Path(git_dir).resolve()
        self.remote_url = remote_url
        self.push_url = push_url or remote_url

    def _git(
        self,
        *args: str,
        input: bytes | None = None,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        check: bool = True,
        isolated: bool = True,
    ) -> subprocess.CompletedProcess[bytes]:
        if not (self.git_dir / "HEAD").exists():
            self.git_dir.parent.mkdir(parents=True, exist_ok=True)
            run_command(
                ["git", "init", "--bare", "--quiet", str(self.git_dir)], env=_env()
            )
        return run_command(
            ["git", f"--git-dir={self.git_dir}", *args],
            input=input,
            env=_env(env, isolated=isolated),
            cwd=cwd,
            check=check,
        )

    def _rev_parse(self, spec: str, what: str) -> str:
        result = self._git("rev-parse", "--verify", "--quiet", spec, check=False)
        if result.returncode != 0:
            raise ObjectNotFoundError(f"No {what} {spec!r} in {self.git_dir}")
        return result.stdout.decode().strip()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve_tag(self, tag: str) -> str:
        return self._rev_parse(f"refs/tags/{tag}^{{commit}}", "tag")

    def has(self, entry_id: str) -> bool:
        result = self._git("cat-file", "-e", f"{entry_id}^{{commit}}", check=False)
        return result.returncode == 0

    def tree_hash_of(self, entry_id: str) -> str:
        return self._rev_parse(f"{entry_id}^{{tree}}", "entry")

    def list_files(self, entry_id: str) -> TreeListing:
        if not self.has(entry_id):
            raise ObjectNotFoundError(f"No entry {entry_id} in {self.git_dir}")
        out = self._git("ls-tree", "-r", "-z", "--full-tree", entry_id).stdout
        listing: TreeListing = {}
        for record in out.split(b"\0"):
            if not record:
                continue
            meta, _, path = record.partition(b"\t")
            mode, kind, blob = meta.decode().split()
            if kind == "blob":
                listing[os.fsdecode(path)] = (mode, blob)
        return listing

    def blob_at(self, entry_id: str, path: str) -> bytes:
        result = self._git("cat-file", "blob", f"{entry_id}:{path}", check=False)
        if result.returncode != 0:
            raise ObjectNotFoundError(f"No file {path!r} in entry {entry_id}")
        return result.stdout

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def commit_tree(self, files: Mapping[str, FileEntry], message: str) -> str:
        listing = listing_for(files)
        contents: dict[str, bytes] = {}
        for path, entry in files.items():
            contents.setdefault(listing[path][1], entry.data)

        with tempfile.TemporaryDirectory(prefix="depcache-commit-") as scratch:
            blob_dir = Path(scratch) / "blobs"
            blob_dir.mkdir()
            for digest, data in contents.items():
                (blob_dir / digest).write_bytes(data)
            # symlink targets are hashed from plain files too, so no path is
            # ever followed and no attribute filter ever applies
            stored = self._git(
                "hash-object", "-w", "--no-filters", "--stdin-paths",
                input="".join(f"{blob_dir / digest}\n" for digest in contents).encode(),
            ).stdout.decode().split()
            if stored != list(contents):
                raise StoreIntegrityError(f"git stored different blobs in {self.git_dir}")

            index_info = b"".join(
                f"{mode} {blob}\t".encode() + os.fsencode(path) + b"\0"
                for path, (mode, blob) in sorted(listing.items())
            )
            index_env = {"GIT_INDEX_FILE": str(Path(scratch) / "index")}
            self._git("update-index", "-z", "--index-info", input=index_info, env=index_env)
            tree = self._git("write-tree", env=index_env).stdout.decode().strip()

        commit = self._git(
            "commit-tree", "--no-gpg-sign", tree,
            input=message.encode("utf-8") + b"\n",
            env=_IDENTITY_ENV,
        )
        entry_id = commit.stdout.decode().strip()
        logger.debug("Committed tree %s as entry %s", tree, entry_id)
        return entry_id

    def tag(self, entry_id: str, name: str) -> None:
        try:
            current = self.resolve_tag(name)
        except ObjectNotFoundError:
            self._git("update-ref", f"refs/tags/{name}", entry_id)
            return
        if current != entry_id:
            raise StoreIntegrityError(
                f"Tag {name!r} already points at {current}, not {entry_id}"
            )

    # ------------------------------------------------------------------
    # Remote exchange
    # ------------------------------------------------------------------

    def fetch(self, entry_id: str) -> None:
        if self.has(entry_id):
            return
        if not self.remote_url:
            raise RemoteMissingError(
                f"Entry {entry_id} is not local and no remote is configured",
                remediation="Set DEPCACHE_REMOTE_URL to the cache repository.",
            )
        tag = tag_for(entry_id)
        refspec = f"refs/tags/{tag}:{FETCHED_REF_PREFIX}{tag}"
        try:
            # by tag, so that nothing but the requested entry is downloaded
            self._git(
                "fetch", "--no-tags", "--quiet", self.remote_url, refspec, isolated=False
            )
        except ExternalProcessError as exc:
            raise RemoteMissingError(
                f"Entry {entry_id} isn't on the server {self.remote_url}"
            ) from exc
        if not self.has(entry_id):
            raise RemoteMissingError(f"Fetching {tag} did not yield entry {entry_id}")

    def push(self, tag: str) -> None:
        if not self.push_url:
            raise UsageError(
                "No remote cache repository is configured for push",
                remediation="Set DEPCACHE_PUSH_URL or DEPCACHE_REMOTE_URL.",
            )
        self.resolve_tag(tag)
        self._git("push", "--quiet", self.push_url, f"refs/tags/{tag}", isolated=False)

    # ------------------------------------------------------------------
    # Checkouts
    # ------------------------------------------------------------------

    def materialize(self, entry_id: str, dest: Path) -> None:
        dest = Path(dest).resolve()
        git_dir = dest / ".git"
        run_command(
            ["git", "clone", "--quiet", "--shared", "--no-checkout", str(self.git_dir), str(dest)],
            env=_env(),
        )
        (git_dir / "info").mkdir(exist_ok=True)
        (git_dir / "info" / "attributes").write_text(_RAW_ATTRIBUTES, encoding="utf-8")
        run_command(
            [
                "git", f"--git-dir={git_dir}", f"--work-tree={dest}",
                "-c", "core.autocrlf=false", "-c", "core.symlinks=true",
                "checkout", "--quiet", "--detach", entry_id,
            ],
            cwd=dest,
            env=_env(),
        )

    def checked_out_id(self, dest: Path) -> str | None:
        git_dir = Path(dest).resolve() / ".git"
        if not git_dir.exists():
            return None
        result = run_command(
            ["git", f"--git-dir={git_dir}", "rev-parse", "HEAD"], check=False, env=_env()
        )
        if result.returncode != 0:
            return None
        return result.stdout.decode().strip()
