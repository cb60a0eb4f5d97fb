"""Content-addressed object stores for cache entries.

``ObjectStore`` is the interface the rest of the package depends on.
``LocalObjectStore`` keeps blobs, trees and commits on the filesystem and
can be paired with another instance acting as its remote; it serves as the
throwaway store behind fingerprinting and as the backend in tests.

Storage layout: {base}/objects/{kind}/{digest[0:2]}/{digest[2:4]}/{digest}.dat
Tags live in {base}/refs/tags/{name}. There is no delete: objects are
immutable once stored.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from depcache.core.errors import (
    ObjectNotFoundError,
    RemoteMissingError,
    StoreIntegrityError,
    UsageError,
)
from depcache.core.hasher import (
    canonical_json_bytes,
    git_blob_hash,
    listing_for,
    sha256_hex,
    tag_for,
    tree_hash_from_listing,
)
from depcache.models.entries import TreeListing
from depcache.models.payload import FileEntry, FileMode

logger = logging.getLogger(__name__)

# Names a store writes into a materialized checkout for its own bookkeeping.
HEAD_MARKER = ".depcache-entry"
STORE_METADATA_NAMES = frozenset({".git", HEAD_MARKER})


@runtime_checkable
class ObjectStore(Protocol):
    """Content-addressed storage for cache entries.

    An entry id always yields the same content or a definitive
    ``ObjectNotFoundError``; never a different payload.
    """

    def resolve_tag(self, tag: str) -> str:
        """Return the entry id a local tag points at."""
        ...

    def has(self, entry_id: str) -> bool:
        """Whether the entry is available locally."""
        ...

    def fetch(self, entry_id: str) -> None:
        """Make *entry_id* available locally, or raise ``RemoteMissingError``."""
        ...

    def tree_hash_of(self, entry_id: str) -> str: ...

    def list_files(self, entry_id: str) -> TreeListing: ...

    def blob_at(self, entry_id: str, path: str) -> bytes: ...

    def commit_tree(self, files: Mapping[str, FileEntry], message: str) -> str:
        """Store *files* as a tree, commit it and return the entry id."""
        ...

    def tag(self, entry_id: str, name: str) -> None: ...

    def push(self, tag: str) -> None:
        """Publish a local tag and the objects behind it to the remote."""
        ...

    def materialize(self, entry_id: str, dest: Path) -> None:
        """Write the entry's tree into the (absent) directory *dest*."""
        ...

    def checked_out_id(self, dest: Path) -> str | None:
        """Entry id materialized at *dest*, if this store put one there."""
        ...


class LocalObjectStore:
    """Filesystem-backed content-addressed store.

    Parameters
    ----------
    base_path:
        Root directory for objects and tags.
    remote:
        Another store that ``fetch`` pulls from and ``push`` publishes to.
    """

    def __init__(self, base_path: Path, *, remote: LocalObjectStore | None = None) -> None:
        self._base = Path(base_path)
        self._objects = self._base / "objects"
        self._tags = self._base / "refs" / "tags"
        self._objects.mkdir(parents=True, exist_ok=True)
        self._tags.mkdir(parents=True, exist_ok=True)
        self.remote = remote

    # ------------------------------------------------------------------
    # Raw objects
    # ------------------------------------------------------------------

    def _object_path(self, kind: str, digest: str) -> Path:
        """Layout: {objects}/{kind}/{digest[0:2]}/{digest[2:4]}/{digest}.dat"""
        return self._objects / kind / digest[:2] / digest[2:4] / f"{digest}.dat"

    @staticmethod
    def _address_of(kind: str, data: bytes) -> str:
        if kind == "blob":
            return git_blob_hash(data)
        if kind == "tree":
            return tree_hash_from_listing(_decode_listing(data))
        return sha256_hex(data)

    def _write(self, kind: str, digest: str, data: bytes) -> None:
        path = self._object_path(kind, digest)
        if path.exists():
            # Storing the same content twice is a no-op, but verify it.
            self._read(kind, digest)
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    def _read(self, kind: str, digest: str) -> bytes:
        path = self._object_path(kind, digest)
        if not path.exists():
            raise ObjectNotFoundError(f"No {kind} {digest} in {self._base}")
        data = path.read_bytes()
        if self._address_of(kind, data) != digest:
            raise StoreIntegrityError(
                f"Stored {kind} {digest} in {self._base} failed integrity check"
            )
        return data

    def _commit(self, entry_id: str) -> dict[str, str]:
        return json.loads(self._read("commit", entry_id))

    def _listing(self, entry_id: str) -> TreeListing:
        return _decode_listing(self._read("tree", self._commit(entry_id)["tree"]))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve_tag(self, tag: str) -> str:
        path = self._tags / tag
        if not path.exists():
            raise ObjectNotFoundError(f"No tag {tag!r} in {self._base}")
        return path.read_text(encoding="utf-8").strip()

    def has(self, entry_id: str) -> bool:
        return self._object_path("commit", entry_id).exists()

    def tree_hash_of(self, entry_id: str) -> str:
        return self._commit(entry_id)["tree"]

    def list_files(self, entry_id: str) -> TreeListing:
        return self._listing(entry_id)

    def blob_at(self, entry_id: str, path: str) -> bytes:
        listing = self._listing(entry_id)
        if path not in listing:
            raise ObjectNotFoundError(f"No file {path!r} in entry {entry_id}")
        return self._read("blob", listing[path][1])

    def message_of(self, entry_id: str) -> str:
        return self._commit(entry_id)["message"]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def commit_tree(self, files: Mapping[str, FileEntry], message: str) -> str:
        listing = listing_for(files)
        for path, entry in files.items():
            self._write("blob", listing[path][1], entry.data)
        tree_data = _encode_listing(listing)
        tree_digest = tree_hash_from_listing(listing)
        self._write("tree", tree_digest, tree_data)
        commit_data = canonical_json_bytes({"tree": tree_digest, "message": message})
        entry_id = sha256_hex(commit_data)
        self._write("commit", entry_id, commit_data)
        logger.debug("Committed tree %s as entry %s", tree_digest, entry_id)
        return entry_id

    def tag(self, entry_id: str, name: str) -> None:
        if not self.has(entry_id):
            raise ObjectNotFoundError(f"Cannot tag missing entry {entry_id}")
        path = self._tags / name
        if path.exists():
            current = path.read_text(encoding="utf-8").strip()
            if current != entry_id:
                raise StoreIntegrityError(
                    f"Tag {name!r} already points at {current}, not {entry_id}"
                )
            return
        path.write_text(entry_id + "\n", encoding="utf-8")

    # ------------------------------------------------------------------
    # Remote exchange
    # ------------------------------------------------------------------

    def _copy_entry_from(self, other: LocalObjectStore, entry_id: str) -> None:
        commit_data = other._read("commit", entry_id)
        tree_digest = json.loads(commit_data)["tree"]
        tree_data = other._read("tree", tree_digest)
        for _, blob in _decode_listing(tree_data).values():
            self._write("blob", blob, other._read("blob", blob))
        self._write("tree", tree_digest, tree_data)
        self._write("commit", entry_id, commit_data)

    def fetch(self, entry_id: str) -> None:
        if self.has(entry_id):
            return
        tag = tag_for(entry_id)
        if self.remote is None:
            raise RemoteMissingError(f"Entry {entry_id} is not local and no remote is configured")
        try:
            remote_id = self.remote.resolve_tag(tag)
        except ObjectNotFoundError as exc:
            raise RemoteMissingError(
                f"Entry {entry_id} isn't on the remote cache repository"
            ) from exc
        if remote_id != entry_id:
            raise StoreIntegrityError(f"Remote tag {tag} points at {remote_id}")
        self._copy_entry_from(self.remote, entry_id)

    def push(self, tag: str) -> None:
        if self.remote is None:
            raise UsageError("No remote cache repository is configured for push")
        entry_id = self.resolve_tag(tag)
        self.remote._copy_entry_from(self, entry_id)
        self.remote.tag(entry_id, tag)

    # ------------------------------------------------------------------
    # Checkouts
    # ------------------------------------------------------------------

    def materialize(self, entry_id: str, dest: Path) -> None:
        listing = self._listing(entry_id)
        # read (and verify) everything before the first write
        contents = {path: self._read("blob", blob) for path, (_, blob) in listing.items()}
        dest.mkdir(parents=True, exist_ok=False)
        for path, (mode, _) in sorted(listing.items()):
            target = dest / path
            target.parent.mkdir(parents=True, exist_ok=True)
            data = contents[path]
            if mode == FileMode.SYMLINK.value:
                os.symlink(os.fsdecode(data), target)
                continue
            target.write_bytes(data)
            if mode == FileMode.EXECUTABLE.value:
                target.chmod(0o755)
        (dest / HEAD_MARKER).write_text(entry_id + "\n", encoding="utf-8")

    def checked_out_id(self, dest: Path) -> str | None:
        marker = dest / HEAD_MARKER
        if not marker.is_file():
            return None
        return marker.read_text(encoding="utf-8").strip() or None


def _encode_listing(listing: TreeListing) -> bytes:
    return canonical_json_bytes({path: list(item) for path, item in listing.items()})


def _decode_listing(data: bytes) -> TreeListing:
    return {path: (mode, blob) for path, (mode, blob) in json.loads(data).items()}
