"""Hashing helpers for manifests, commits and git-compatible trees.

Tree hashes are computed exactly the way git computes them, so a tree
written by the filesystem store and the same tree written by a git
repository carry the same identity.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any, Union

from depcache.models.entries import TreeListing
from depcache.models.payload import FileEntry

TAG_PREFIX = "sha-"
EMPTY_TREE_HASH = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

_TREE_MODE = "40000"

_Node = dict[str, Union["_Node", tuple[str, str]]]


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def manifest_key(manifest: bytes) -> str:
    """Key under which a manifest's cache entry is built."""
    return sha256_hex(manifest)


def tag_for(entry_id: str) -> str:
    """Deterministic tag that keeps an entry reachable in a store."""
    return f"{TAG_PREFIX}{entry_id}"


def git_object_hash(kind: str, body: bytes) -> str:
    """SHA-1 of a git object: ``<kind> <size>\\0<body>``."""
    header = f"{kind} {len(body)}\0".encode("ascii")
    return hashlib.sha1(header + body).hexdigest()


def git_blob_hash(data: bytes) -> str:
    return git_object_hash("blob", data)


def listing_for(files: Mapping[str, FileEntry]) -> TreeListing:
    """Map each path to its ``(mode, blob hash)`` pair."""
    return {
        path: (entry.mode.value, git_blob_hash(entry.data))
        for path, entry in files.items()
    }


def tree_hash_from_listing(listing: Mapping[str, tuple[str, str]]) -> str:
    """Compute the git tree hash for a flat ``path -> (mode, blob)`` listing."""
    root: _Node = {}
    for path, item in listing.items():
        parts = path.split("/")
        node = root
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"{path!r} is nested under a file")
            node = child
        if isinstance(node.get(parts[-1]), dict):
            raise ValueError(f"{path!r} is also a directory")
        node[parts[-1]] = item
    return _hash_node(root)


def tree_hash(files: Mapping[str, FileEntry]) -> str:
    """Compute the git tree hash of a set of files."""
    return tree_hash_from_listing(listing_for(files))


def _hash_node(node: _Node) -> str:
    # git orders entries by name bytes, with directories compared as "name/"
    def sort_key(name: str) -> bytes:
        suffix = "/" if isinstance(node[name], dict) else ""
        return (name + suffix).encode("utf-8")

    body = bytearray()
    for name in sorted(node, key=sort_key):
        child = node[name]
        if isinstance(child, dict):
            mode, digest = _TREE_MODE, _hash_node(child)
        else:
            mode, digest = child
        body += f"{mode} {name}".encode("utf-8") + b"\0" + bytes.fromhex(digest)
    return git_object_hash("tree", bytes(body))
