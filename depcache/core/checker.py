"""Consistency checker — does a cache entry belong to a manifest?

Two steps, in order, stopping at the first failure:

1. The entry's manifest snapshot must equal the reference manifest byte
   for byte.
2. The entry's tree hash must equal the fingerprint of the reference
   manifest.

Step 2 reinstalls from scratch, so callers that only need the cheap
answer can skip it with ``verify_tree=False``.
"""

from __future__ import annotations

import difflib

from depcache.core.errors import (
    ManifestMismatchError,
    ObjectNotFoundError,
    TreeMismatchError,
)
from depcache.core.fingerprint import FingerprintCalculator
from depcache.core.object_store import ObjectStore
from depcache.models.entries import (
    CacheEntry,
    ChangeKind,
    CheckResult,
    CheckStatus,
    FileChange,
    TreeListing,
)
from depcache.models.layout import ProjectLayout


class ConsistencyChecker:
    """Compares cache entries against reference manifests.

    Parameters
    ----------
    store:
        Where candidate entries are read from. Entries must already be
        local (fetched).
    fingerprint:
        Calculator for the expected tree hash.
    layout:
        Locates the manifest snapshot inside an entry.
    """

    def __init__(
        self,
        store: ObjectStore,
        fingerprint: FingerprintCalculator,
        layout: ProjectLayout | None = None,
    ) -> None:
        self._store = store
        self._fingerprint = fingerprint
        self._layout = layout or ProjectLayout()

    def load_entry(self, entry_id: str) -> CacheEntry:
        """Read an entry's tree hash and manifest snapshot from the store."""
        tree_hash = self._store.tree_hash_of(entry_id)
        try:
            snapshot = self._store.blob_at(entry_id, self._layout.snapshot_name)
        except ObjectNotFoundError:
            snapshot = None
        return CacheEntry(entry_id=entry_id, tree_hash=tree_hash, manifest_snapshot=snapshot)

    def check(
        self,
        entry_id: str,
        reference_manifest: bytes,
        *,
        verify_tree: bool = True,
    ) -> CheckResult:
        entry = self.load_entry(entry_id)

        if entry.manifest_snapshot != reference_manifest:
            return CheckResult(
                status=CheckStatus.MANIFEST_MISMATCH,
                entry_id=entry_id,
                actual_hash=entry.tree_hash,
                manifest_diff=self._manifest_diff(entry, reference_manifest),
            )

        if not verify_tree:
            return CheckResult(
                status=CheckStatus.CONSISTENT,
                entry_id=entry_id,
                actual_hash=entry.tree_hash,
            )

        expected = self._fingerprint.calculate(reference_manifest)
        if expected.tree_hash != entry.tree_hash:
            return CheckResult(
                status=CheckStatus.TREE_MISMATCH,
                entry_id=entry_id,
                actual_hash=entry.tree_hash,
                expected_hash=expected.tree_hash,
                changed_files=diff_listings(expected.files, self._store.list_files(entry_id)),
            )

        return CheckResult(
            status=CheckStatus.CONSISTENT,
            entry_id=entry_id,
            actual_hash=entry.tree_hash,
            expected_hash=expected.tree_hash,
        )

    def _manifest_diff(self, entry: CacheEntry, reference: bytes) -> list[str]:
        if entry.manifest_snapshot is None:
            before: list[str] = []
            fromfile = f"{entry.entry_id}:{self._layout.snapshot_name} (missing)"
        else:
            before = entry.manifest_snapshot.decode("utf-8", errors="replace").splitlines()
            fromfile = f"{entry.entry_id}:{self._layout.snapshot_name}"
        return list(
            difflib.unified_diff(
                before,
                reference.decode("utf-8", errors="replace").splitlines(),
                fromfile=fromfile,
                tofile=self._layout.manifest_name,
                lineterm="",
            )
        )


def diff_listings(expected: TreeListing, actual: TreeListing) -> list[FileChange]:
    """List the files where *actual* departs from *expected*, sorted by path."""
    changes: list[FileChange] = []
    for path in sorted(expected.keys() | actual.keys()):
        if path not in actual:
            changes.append(FileChange(path=path, kind=ChangeKind.REMOVED))
        elif path not in expected:
            changes.append(FileChange(path=path, kind=ChangeKind.ADDED))
        elif expected[path] != actual[path]:
            changes.append(FileChange(path=path, kind=ChangeKind.MODIFIED))
    return changes


def raise_for_result(
    result: CheckResult, *, commit: str | None = None, details: str = ""
) -> None:
    """Raise the error matching a failed check; return when consistent."""
    where = f"Commit {commit}: " if commit else ""
    if result.status == CheckStatus.MANIFEST_MISMATCH:
        raise ManifestMismatchError(
            f"{where}cache entry {result.entry_id} doesn't match the manifest",
            result,
            commit=commit,
            details=details,
        )
    if result.status == CheckStatus.TREE_MISMATCH:
        raise TreeMismatchError(
            f"{where}cache entry {result.entry_id} has tree {result.actual_hash}, "
            f"but the manifest installs to {result.expected_hash}",
            result,
            commit=commit,
            details=details,
        )
