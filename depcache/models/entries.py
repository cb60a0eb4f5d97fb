"""Cache entry, checkout state and consistency-check result models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator

# path -> (mode, blob hash), as listed from a stored tree
TreeListing = dict[str, tuple[str, str]]


class CacheEntry(BaseModel):
    """One stored artifact tree plus the manifest snapshot it was built from.

    ``tree_hash`` is read back from the object store, never taken from the
    producer of the tree.
    """

    model_config = ConfigDict(frozen=True)

    entry_id: str
    tree_hash: str
    # None when the entry carries no snapshot; it then matches no manifest
    manifest_snapshot: bytes | None

    @property
    def tag(self) -> str:
        return f"sha-{self.entry_id}"


class CheckoutStatus(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"


class CheckoutState(BaseModel):
    """The Working Checkout: either absent or tracking exactly one entry."""

    model_config = ConfigDict(frozen=True)

    status: CheckoutStatus = CheckoutStatus.ABSENT
    entry_id: str | None = None

    @model_validator(mode="after")
    def _check_entry(self) -> CheckoutState:
        if (self.status == CheckoutStatus.PRESENT) != (self.entry_id is not None):
            raise ValueError("entry_id is required exactly when the checkout is present")
        return self

    @classmethod
    def absent(cls) -> CheckoutState:
        return cls()

    @classmethod
    def present(cls, entry_id: str) -> CheckoutState:
        return cls(status=CheckoutStatus.PRESENT, entry_id=entry_id)

    @property
    def is_present(self) -> bool:
        return self.status == CheckoutStatus.PRESENT


class Fingerprint(BaseModel):
    """Expected tree hash for a manifest, with the file listing behind it."""

    model_config = ConfigDict(frozen=True)

    manifest_sha256: str
    tree_hash: str
    files: TreeListing = {}


class CheckStatus(str, Enum):
    CONSISTENT = "consistent"
    MANIFEST_MISMATCH = "manifest_mismatch"
    TREE_MISMATCH = "tree_mismatch"


class ChangeKind(str, Enum):
    ADDED = "added"  # present in the entry, not expected
    REMOVED = "removed"  # expected, missing from the entry
    MODIFIED = "modified"


class FileChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    kind: ChangeKind


class CheckResult(BaseModel):
    """Outcome of comparing a cache entry against a reference manifest."""

    model_config = ConfigDict(frozen=True)

    status: CheckStatus
    entry_id: str
    actual_hash: str
    expected_hash: str | None = None
    manifest_diff: list[str] = []
    changed_files: list[FileChange] = []

    @property
    def consistent(self) -> bool:
        return self.status == CheckStatus.CONSISTENT


class VerificationReport(BaseModel):
    """Commits examined by a completed verification run, oldest first."""

    model_config = ConfigDict(frozen=True)

    base: str
    head: str
    commits: list[str] = []
