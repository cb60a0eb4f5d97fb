"""depcache data models — all Pydantic v2, all frozen (immutable)."""

from depcache.models.entries import (
    CacheEntry,
    ChangeKind,
    CheckoutState,
    CheckoutStatus,
    CheckResult,
    CheckStatus,
    FileChange,
    Fingerprint,
    TreeListing,
    VerificationReport,
)
from depcache.models.layout import ProjectLayout
from depcache.models.payload import ArtifactPayload, FileEntry, FileMode

__all__ = [
    # layout
    "ProjectLayout",
    # payload
    "ArtifactPayload",
    "FileEntry",
    "FileMode",
    # entries
    "CacheEntry",
    "CheckoutState",
    "CheckoutStatus",
    "Fingerprint",
    "TreeListing",
    # checks
    "ChangeKind",
    "CheckResult",
    "CheckStatus",
    "FileChange",
    "VerificationReport",
]
