"""Fingerprint calculation — manifest bytes to expected tree hash.

This is as expensive as a full install. Results are memoized per
manifest for the lifetime of the calculator, which in practice means one
CLI invocation.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from depcache.core.hasher import manifest_key
from depcache.core.installer import Installer
from depcache.core.object_store import STORE_METADATA_NAMES, LocalObjectStore
from depcache.models.entries import Fingerprint

logger = logging.getLogger(__name__)


class FingerprintCalculator:
    """Computes the tree hash a manifest should produce.

    Parameters
    ----------
    installer:
        The hermetic installer to run.
    scratch_root:
        Parent directory for ephemeral workspaces; the system temporary
        directory when omitted.
    """

    def __init__(self, installer: Installer, *, scratch_root: Path | None = None) -> None:
        self._installer = installer
        self._scratch_root = scratch_root
        self._memo: dict[str, Fingerprint] = {}

    def calculate(self, manifest: bytes) -> Fingerprint:
        """Install *manifest* from scratch and hash the normalized result.

        The installer receives the manifest bytes by value and nothing else,
        so no file is written for it. The scratch workspace only holds the
        throwaway store the result is hashed in.
        """
        key = manifest_key(manifest)
        if key in self._memo:
            return self._memo[key]

        with tempfile.TemporaryDirectory(prefix="depcache-fp-", dir=self._scratch_root) as scratch:
            workspace = Path(scratch)
            payload = self._installer.install(manifest)
            normalized = payload.without(STORE_METADATA_NAMES)
            throwaway = LocalObjectStore(workspace / "store")
            entry_id = throwaway.commit_tree(normalized.files, f"fingerprint {key}")
            fingerprint = Fingerprint(
                manifest_sha256=key,
                tree_hash=throwaway.tree_hash_of(entry_id),
                files=throwaway.list_files(entry_id),
            )

        logger.info("Manifest %s fingerprints to tree %s", key[:12], fingerprint.tree_hash)
        self._memo[key] = fingerprint
        return fingerprint

    def expected_hash(self, manifest: bytes) -> str:
        return self.calculate(manifest).tree_hash
