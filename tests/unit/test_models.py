"""Tests for the payload and entry models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from depcache.models.entries import (
    CacheEntry,
    CheckoutState,
    CheckoutStatus,
    CheckResult,
    CheckStatus,
)
from depcache.models.payload import ArtifactPayload, FileEntry


def _payload(files: dict[str, bytes], snapshot: str = ".package.json") -> ArtifactPayload:
    return ArtifactPayload(
        files={path: FileEntry(data=data) for path, data in files.items()},
        snapshot_path=snapshot,
    )


class TestArtifactPayload:
    def test_manifest_snapshot(self):
        payload = _payload({".package.json": b"{}", "a/index.js": b""})
        assert payload.manifest_snapshot == b"{}"

    def test_missing_snapshot_rejected(self):
        with pytest.raises(ValidationError, match="manifest snapshot"):
            _payload({"a/index.js": b""})

    @pytest.mark.parametrize("path", ["/etc/passwd", "../escape", "a//b", "a/./b", ""])
    def test_invalid_paths_rejected(self, path: str):
        with pytest.raises(ValidationError):
            _payload({".package.json": b"{}", path: b"x"})

    def test_file_and_directory_clash_rejected(self):
        with pytest.raises(ValidationError, match="both file and directory"):
            _payload({".package.json": b"{}", "a": b"", "a/b": b""})

    def test_without_strips_components_anywhere(self):
        payload = _payload({
            ".package.json": b"{}",
            ".git/config": b"",
            "a/.git/HEAD": b"",
            "a/index.js": b"",
        })
        stripped = payload.without({".git"})
        assert set(stripped.files) == {".package.json", "a/index.js"}

    def test_frozen(self):
        payload = _payload({".package.json": b"{}"})
        with pytest.raises(ValidationError):
            payload.snapshot_path = "other"


class TestCheckoutState:
    def test_absent(self):
        state = CheckoutState.absent()
        assert state.status == CheckoutStatus.ABSENT
        assert state.entry_id is None
        assert state.is_present is False

    def test_present(self):
        state = CheckoutState.present("e1")
        assert state.is_present is True
        assert state.entry_id == "e1"

    def test_present_requires_entry(self):
        with pytest.raises(ValidationError):
            CheckoutState(status=CheckoutStatus.PRESENT)

    def test_absent_rejects_entry(self):
        with pytest.raises(ValidationError):
            CheckoutState(status=CheckoutStatus.ABSENT, entry_id="e1")


class TestEntries:
    def test_cache_entry_tag(self):
        entry = CacheEntry(entry_id="abc", tree_hash="t", manifest_snapshot=b"{}")
        assert entry.tag == "sha-abc"

    def test_check_result_consistent(self):
        ok = CheckResult(status=CheckStatus.CONSISTENT, entry_id="e", actual_hash="t")
        bad = CheckResult(status=CheckStatus.TREE_MISMATCH, entry_id="e", actual_hash="t")
        assert ok.consistent is True
        assert bad.consistent is False
