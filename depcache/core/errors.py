"""Error taxonomy for the artifact cache.

Every error is fatal to the operation that raised it. The CLI maps each
one to exit status 1 and prints ``remediation`` when it is set.
"""

from __future__ import annotations

from collections.abc import Sequence

from depcache.models.entries import CheckResult


class DepcacheError(RuntimeError):
    """Base class for all artifact cache failures."""

    remediation: str = ""

    def __init__(self, message: str, *, remediation: str | None = None) -> None:
        super().__init__(message)
        if remediation is not None:
            self.remediation = remediation


class UsageError(DepcacheError):
    """Bad arguments, or an operation invoked in the wrong context."""


class ObjectNotFoundError(DepcacheError):
    """A tag, entry or path does not exist in the local object store."""


class RemoteMissingError(DepcacheError):
    """An entry could not be fetched from the remote cache repository."""

    remediation = (
        "Run 'depcache install' and 'depcache push' to publish the entry."
    )


class StoreIntegrityError(DepcacheError):
    """A stored object does not hash to its own address."""


class MalformedPayloadError(DepcacheError):
    """Installer output is not a readable artifact tree."""

    remediation = "Check the installer image and install command."


class ConsistencyError(DepcacheError):
    """A cache entry does not match the manifest it is checked against."""

    def __init__(
        self,
        message: str,
        result: CheckResult | None = None,
        *,
        commit: str | None = None,
        details: str = "",
        remediation: str | None = None,
    ) -> None:
        super().__init__(message, remediation=remediation)
        self.result = result
        self.commit = commit
        self.details = details


class ManifestMismatchError(ConsistencyError):
    """The stored manifest snapshot differs from the reference manifest."""

    remediation = (
        "Your manifest and the cached tree are out of sync. If you modified "
        "the manifest, run 'depcache install' and add the result to the index."
    )


class TreeMismatchError(ConsistencyError):
    """The stored tree hash differs from the freshly computed fingerprint."""

    remediation = (
        "The cached tree was not produced by installing this manifest. "
        "Either it was altered or the installer is not deterministic; "
        "compare the listed files before re-running 'depcache install'."
    )


class ExternalProcessError(DepcacheError):
    """An external command (installer, git) exited with a non-zero status."""

    def __init__(
        self, argv: Sequence[str], returncode: int, stderr: bytes = b""
    ) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        tail = stderr.decode("utf-8", errors="replace").strip().splitlines()[-20:]
        message = f"Command {self.argv[0]!r} exited with status {returncode}"
        if tail:
            message += ":\n" + "\n".join(tail)
        super().__init__(message)
