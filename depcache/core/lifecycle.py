"""Lifecycle orchestrator — remove / checkout / install / push / ensure-fresh.

The Working Checkout is modelled as an explicit ``CheckoutState`` value:
every verb takes the current state and returns the new one. Transitions:

- ``remove``:       Absent | Present -> Absent
- ``checkout``:     Absent | Present -> Present(target)
- ``install``:      Absent | Present -> Present(new entry)
- ``push``:         Present -> Present (publishes the entry's tag)
- ``ensure_fresh``: Absent | Present -> Present(project pointer)

A verb that fails raises before touching the checkout whenever the
failure can be detected up front (missing entry, mismatched manifest).
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from pathlib import Path

from depcache.config import DepcacheConfig
from depcache.core.checker import ConsistencyChecker, raise_for_result
from depcache.core.errors import (
    ManifestMismatchError,
    ObjectNotFoundError,
    UsageError,
)
from depcache.core.fingerprint import FingerprintCalculator
from depcache.core.git_store import GitObjectStore
from depcache.core.hasher import manifest_key, tag_for
from depcache.core.installer import ContainerInstaller, Installer
from depcache.core.object_store import STORE_METADATA_NAMES, ObjectStore
from depcache.core.project import GitProject, ProjectRepository
from depcache.models.entries import CheckoutState

logger = logging.getLogger(__name__)

# (verb, subject) progress lines, e.g. ("CLONE", "node_modules")
Notifier = Callable[[str, str], None]


def _log_notifier(verb: str, subject: str) -> None:
    logger.info("%-8s %s", verb, subject)


class LifecycleOrchestrator:
    """Drives the Working Checkout through its lifecycle.

    Parameters
    ----------
    config:
        Tool configuration. Uses defaults (and the environment) if not
        provided.
    project, store, installer:
        Collaborators; built from *config* when omitted.
    notify:
        Receives user-facing progress lines.
    """

    def __init__(
        self,
        config: DepcacheConfig | None = None,
        *,
        project: ProjectRepository | None = None,
        store: ObjectStore | None = None,
        installer: Installer | None = None,
        notify: Notifier | None = None,
    ) -> None:
        self.config = config or DepcacheConfig()
        self.layout = self.config.layout

        self.project = project or GitProject(self.config.project_root, self.layout)
        self.store = store or GitObjectStore(
            self.config.cache_dir,
            remote_url=self.config.remote_url,
            push_url=self.config.push_url,
        )
        self.installer = installer or ContainerInstaller(
            self.layout,
            runtime=self.config.container_runtime,
            image=self.config.installer_image,
            install_command=self.config.install_command,
        )
        self.fingerprint = FingerprintCalculator(self.installer)
        self.checker = ConsistencyChecker(self.store, self.fingerprint, self.layout)
        self._notify = notify or _log_notifier

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def checkout_path(self) -> Path:
        return self.project.root / self.layout.checkout_dir

    def current_state(self) -> CheckoutState:
        """Read the state of the Working Checkout from disk."""
        entry_id = None
        if self.checkout_path.is_dir():
            entry_id = self.store.checked_out_id(self.checkout_path)
        if entry_id is None:
            return CheckoutState.absent()
        return CheckoutState.present(entry_id)

    # ------------------------------------------------------------------
    # Verbs
    # ------------------------------------------------------------------

    def remove(self, state: CheckoutState) -> CheckoutState:
        """Delete the Working Checkout. Idempotent."""
        self._notify("REMOVE", self.layout.checkout_dir)
        _delete(self.checkout_path)
        # it may also have been checked out as a real submodule
        for leftover in self.project.submodule_leftovers():
            _delete(leftover)
        if state.is_present:
            logger.debug("Removed checkout of %s", state.entry_id)
        return CheckoutState.absent()

    def checkout(
        self,
        state: CheckoutState,
        target_id: str | None = None,
        *,
        force: bool = False,
    ) -> CheckoutState:
        """Replace the Working Checkout with *target_id* (default: the pointer).

        Unless *force* is set, the entry must be consistent with the local
        manifest; otherwise nothing on disk is changed.
        """
        target = target_id or self.project.pointer()
        if not target:
            raise UsageError(
                f"No {self.layout.checkout_dir} pointer is recorded in the index",
                remediation="Pass an entry id, or run 'depcache install'.",
            )

        self._notify("FETCH", target)
        self.store.fetch(target)

        if not force:
            result = self.checker.check(
                target,
                self.project.read_manifest(),
                verify_tree=self.config.verify_tree_on_checkout,
            )
            raise_for_result(result)

        state = self.remove(state)
        self._notify("CLONE", f"{self.layout.checkout_dir} {target}")
        self.store.materialize(target, self.checkout_path)
        return CheckoutState.present(target)

    def install(self, state: CheckoutState) -> CheckoutState:
        """Build a new cache entry from the local manifest and check it out.

        The entry is tagged in the local store but not pushed.
        """
        manifest = self.project.read_manifest()
        key = manifest_key(manifest)
        state = self.remove(state)

        self._notify("INSTALL", f"{self.layout.manifest_name} sha256 {key[:12]}")
        payload = self.installer.install(manifest)
        if payload.manifest_snapshot != manifest:
            raise ManifestMismatchError(
                f"The installer consumed a different {self.layout.manifest_name} "
                "than the one in the project",
                remediation="Check that nothing rewrites the manifest during installation.",
            )

        normalized = payload.without(STORE_METADATA_NAMES)
        entry_id = self.store.commit_tree(
            normalized.files, f"Build for {self.layout.manifest_name} sha256 {key}"
        )
        self.store.tag(entry_id, tag_for(entry_id))
        self._notify("COMMIT", entry_id)

        self._notify("CLONE", f"{self.layout.checkout_dir} {entry_id}")
        self.store.materialize(entry_id, self.checkout_path)
        return CheckoutState.present(entry_id)

    def push(self, state: CheckoutState) -> str:
        """Publish the checked-out entry's tag and return it."""
        usage = UsageError(
            "Nothing to push: no locally built entry is checked out",
            remediation="Run 'depcache install' first.",
        )
        if not state.is_present or state.entry_id is None:
            raise usage
        tag = tag_for(state.entry_id)
        try:
            self.store.resolve_tag(tag)
        except ObjectNotFoundError as exc:
            raise usage from exc
        self._notify("PUSH", tag)
        self.store.push(tag)
        return tag

    def ensure_fresh(self, state: CheckoutState) -> CheckoutState:
        """Make the Working Checkout match the project pointer and manifest.

        Afterwards the derived lock file in the project is refreshed from
        the checkout, written only when its content differs.
        """
        lock_target = self.project.root / self.layout.lock_target
        manifest_path = self.project.root / self.layout.manifest_name

        if not self.project.has_vcs():
            # Works for a release tarball, as long as the lock file is
            # already there and newer than the manifest.
            if (
                lock_target.exists()
                and manifest_path.exists()
                and lock_target.stat().st_mtime > manifest_path.stat().st_mtime
            ):
                logger.info("No git context; %s is up to date", self.layout.lock_target)
                return state
            raise UsageError(
                f"Can't update {self.layout.checkout_dir} unless running from git"
            )

        pointer = self.project.pointer()
        if not state.is_present or state.entry_id != pointer:
            state = self.checkout(state)

        snapshot_path = self.checkout_path / self.layout.snapshot_name
        snapshot = snapshot_path.read_bytes() if snapshot_path.is_file() else None
        if snapshot != self.project.read_manifest():
            raise ManifestMismatchError(
                f"{self.layout.manifest_name} is out of sync with {self.layout.checkout_dir}",
                remediation=(
                    f"If you modified {self.layout.manifest_name}, run "
                    "'depcache install' and add the result to the index."
                ),
            )

        lock_source = self.checkout_path / self.layout.lock_source
        if lock_source.is_file():
            fresh = lock_source.read_bytes()
            if not lock_target.is_file() or lock_target.read_bytes() != fresh:
                self._notify("COPY", self.layout.lock_target)
                shutil.copyfile(lock_source, lock_target)
        return state


def _delete(path: Path) -> None:
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)
