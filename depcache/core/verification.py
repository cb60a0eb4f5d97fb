"""Verification job — check every cache-relevant commit in a range.

Commits are examined oldest first. The job stops at the first commit whose
cache entry is missing or inconsistent with that commit's manifest; later
commits are not evaluated.
"""

from __future__ import annotations

import logging

from depcache.core.checker import ConsistencyChecker, raise_for_result
from depcache.core.errors import RemoteMissingError
from depcache.core.object_store import ObjectStore
from depcache.core.project import ProjectRepository
from depcache.models.entries import VerificationReport

logger = logging.getLogger(__name__)


class VerificationJob:
    """Fail-fast consistency check over ``base..head``.

    Parameters
    ----------
    project:
        Source of the commit range, pointers and manifests.
    store:
        Where cache entries are fetched into.
    checker:
        Performs the manifest and tree comparisons.
    """

    def __init__(
        self,
        project: ProjectRepository,
        store: ObjectStore,
        checker: ConsistencyChecker,
    ) -> None:
        self._project = project
        self._store = store
        self._checker = checker

    def run(self, base: str, head: str) -> VerificationReport:
        checked: list[str] = []
        for commit in self._project.commits_touching(base, head):
            entry_id = self._project.pointer_at(commit)
            logger.info("Verifying commit %s (entry %s)", commit, entry_id)
            try:
                self._store.fetch(entry_id)
            except RemoteMissingError as exc:
                raise RemoteMissingError(
                    f"Commit {commit} has cache entry {entry_id} which isn't on the server"
                ) from exc

            result = self._checker.check(entry_id, self._project.manifest_at(commit))
            if not result.consistent:
                raise_for_result(
                    result, commit=commit, details=self._project.describe(commit)
                )
            checked.append(commit)

        return VerificationReport(base=base, head=head, commits=checked)
