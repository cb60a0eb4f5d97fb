"""``depcache make-package-lock`` — build-system glue.

The derived lock file is the stamp that everything using the checkout
depends on, so this is what drives the whole process from a build: make
the checkout match the index, insist that it matches the manifest, and
refresh the lock file only when its content changed.
"""

from __future__ import annotations

from depcache.cli.commands import _common
from depcache.core.errors import DepcacheError


def make_package_lock_cmd() -> None:
    """Ensure the checkout matches the index and refresh the lock file."""
    orchestrator = _common.build_orchestrator()
    try:
        orchestrator.ensure_fresh(orchestrator.current_state())
    except DepcacheError as exc:
        _common.report_failure(exc)
