"""``depcache remove`` — delete the Working Checkout."""

from __future__ import annotations

from depcache.cli.commands import _common
from depcache.core.errors import DepcacheError


def remove_cmd() -> None:
    """Delete the checkout directory, including submodule leftovers.

    Succeeds when there is nothing to remove.
    """
    orchestrator = _common.build_orchestrator()
    try:
        orchestrator.remove(orchestrator.current_state())
    except DepcacheError as exc:
        _common.report_failure(exc)
