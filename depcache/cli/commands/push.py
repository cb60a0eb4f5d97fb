"""``depcache push`` — publish the checked-out entry to the remote cache."""

from __future__ import annotations

from depcache.cli.commands import _common
from depcache.core.errors import DepcacheError


def push_cmd() -> None:
    """Push the tag of the locally built entry to the remote cache repository."""
    orchestrator = _common.build_orchestrator()
    try:
        tag = orchestrator.push(orchestrator.current_state())
    except DepcacheError as exc:
        _common.report_failure(exc)
    _common.console.print(tag, highlight=False)
