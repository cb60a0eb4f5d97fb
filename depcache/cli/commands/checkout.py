"""``depcache checkout [ENTRY_ID] [--force]`` — check out a cache entry.

Defaults to the entry recorded in the index. The entry is fetched from
the remote cache repository if needed and, unless ``--force`` is given,
must have been built from the local manifest.
"""

from __future__ import annotations

import typer

from depcache.cli.commands import _common
from depcache.core.errors import DepcacheError


def checkout_cmd(
    entry_id: str = typer.Argument(
        None,
        help="Cache entry to check out. Defaults to the pointer in the index.",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        help="Check out even if the entry was built from a different manifest.",
    ),
) -> None:
    """Replace the checkout directory with a cached tree."""
    orchestrator = _common.build_orchestrator()
    try:
        orchestrator.checkout(orchestrator.current_state(), entry_id, force=force)
    except DepcacheError as exc:
        _common.report_failure(exc)
