"""``depcache install`` — build a fresh cache entry from the local manifest.

Runs the hermetic installer, commits the result to the local object
database and checks it out. Nothing is pushed and the index is left
alone: adding the new pointer and publishing the entry are separate steps.
"""

from __future__ import annotations

from rich.markup import escape

from depcache.cli.commands import _common
from depcache.core.errors import DepcacheError


def install_cmd() -> None:
    """Install dependencies from scratch and cache the resulting tree."""
    orchestrator = _common.build_orchestrator()
    try:
        state = orchestrator.install(orchestrator.current_state())
    except DepcacheError as exc:
        _common.report_failure(exc)

    checkout_dir = escape(orchestrator.layout.checkout_dir)
    _common.err_console.print(
        "\n".join([
            "",
            f"[bold green]Built cache entry {state.entry_id}[/bold green]",
            "",
            f"[dim]Record it with:[/dim]   git add {checkout_dir}",
            "[dim]Publish it with:[/dim]  depcache push",
        ])
    )
