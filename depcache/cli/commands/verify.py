"""``depcache verify BASE HEAD`` — check cache entries across a commit range.

For every commit in BASE..HEAD that changes the manifest or the checkout
pointer, the recorded cache entry must exist on the remote and match the
manifest of that commit, down to the tree hash. Stops at the first failure.
"""

from __future__ import annotations

import typer

from depcache.cli.commands import _common
from depcache.core.errors import DepcacheError
from depcache.core.verification import VerificationJob


def verify_cmd(
    base: str = typer.Argument(..., help="Base revision (excluded)."),
    head: str = typer.Argument(..., help="Head revision (included)."),
) -> None:
    """Verify every cache-relevant commit between BASE and HEAD."""
    orchestrator = _common.build_orchestrator()
    job = VerificationJob(orchestrator.project, orchestrator.store, orchestrator.checker)
    try:
        report = job.run(base, head)
    except DepcacheError as exc:
        _common.report_failure(exc)

    if not report.commits:
        _common.err_console.print("[dim]No commits touch the manifest or its cache.[/dim]")
        return
    for commit in report.commits:
        _common.err_console.print(f"  [green]ok[/green]  {commit}", highlight=False)
    _common.err_console.print(f"[bold green]Verified {len(report.commits)} commit(s).[/bold green]")
