"""Shared CLI plumbing: consoles, orchestrator construction, failure output."""

from __future__ import annotations

from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from depcache.config import DepcacheConfig
from depcache.core.errors import (
    ConsistencyError,
    DepcacheError,
    ManifestMismatchError,
)
from depcache.core.lifecycle import LifecycleOrchestrator

console = Console()
err_console = Console(stderr=True)

_MAX_LISTED_FILES = 50


def print_message(verb: str, subject: str) -> None:
    """Render a progress line like ``  CLONE    node_modules <id>``."""
    err_console.print(f"  [bold cyan]{verb:<8}[/bold cyan] {escape(subject)}", highlight=False)


def build_orchestrator() -> LifecycleOrchestrator:
    """Create the orchestrator for this invocation from the environment."""
    config = DepcacheConfig()
    # In verbose mode the command trace replaces the friendly messages.
    notify = None if config.verbose else print_message
    return LifecycleOrchestrator(config, notify=notify)


def _print_consistency(exc: ConsistencyError) -> None:
    title = "Manifest mismatch" if isinstance(exc, ManifestMismatchError) else "Tree mismatch"
    err_console.print(
        Panel(escape(str(exc)), title=f"[bold]{title}[/bold]", border_style="red")
    )
    if exc.details:
        err_console.print(escape(exc.details), highlight=False)

    result = exc.result
    if result is None:
        return
    for line in result.manifest_diff:
        style = "green" if line.startswith("+") else "red" if line.startswith("-") else None
        err_console.print(line, style=style, markup=False, highlight=False)

    if result.changed_files:
        table = Table(title="Files differing from a fresh install")
        table.add_column("Change", style="yellow")
        table.add_column("Path", style="cyan")
        for change in result.changed_files[:_MAX_LISTED_FILES]:
            table.add_row(change.kind.value, escape(change.path))
        err_console.print(table)
        hidden = len(result.changed_files) - _MAX_LISTED_FILES
        if hidden > 0:
            err_console.print(f"[dim]... and {hidden} more[/dim]")


def report_failure(exc: DepcacheError) -> NoReturn:
    """Print a diagnostic for *exc* and exit with status 1."""
    if isinstance(exc, ConsistencyError):
        _print_consistency(exc)
    else:
        err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
    if exc.remediation:
        err_console.print(f"\n[dim]{escape(exc.remediation)}[/dim]")
    raise typer.Exit(code=1)
