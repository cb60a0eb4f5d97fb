"""``depcache tree-hash COMMIT`` — expected tree hash for a commit's manifest.

Installs the manifest from COMMIT from scratch and prints the hash the
cached tree for it must have. Used by external verification workflows.
"""

from __future__ import annotations

import typer

from depcache.cli.commands import _common
from depcache.core.errors import DepcacheError


def tree_hash_cmd(
    commit: str = typer.Argument(..., help="Commit whose manifest to fingerprint."),
) -> None:
    """Print the expected tree hash for the manifest as of COMMIT."""
    orchestrator = _common.build_orchestrator()
    try:
        manifest = orchestrator.project.manifest_at(commit)
        tree_hash = orchestrator.fingerprint.expected_hash(manifest)
    except DepcacheError as exc:
        _common.report_failure(exc)
    typer.echo(tree_hash)
