"""Main Typer application — imports and registers all CLI commands.

Entry point: ``depcache`` (configured via pyproject.toml console_scripts).

Commands: remove, checkout, install, push, make-package-lock, tree-hash,
verify. The underscore spellings ``make_package_lock`` and ``tree_hash``
are accepted as hidden aliases.
"""

from __future__ import annotations

import logging
import sys

import click
import typer

from depcache.cli.commands.checkout import checkout_cmd
from depcache.cli.commands.install import install_cmd
from depcache.cli.commands.make_package_lock import make_package_lock_cmd
from depcache.cli.commands.push import push_cmd
from depcache.cli.commands.remove import remove_cmd
from depcache.cli.commands.tree_hash import tree_hash_cmd
from depcache.cli.commands.verify import verify_cmd
from depcache.config import DepcacheConfig

app = typer.Typer(
    name="depcache",
    help="depcache: reproducible, verifiable cache of installed dependency trees.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="remove", help="Delete the checkout directory.")(remove_cmd)
app.command(name="checkout", help="Check out a cached tree.")(checkout_cmd)
app.command(name="install", help="Build and cache a tree from the local manifest.")(install_cmd)
app.command(name="push", help="Publish the locally built entry.")(push_cmd)
app.command(
    name="make-package-lock",
    help="Build glue: sync the checkout with the index and refresh the lock file.",
)(make_package_lock_cmd)
app.command(name="make_package_lock", hidden=True)(make_package_lock_cmd)
app.command(name="tree-hash", help="Print the expected tree hash for a commit's manifest.")(
    tree_hash_cmd
)
app.command(name="tree_hash", hidden=True)(tree_hash_cmd)
app.command(name="verify", help="Verify cache entries across a commit range.")(verify_cmd)


@app.callback()
def configure_logging() -> None:
    """depcache: reproducible, verifiable cache of installed dependency trees."""
    config = DepcacheConfig()
    level = logging.DEBUG if config.verbose else config.log_level.upper()
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main() -> None:
    """CLI entry point. Every failure, usage errors included, exits with 1."""
    try:
        rv = app(standalone_mode=False)
    except click.UsageError as exc:
        exc.show()
        sys.exit(1)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
    sys.exit(rv if isinstance(rv, int) else 0)


if __name__ == "__main__":
    main()
