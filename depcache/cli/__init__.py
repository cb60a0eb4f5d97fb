"""depcache CLI — Typer-based command-line interface.

Provides the ``depcache`` command with one subcommand per lifecycle verb
(remove, checkout, install, push), the build-system glue
(make-package-lock) and the verification entry points (tree-hash, verify).

Progress and diagnostics go to stderr via Rich; stdout carries only
results meant for scripts.
"""
