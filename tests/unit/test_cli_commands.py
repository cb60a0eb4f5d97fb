"""Unit tests for the CLI — command registration, output and exit codes.

The orchestrator factory is replaced by one wired to the test doubles, so
every command runs against the fake project and local object stores.
"""

from __future__ import annotations

import sys

import pytest
from typer.testing import CliRunner

from depcache.cli.app import app, main
from depcache.cli.commands import _common
from depcache.core.installer import read_payload
from depcache.models.entries import CheckoutState

runner = CliRunner()


@pytest.fixture
def cli_orchestrator(monkeypatch, orchestrator):
    """Route every command to the test orchestrator."""
    monkeypatch.setattr(_common, "build_orchestrator", lambda: orchestrator)
    return orchestrator


# ---------------------------------------------------------------------------
# Test: registration and help
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register every verb and show help."""

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("remove", "checkout", "install", "push", "make-package-lock", "tree-hash", "verify"):
            assert name in result.output

    def test_underscore_aliases_are_hidden(self):
        result = runner.invoke(app, ["--help"])
        assert "make_package_lock" not in result.output
        assert "tree_hash" not in result.output

    @pytest.mark.parametrize("name", ["make_package_lock", "tree_hash"])
    def test_underscore_aliases_work(self, name):
        result = runner.invoke(app, [name, "--help"])
        assert result.exit_code == 0


# ---------------------------------------------------------------------------
# Test: verbs
# ---------------------------------------------------------------------------


class TestCommands:
    def test_remove(self, cli_orchestrator):
        cli_orchestrator.install(CheckoutState.absent())
        result = runner.invoke(app, ["remove"])
        assert result.exit_code == 0
        assert not cli_orchestrator.checkout_path.exists()

    def test_install_prints_next_steps(self, cli_orchestrator, local_store):
        result = runner.invoke(app, ["install"])
        assert result.exit_code == 0
        state = cli_orchestrator.current_state()
        assert state.entry_id in result.output
        assert "git add node_modules" in result.output
        assert "depcache push" in result.output

    def test_push_prints_tag(self, cli_orchestrator, remote_store):
        state = cli_orchestrator.install(CheckoutState.absent())
        result = runner.invoke(app, ["push"])
        assert result.exit_code == 0
        assert f"sha-{state.entry_id}" in result.output
        assert remote_store.has(state.entry_id)

    def test_push_without_install(self, cli_orchestrator):
        result = runner.invoke(app, ["push"])
        assert result.exit_code == 1
        assert "Nothing to push" in result.output
        assert "depcache install" in result.output

    def test_checkout_mismatch(self, cli_orchestrator, project, manifest_v2):
        state = cli_orchestrator.install(CheckoutState.absent())
        project.write_manifest(manifest_v2)
        result = runner.invoke(app, ["checkout", state.entry_id])
        assert result.exit_code == 1
        assert "Manifest mismatch" in result.output

    def test_checkout_force(self, cli_orchestrator, project, manifest_v2):
        state = cli_orchestrator.install(CheckoutState.absent())
        cli_orchestrator.remove(state)
        project.write_manifest(manifest_v2)
        result = runner.invoke(app, ["checkout", "--force", state.entry_id])
        assert result.exit_code == 0
        assert cli_orchestrator.current_state() == state

    def test_checkout_missing_entry(self, cli_orchestrator):
        result = runner.invoke(app, ["checkout", "e" * 64])
        assert result.exit_code == 1
        assert "isn't on the remote" in result.output

    def test_make_package_lock(self, cli_orchestrator, project):
        state = cli_orchestrator.install(CheckoutState.absent())
        cli_orchestrator.push(state)
        cli_orchestrator.remove(state)
        project.index_pointer = state.entry_id
        result = runner.invoke(app, ["make-package-lock"])
        assert result.exit_code == 0
        assert (project.root / "package-lock.json").is_file()

    def test_tree_hash(self, cli_orchestrator, project, manifest_v1):
        project.commit("c1")
        result = runner.invoke(app, ["tree-hash", "c1"])
        assert result.exit_code == 0
        assert result.output.strip() == cli_orchestrator.fingerprint.expected_hash(manifest_v1)

    def test_verify_reports_commits(self, cli_orchestrator, project):
        project.commit("base", touches=False)
        state = cli_orchestrator.install(CheckoutState.absent())
        cli_orchestrator.push(state)
        project.index_pointer = state.entry_id
        project.commit("c1")
        result = runner.invoke(app, ["verify", "base", "c1"])
        assert result.exit_code == 0
        assert "c1" in result.output
        assert "Verified 1 commit(s)." in result.output

    def test_verify_nothing_to_do(self, cli_orchestrator, project):
        project.commit("base", touches=False)
        project.commit("head", touches=False)
        result = runner.invoke(app, ["verify", "base", "head"])
        assert result.exit_code == 0
        assert "No commits" in result.output

    def test_verify_failure_shows_commit(self, cli_orchestrator, project, manifest_v2):
        project.commit("base", touches=False)
        project.index_pointer = cli_orchestrator.install(CheckoutState.absent()).entry_id
        cli_orchestrator.push(CheckoutState.present(project.index_pointer))
        project.write_manifest(manifest_v2)
        project.commit("c1")
        result = runner.invoke(app, ["verify", "base", "c1"])
        assert result.exit_code == 1
        assert "Commit c1" in result.output
        assert "package.json | 2 +-" in result.output

    def test_install_with_broken_installer_output(self, monkeypatch, make_orchestrator, layout):
        class _Garbled:
            def install(self, manifest):
                return read_payload(b"npm ERR! network timeout\n" * 40, layout)

        broken = make_orchestrator(installer=_Garbled())
        monkeypatch.setattr(_common, "build_orchestrator", lambda: broken)
        result = runner.invoke(app, ["install"])
        assert result.exit_code == 1
        assert "not a tar archive" in result.output
        assert "Traceback" not in result.output
        assert not broken.checkout_path.exists()


# ---------------------------------------------------------------------------
# Test: entry point exit codes
# ---------------------------------------------------------------------------


class TestMain:
    def test_unknown_command_exits_1(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["depcache", "no-such-verb"])
        with pytest.raises(SystemExit) as info:
            main()
        assert info.value.code == 1

    def test_missing_argument_exits_1(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["depcache", "verify", "base"])
        with pytest.raises(SystemExit) as info:
            main()
        assert info.value.code == 1

    def test_failure_exits_1(self, monkeypatch, cli_orchestrator):
        monkeypatch.setattr(sys, "argv", ["depcache", "push"])
        with pytest.raises(SystemExit) as info:
            main()
        assert info.value.code == 1

    def test_success_exits_0(self, monkeypatch, cli_orchestrator):
        monkeypatch.setattr(sys, "argv", ["depcache", "remove"])
        with pytest.raises(SystemExit) as info:
            main()
        assert info.value.code == 0
