"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work against a
throwaway state database.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import re

import pytest
from typer.testing import CliRunner

from studyhabits.cli.main import app

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture
def cli(tmp_path):
    """Run a CLI command against a state file in tmp_path."""
    db = str(tmp_path / "state.db")

    def run(*args: str, input: str | None = None):
        return runner.invoke(app, ["--db", db, *args], input=input)

    return run


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0, result.output
        for command in ("deck", "card", "review", "timer", "read", "stats"):
            assert command in result.output

    @pytest.mark.parametrize("group", ["deck", "card", "timer", "read"])
    def test_group_help(self, group):
        result = runner.invoke(app, [group, "--help"])
        assert result.exit_code == 0, result.output


class TestDeckAndCards:
    """Test deck/card management."""

    def test_default_deck_listed(self, cli):
        result = cli("deck", "list")

        assert result.exit_code == 0, result.output
        assert "My first deck" in result.output

    def test_add_deck_and_cards(self, cli):
        assert cli("deck", "add", "Spanish").exit_code == 0
        result = cli("card", "add", "Spanish", "hola", "hello")
        assert result.exit_code == 0, result.output

        listing = cli("card", "list", "spanish")
        assert listing.exit_code == 0, listing.output
        assert "hola" in listing.output

    def test_unknown_deck(self, cli):
        result = cli("card", "add", "Nope", "q", "a")
        assert result.exit_code == 1

    def test_remove_deck(self, cli):
        cli("deck", "add", "Temp")
        result = cli("deck", "remove", "Temp", "--yes")

        assert result.exit_code == 0, result.output
        assert "Temp" not in cli("deck", "list").output

    def test_remove_missing_card(self, cli):
        assert cli("card", "remove", "missing").exit_code == 1


class TestReview:
    """Test the interactive review."""

    def test_review_one_card(self, cli):
        cli("deck", "add", "Spanish")
        cli("card", "add", "Spanish", "gato", "cat")

        result = cli("review", "Spanish", input="\n3\n")

        assert result.exit_code == 0, result.output
        assert "cat" in result.output
        assert "Session Complete" in result.output

        again = cli("review", "Spanish")
        assert "Nothing due" in again.output

    def test_review_quit_early(self, cli):
        cli("deck", "add", "Spanish")
        cli("card", "add", "Spanish", "perro", "dog")

        result = cli("review", "Spanish", input="q\n")

        assert result.exit_code == 0, result.output
        assert "Session Ended" in result.output


class TestTimer:
    """Test timer commands."""

    def test_status_inactive(self, cli):
        result = cli("timer", "status")

        assert result.exit_code == 0, result.output
        assert "25:00" in result.output
        assert "inactive" in result.output

    def test_start_pause_skip_stop(self, cli):
        assert "running" in cli("timer", "start").output
        assert "already running" in cli("timer", "start").output
        assert "paused" in cli("timer", "pause").output

        skipped = cli("timer", "skip")
        assert skipped.exit_code == 0, skipped.output
        assert "Short break" in skipped.output

        assert "stopped" in cli("timer", "stop").output
        assert "inactive" in cli("timer", "status").output

    def test_settings(self, cli):
        result = cli("timer", "settings", "--work", "50")

        assert result.exit_code == 0, result.output
        assert "50" in result.output
        assert "50:00" in cli("timer", "status").output

    def test_invalid_settings(self, cli):
        result = cli("timer", "settings", "--work", "0")
        assert result.exit_code == 1

    def test_watch(self, cli):
        cli("timer", "start")
        result = cli("timer", "watch", "--duration", "0.3")
        assert result.exit_code == 0, result.output


class TestReader:
    """Test reader commands."""

    def test_list_shows_sample(self, cli):
        result = cli("read", "list")

        assert result.exit_code == 0, result.output
        assert "Sample text" in result.output

    def test_add_and_run(self, cli):
        added = cli("read", "add", "Tiny", "--content", "quick brown fox", "--rate", "6000")
        assert added.exit_code == 0, added.output

        text_id = re.search(r"Added Tiny \((\w+),", added.output).group(1)
        result = cli("read", "run", text_id)

        assert result.exit_code == 0, result.output
        assert "Finished reading" in result.output
        assert "Tiny" in cli("stats").output

    def test_add_requires_content(self, cli):
        assert cli("read", "add", "Empty").exit_code == 1

    def test_run_unknown_text(self, cli):
        assert cli("read", "run", "missing").exit_code == 1


class TestStats:
    """Test stats command."""

    def test_stats_runs(self, cli):
        result = cli("stats")

        assert result.exit_code == 0, result.output
        assert "Total minutes" in result.output
