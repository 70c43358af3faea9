"""Unit tests for console output."""

import pytest

from fwd.core.output import Console, Verbosity


@pytest.fixture
def out():
    console = Console()
    console.configure(Verbosity.NORMAL, no_color=True)
    return console


class TestConsole:
    """Tests for verbosity filtering and stream selection."""

    def test_errors_go_to_stderr(self, out, capsys):
        """Warnings and errors are written to stderr, info to stdout."""
        out.info("opening")
        out.warn("careful")
        out.error("broken")

        captured = capsys.readouterr()
        assert "[INFO] opening" in captured.out
        assert "careful" in captured.err
        assert "[ERROR] broken" in captured.err
        assert "broken" not in captured.out

    def test_quiet_keeps_problems(self, out, capsys):
        """Quiet mode drops progress but keeps warnings, errors and hints."""
        out.configure(Verbosity.QUIET, no_color=True)

        out.step("punching")
        out.success("done")
        out.hint("use sudo")
        out.error("failed")

        captured = capsys.readouterr()
        assert "punching" not in captured.out
        assert "done" not in captured.out
        assert "use sudo" in captured.out
        assert "failed" in captured.err

    def test_debug_needs_debug_level(self, out, capsys):
        """Debug lines appear only at -vvv."""
        out.debug("hidden")
        out.configure(Verbosity.DEBUG + 5, no_color=True)
        out.debug("shown")

        assert out.verbosity == Verbosity.DEBUG
        captured = capsys.readouterr()
        assert "hidden" not in captured.out
        assert "shown" in captured.out

    def test_dry_run_msg(self, out, capsys):
        """Dry-run lines are printed only in dry-run mode."""
        out.dry_run_msg("skipped")
        out.configure(dry_run=True, no_color=True)
        out.dry_run_msg("iptables -I INPUT")

        captured = capsys.readouterr()
        assert "skipped" not in captured.out
        assert "Would: iptables -I INPUT" in captured.out

    def test_settings_table(self, out, capsys):
        """Booleans render as yes/no and None as a dash."""
        out.settings("fwd", {"IPv6 always enabled": False, "Command timeout (s)": None})

        captured = capsys.readouterr()
        assert "no" in captured.out
        assert "-" in captured.out
