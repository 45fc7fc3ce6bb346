"""Unit tests for the CLI — Typer command registration and offline commands.

Exercises the commands that need no network through
typer.testing.CliRunner: numbering, detection, sandbox sending and cron.
"""

from __future__ import annotations

from typer.testing import CliRunner

from peppolgate.cli.app import app
from peppolgate.cli.commands import send as send_command
from peppolgate.config import NodeConfig
from peppolgate.core.store import NodeStore
from peppolgate.models.documents import Direction

runner = CliRunner()


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register all expected commands and show help."""

    def test_help_flag(self):
        """--help must list every command."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("verify", "resolve", "detect", "send", "cron", "next-number"):
            assert command in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()


# ---------------------------------------------------------------------------
# Test: document commands
# ---------------------------------------------------------------------------


class TestNextNumber:
    def test_increments_last_digit_run(self):
        result = runner.invoke(app, ["next-number", "INV-099"])
        assert result.exit_code == 0
        assert "INV-100" in result.output

    def test_no_digits(self):
        result = runner.invoke(app, ["next-number", "INV-A"])
        assert result.exit_code == 1
        assert "no digits" in result.output


class TestDetect:
    def test_billing_document(self, tmp_path, make_invoice_xml):
        path = tmp_path / "invoice.xml"
        path.write_text(make_invoice_xml(number="INV-042"))
        result = runner.invoke(app, ["detect", str(path)])
        assert result.exit_code == 0
        assert "Kind: invoice" in result.output
        assert "INV-042" in result.output

    def test_unrecognized_document(self, tmp_path):
        path = tmp_path / "memo.xml"
        path.write_text("<Memo/>")
        result = runner.invoke(app, ["detect", str(path)])
        assert result.exit_code == 1
        assert "could not be detected" in result.output


# ---------------------------------------------------------------------------
# Test: send and cron
# ---------------------------------------------------------------------------


class TestSend:
    def test_sandbox_send_is_stored(self, tmp_path, make_invoice_xml):
        """A sandbox send uses the simulated transport and persists the document."""
        path = tmp_path / "invoice.xml"
        path.write_text(make_invoice_xml())
        db = tmp_path / "cli.db"
        result = runner.invoke(
            app,
            ["send", str(path), "--sender", "0208:0123456789", "--country", "be", "--sandbox", "--db", str(db)],
        )
        assert result.exit_code == 0, result.output
        assert "simulated" in result.output
        [document] = NodeStore(db).list_documents("cli")
        assert document.direction == Direction.OUTGOING
        assert document.country_code == "BE"

    def test_not_found_recipient_fails(self, tmp_path, make_invoice_xml):
        path = tmp_path / "invoice.xml"
        path.write_text(make_invoice_xml())
        result = runner.invoke(
            app,
            [
                "send",
                str(path),
                "--sender",
                "0208:0123456789",
                "--recipient",
                "404:404",
                "--country",
                "BE",
                "--sandbox",
                "--db",
                str(tmp_path / "cli.db"),
            ],
        )
        assert result.exit_code == 1
        assert "Failed to send document over Peppol" in result.output

    def test_malformed_sender(self, tmp_path, make_invoice_xml):
        path = tmp_path / "invoice.xml"
        path.write_text(make_invoice_xml())
        result = runner.invoke(app, ["send", str(path), "--sender", "nope", "--country", "BE"])
        assert result.exit_code == 2

    def test_production_guard_failure_is_reported(self, tmp_path, monkeypatch, make_invoice_xml):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(
            send_command,
            "config",
            NodeConfig(environment="production", as4_base_url="", as4_token=""),
        )
        path = tmp_path / "invoice.xml"
        path.write_text(make_invoice_xml())
        result = runner.invoke(
            app,
            ["send", str(path), "--sender", "0208:0123456789", "--country", "BE", "--db", str(tmp_path / "cli.db")],
        )
        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert "Production configuration" in result.output
        assert "as4_token" in result.output


class TestCron:
    def test_runs_named_interval(self, tmp_path):
        result = runner.invoke(app, ["cron", "short", "--db", str(tmp_path / "cli.db")])
        assert result.exit_code == 0
        assert "integration.cron.short" in result.output

    def test_unknown_interval(self, tmp_path):
        result = runner.invoke(app, ["cron", "hourly", "--db", str(tmp_path / "cli.db")])
        assert result.exit_code == 2
