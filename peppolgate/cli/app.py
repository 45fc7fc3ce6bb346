"""Main Typer application: imports and registers all CLI commands.

Entry point: ``peppolgate`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from peppolgate.cli.commands.cron import cron_cmd
from peppolgate.cli.commands.discovery import resolve_cmd, verify_cmd
from peppolgate.cli.commands.documents import detect_cmd, next_number_cmd
from peppolgate.cli.commands.send import send_cmd
from peppolgate.cli.runtime import configure_logging
from peppolgate.config import config

app = typer.Typer(
    name="peppolgate",
    help="peppolgate: Peppol access-point node (discovery, validation, transmission).",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def _setup(
    log_level: str = typer.Option(None, "--log-level", help="Override PEPPOLGATE_LOG_LEVEL."),
) -> None:
    configure_logging(log_level or config.log_level)


# Register subcommands
app.command(name="verify", help="Verify a recipient's registration.")(verify_cmd)
app.command(name="resolve", help="Resolve a participant's metadata publisher.")(resolve_cmd)
app.command(name="detect", help="Detect a document's type.")(detect_cmd)
app.command(name="send", help="Send a document.")(send_cmd)
app.command(name="cron", help="Run integration cron events.")(cron_cmd)
app.command(name="next-number", help="Suggest the next document number.")(next_number_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
