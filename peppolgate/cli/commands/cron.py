"""``peppolgate cron``: run integration cron events."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from peppolgate.config import config
from peppolgate.core.store import NodeStore
from peppolgate.models.integrations import CRON_EVENTS, IntegrationEvent
from peppolgate.plugins.client import IntegrationClient
from peppolgate.plugins.cron import CronScheduler

console = Console()

_INTERVALS = {event.value.rsplit(".", 1)[-1]: event for event in CRON_EVENTS}


def cron_cmd(
    interval: str = typer.Argument(
        None, help="short, medium or long (or the full event name). Omit with --forever."
    ),
    forever: bool = typer.Option(
        False, "--forever", help="Keep ticking on the built-in schedule until interrupted."
    ),
    db_path: Path = typer.Option(
        None, "--db", help="Node database. Defaults to PEPPOLGATE_DATABASE_PATH."
    ),
) -> None:
    """Post a cron event to every integration that enables it."""
    store = NodeStore(db_path or config.database_path)
    scheduler = CronScheduler(
        store, IntegrationClient(store, timeout=config.plugin_timeout_seconds)
    )

    if forever:
        if not config.cron_enabled:
            console.print("[yellow]Cron is disabled. Set PEPPOLGATE_CRON_ENABLED=true.[/yellow]")
            raise typer.Exit(code=1)
        try:
            asyncio.run(scheduler.run_forever(config.cron_tick_seconds))
        except KeyboardInterrupt:
            console.print("[dim]Stopped.[/dim]")
        return

    event = _INTERVALS.get(interval or "")
    if event is None and interval in IntegrationEvent.values():
        event = IntegrationEvent(interval)
    if event is None or event not in CRON_EVENTS:
        console.print(f"[red]Unknown cron interval '{interval}'.[/red] Use short, medium or long.")
        raise typer.Exit(code=2)

    summary = asyncio.run(scheduler.run_event(event))
    table = Table(title=event.value)
    table.add_column("Dispatched", style="green", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_row(str(summary.dispatched), str(summary.skipped), str(summary.failed))
    console.print(table)
