"""``peppolgate send``: transmit a document from the command line.

The sending entity is described on the command line rather than looked
up, so the command works without a tenant directory.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from peppolgate.cli.runtime import build_orchestrator
from peppolgate.config import config
from peppolgate.core.entities import InMemoryEntityDirectory
from peppolgate.core.production_guard import ProductionConfigError
from peppolgate.core.store import NodeStore
from peppolgate.models.addresses import AddressFormatError, ParticipantAddress
from peppolgate.models.entities import BusinessEntity
from peppolgate.models.transmission import SenderContext, SubmissionSource

console = Console()

_CLI_TENANT = "cli"
_CLI_ENTITY = "cli-sender"


def send_cmd(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Document XML file."),
    sender: str = typer.Option(..., "--sender", help="Sender participant address."),
    recipient: str = typer.Option(
        None, "--recipient", help="Recipient address. Read from the document when omitted."
    ),
    country: str = typer.Option(..., "--country", help="Sender country code (C1)."),
    sandbox: bool = typer.Option(False, "--sandbox", help="Use the simulated transport."),
    test_network: bool = typer.Option(
        False, "--test-network", help="Send over the live test network."
    ),
    db_path: Path = typer.Option(
        None, "--db", help="Node database. Defaults to PEPPOLGATE_DATABASE_PATH."
    ),
) -> None:
    """Send a document over the network (or the sandbox)."""
    try:
        identifier = ParticipantAddress.parse(sender)
    except AddressFormatError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc

    entity = BusinessEntity(
        entity_id=_CLI_ENTITY,
        tenant_id=_CLI_TENANT,
        name=str(identifier),
        country_code=country.upper(),
        identifier=identifier,
        is_sandbox=sandbox,
        use_test_network=test_network,
    )
    store = NodeStore(db_path or config.database_path)
    try:
        orchestrator = build_orchestrator(config, InMemoryEntityDirectory([entity]), store)
    except ProductionConfigError as exc:
        console.print(Panel(str(exc), title="[red]Production configuration error[/red]"))
        raise typer.Exit(code=1) from exc

    result = asyncio.run(
        orchestrator.transmit(
            SenderContext(
                source=SubmissionSource.API,
                tenant_id=_CLI_TENANT,
                entity_id=_CLI_ENTITY,
                recipient=recipient,
            ),
            file.read_text(encoding="utf-8"),
        )
    )

    if result.validation is not None and result.validation.is_invalid:
        console.print(
            Panel(result.validation.describe_findings(), title="Validation findings", style="yellow")
        )

    if not result.success:
        body = result.details
        if result.additional_context and result.additional_context != result.details:
            body = f"{body}\n{result.additional_context}".strip()
        console.print(Panel(body or "-", title=f"[red]{result.error}[/red]"))
        raise typer.Exit(code=1)

    mode = "simulated" if result.simulated else "network"
    console.print(
        f"[green]Sent[/green] {result.kind.value if result.kind else 'document'} "
        f"{result.sender} -> {result.recipient} ({mode}) as [bold]{result.document_id}[/bold]"
    )
