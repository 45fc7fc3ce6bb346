"""``peppolgate verify`` and ``peppolgate resolve``: participant discovery."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from peppolgate.cli.runtime import build_verifier
from peppolgate.config import config
from peppolgate.models.addresses import AddressFormatError, ParticipantAddress

console = Console()


def _parse_address(value: str) -> ParticipantAddress:
    try:
        return ParticipantAddress.coerce(value, config.default_address_scheme)
    except AddressFormatError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc


def verify_cmd(
    address: str = typer.Argument(..., help="Participant address, e.g. 0208:0123456789."),
    metadata: bool = typer.Option(False, "--metadata", help="Fetch per-type service metadata."),
    business_card: bool = typer.Option(
        False, "--business-card", help="Fetch the directory business card."
    ),
    test_network: bool = typer.Option(False, "--test-network", help="Use the test network."),
) -> None:
    """Check whether a participant is registered and what it can receive."""
    participant = _parse_address(address)
    verifier = build_verifier(config)
    result = asyncio.run(
        verifier.verify_recipient(
            participant,
            include_metadata=metadata,
            include_business_card=business_card,
            use_test_network=test_network,
        )
    )

    if not result.is_valid:
        console.print(f"[yellow]{result.address} is not registered.[/yellow]")
        if result.publisher_url:
            console.print(f"[dim]Publisher: {result.publisher_url}[/dim]")
        raise typer.Exit(code=1)

    console.print(f"[green]{result.address} is registered[/green] at {result.publisher_url}")
    if result.business_card is not None:
        console.print(
            f"Business card: [bold]{result.business_card.name}[/bold] "
            f"({result.business_card.country_code or '-'})"
        )

    table = Table(title="Supported document types")
    table.add_column("Name", style="cyan")
    table.add_column("Document type")
    if metadata:
        table.add_column("Endpoint")
        table.add_column("Certificate expiry")
    for entry in result.supported_document_types:
        row = [entry.name, entry.document_type_id]
        if metadata:
            if entry.metadata is not None:
                expiry = entry.metadata.certificate_expiry
                row += [entry.metadata.endpoint_url, expiry.isoformat() if expiry else "-"]
            else:
                row += [f"[red]{entry.error or 'unavailable'}[/red]", "-"]
        table.add_row(*row)
    console.print(table)


def resolve_cmd(
    address: str = typer.Argument(..., help="Participant address, e.g. 0208:0123456789."),
    test_network: bool = typer.Option(False, "--test-network", help="Use the test network."),
) -> None:
    """Show the DNS name and metadata publisher of a participant."""
    participant = _parse_address(address)
    verifier = build_verifier(config)
    console.print(f"DNS name: {verifier.dns_name(participant, use_test_network=test_network)}")
    url = asyncio.run(
        verifier.resolve_publisher_url(participant, use_test_network=test_network)
    )
    if url is None:
        console.print("[yellow]No publisher found.[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"Publisher: [green]{url}[/green]")
