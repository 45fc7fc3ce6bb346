"""``peppolgate detect`` and ``peppolgate next-number``."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from peppolgate.core.numbering import increment_document_number
from peppolgate.documents.classifier import detect_document_type, parse_document
from peppolgate.resolver.doctypes import (
    UnknownDocumentTypeError,
    find_by_document_type_id,
    get_document_type_info,
    get_document_type_name,
)

console = Console()


def detect_cmd(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Document XML file."),
) -> None:
    """Classify a document and show its type and process identifiers."""
    body = file.read_text(encoding="utf-8")
    document_type_id = detect_document_type(body)
    if document_type_id is None:
        console.print("[red]Document type could not be detected.[/red]")
        raise typer.Exit(code=1)

    classified = parse_document(document_type_id, body, {"file": str(file)})
    preset = find_by_document_type_id(document_type_id)
    process_id = preset.process_id if preset else None
    if process_id is None:
        try:
            process_id = get_document_type_info(classified.kind).process_id
        except UnknownDocumentTypeError:
            process_id = None

    console.print(f"Type: [cyan]{get_document_type_name(document_type_id)}[/cyan]")
    console.print(f"Document type id: {document_type_id}")
    console.print(f"Kind: {classified.kind.value}")
    console.print(f"Process id: {process_id or '[yellow]unknown[/yellow]'}")
    if classified.parsed is not None:
        parsed = classified.parsed
        console.print(f"Number: {parsed.number or '-'}  Issued: {parsed.issue_date or '-'}")
        console.print(f"Seller: {parsed.seller.name or '-'} ({parsed.seller.address or '-'})")
        console.print(f"Buyer: {parsed.buyer.name or '-'} ({parsed.buyer.address or '-'})")
    elif classified.parse_error:
        console.print(f"[yellow]Not parsed: {classified.parse_error}[/yellow]")


def next_number_cmd(
    value: str = typer.Argument(..., help="Current document number, e.g. INV-099."),
) -> None:
    """Suggest the document number following VALUE."""
    suggestion = increment_document_number(value)
    if suggestion is None:
        console.print(f"[red]'{value}' contains no digits to increment.[/red]")
        raise typer.Exit(code=1)
    console.print(suggestion)
