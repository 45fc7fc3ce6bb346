"""Shared test fixtures for peppolgate."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from peppolgate.core.entities import InMemoryEntityDirectory
from peppolgate.core.store import NodeStore
from peppolgate.models.addresses import NaptrRecord, ParticipantAddress
from peppolgate.models.entities import BusinessEntity
from peppolgate.models.integrations import ActivatedIntegration, IntegrationManifest

BILLING_CUSTOMIZATION = (
    "urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0"
)
SELF_BILLING_CUSTOMIZATION = (
    "urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:selfbilling:3.0"
)
PLUGIN_URL = "https://plugin.test"


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def store(tmp_dir: Path) -> NodeStore:
    """Provide a fresh NodeStore backed by a temp SQLite database."""
    return NodeStore(tmp_dir / "test_node.db")


# ---------------------------------------------------------------------------
# Business entities
# ---------------------------------------------------------------------------


@pytest.fixture
def make_entity() -> Callable[..., BusinessEntity]:
    """Factory fixture: build a BusinessEntity with sensible defaults."""

    def _factory(
        entity_id: str = "ent-seller",
        tenant_id: str = "team-1",
        address: str = "0208:0123456789",
        **overrides: Any,
    ) -> BusinessEntity:
        defaults: dict[str, Any] = {
            "entity_id": entity_id,
            "tenant_id": tenant_id,
            "name": "Seller BV",
            "country_code": "BE",
            "identifier": ParticipantAddress.parse(address),
        }
        defaults.update(overrides)
        return BusinessEntity(**defaults)

    return _factory


@pytest.fixture
def seller(make_entity: Callable[..., BusinessEntity]) -> BusinessEntity:
    """A production seller that accepts documents by email."""
    return make_entity(send_email="invoices@seller.test")


@pytest.fixture
def entities(seller: BusinessEntity) -> InMemoryEntityDirectory:
    """A directory holding only the seller."""
    return InMemoryEntityDirectory([seller])


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def _party_xml(section: str, name: str, endpoint: str | None) -> str:
    endpoint_xml = ""
    if endpoint:
        scheme, _, identifier = endpoint.partition(":")
        endpoint_xml = f'<cbc:EndpointID schemeID="{scheme}">{identifier}</cbc:EndpointID>'
    return (
        f"<cac:{section}><cac:Party>{endpoint_xml}"
        f"<cac:PartyName><cbc:Name>{name}</cbc:Name></cac:PartyName>"
        f"</cac:Party></cac:{section}>"
    )


def build_invoice_xml(
    *,
    number: str = "INV-001",
    seller_endpoint: str | None = "0208:0123456789",
    buyer_endpoint: str | None = "0208:0987654321",
    self_billing: bool = False,
    credit_note: bool = False,
    customization: str | None = None,
) -> str:
    """A minimal UBL invoice or credit note."""
    root = "CreditNote" if credit_note else "Invoice"
    if customization is None:
        customization = SELF_BILLING_CUSTOMIZATION if self_billing else BILLING_CUSTOMIZATION
    customization_xml = (
        f"<cbc:CustomizationID>{customization}</cbc:CustomizationID>" if customization else ""
    )
    number_xml = f"<cbc:ID>{number}</cbc:ID>" if number else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        f'<{root} xmlns="urn:oasis:names:specification:ubl:schema:xsd:{root}-2"'
        ' xmlns:cac="urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"'
        ' xmlns:cbc="urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2">'
        f"{customization_xml}"
        f"{number_xml}"
        "<cbc:IssueDate>2026-01-15</cbc:IssueDate>"
        "<cbc:DocumentCurrencyCode>EUR</cbc:DocumentCurrencyCode>"
        f"{_party_xml('AccountingSupplierParty', 'Seller BV', seller_endpoint)}"
        f"{_party_xml('AccountingCustomerParty', 'Buyer NV', buyer_endpoint)}"
        "<cac:LegalMonetaryTotal>"
        '<cbc:PayableAmount currencyID="EUR">121.00</cbc:PayableAmount>'
        "</cac:LegalMonetaryTotal>"
        f"</{root}>"
    )


@pytest.fixture
def make_invoice_xml() -> Callable[..., str]:
    """Factory fixture: build a UBL billing document."""
    return build_invoice_xml


# ---------------------------------------------------------------------------
# Integrations
# ---------------------------------------------------------------------------


@pytest.fixture
def make_manifest() -> Callable[..., dict[str, Any]]:
    """Factory fixture: raw manifest JSON as a plugin would publish it."""

    def _factory(**overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": "1.0.0",
            "name": "Bookkeeping Sync",
            "description": "Pushes received invoices to the ledger",
            "url": PLUGIN_URL,
            "capabilities": [
                {
                    "event": "document.received",
                    "description": "Sync received invoices",
                    "required": True,
                },
                {
                    "event": "integration.cron.short",
                    "description": "Poll for payment updates",
                    "required": False,
                },
                {
                    "event": "integration.setup",
                    "description": "Create the remote journal",
                    "required": False,
                },
            ],
            "authTypes": ["bearer"],
            "fields": [
                {
                    "id": "journal",
                    "title": "Journal",
                    "description": "Target journal code",
                    "type": "string",
                    "required": True,
                },
                {
                    "id": "dry_run",
                    "title": "Dry run",
                    "description": "Only log what would be synced",
                    "type": "boolean",
                    "required": False,
                },
            ],
        }
        data.update(overrides)
        return data

    return _factory


@pytest.fixture
def make_configuration() -> Callable[..., dict[str, Any]]:
    """Factory fixture: raw configuration JSON matching ``make_manifest``."""

    def _factory(**overrides: Any) -> dict[str, Any]:
        data: dict[str, Any] = {
            "auth": {"type": "bearer", "token": "secret-token"},
            "fields": [{"id": "journal", "type": "string", "value": "PURCH"}],
            "capabilities": [
                {"event": "document.received", "enabled": True},
                {"event": "integration.cron.short", "enabled": True},
            ],
        }
        data.update(overrides)
        return data

    return _factory


@pytest.fixture
def make_integration(
    make_manifest: Callable[..., dict[str, Any]],
    make_configuration: Callable[..., dict[str, Any]],
) -> Callable[..., ActivatedIntegration]:
    """Factory fixture: an ActivatedIntegration, not yet stored."""

    def _factory(
        tenant_id: str = "team-1",
        entity_id: str = "ent-seller",
        manifest: dict[str, Any] | None = None,
        configuration: dict[str, Any] | None = None,
        **overrides: Any,
    ) -> ActivatedIntegration:
        return ActivatedIntegration(
            tenant_id=tenant_id,
            entity_id=entity_id,
            manifest=IntegrationManifest.model_validate(manifest or make_manifest()),
            configuration=configuration or make_configuration(),
            **overrides,
        )

    return _factory


# ---------------------------------------------------------------------------
# HTTP and DNS fakes
# ---------------------------------------------------------------------------


class RecordingHandler:
    """An httpx MockTransport handler that records requests.

    ``routes`` maps a URL (without query) to a response factory or a
    static ``httpx.Response``.  Unknown URLs answer 404.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes: dict[str, Any] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url).split("?", 1)[0]
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        return route

    def bodies(self) -> list[Any]:
        """Decoded JSON bodies, skipping requests that carried no JSON."""
        return [
            json.loads(r.content)
            for r in self.requests
            if r.content and r.headers.get("content-type", "").startswith("application/json")
        ]


@pytest.fixture
def make_http() -> Callable[..., tuple[httpx.AsyncClient, RecordingHandler]]:
    """Factory fixture: an AsyncClient wired to a RecordingHandler."""

    def _factory(
        routes: dict[str, Any] | None = None,
    ) -> tuple[httpx.AsyncClient, RecordingHandler]:
        handler = RecordingHandler(routes)
        return httpx.AsyncClient(transport=httpx.MockTransport(handler)), handler

    return _factory


@pytest.fixture
def make_naptr_lookup() -> Callable[..., Callable[[str], Any]]:
    """Factory fixture: an async NAPTR lookup answering from a dict."""

    def _factory(answers: dict[str, list[NaptrRecord]] | None = None):
        queried: list[str] = []

        async def _lookup(hostname: str) -> list[NaptrRecord]:
            queried.append(hostname)
            return list((answers or {}).get(hostname, []))

        _lookup.queried = queried  # type: ignore[attr-defined]
        return _lookup

    return _factory
