"""Business document models — classification, validation and stored records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Direction(str, Enum):
    """Whether a document left or arrived at this node."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"


class DocumentKind(str, Enum):
    """Coarse business type of a document."""

    INVOICE = "invoice"
    CREDIT_NOTE = "creditNote"
    SELF_BILLING_INVOICE = "selfBillingInvoice"
    SELF_BILLING_CREDIT_NOTE = "selfBillingCreditNote"
    INVOICE_RESPONSE = "invoiceResponse"
    MESSAGE_LEVEL_RESPONSE = "messageLevelResponse"
    UNKNOWN = "unknown"

    @property
    def is_self_billing(self) -> bool:
        return self in (
            DocumentKind.SELF_BILLING_INVOICE,
            DocumentKind.SELF_BILLING_CREDIT_NOTE,
        )

    @property
    def is_billing(self) -> bool:
        return self in (
            DocumentKind.INVOICE,
            DocumentKind.CREDIT_NOTE,
            DocumentKind.SELF_BILLING_INVOICE,
            DocumentKind.SELF_BILLING_CREDIT_NOTE,
        )


class Party(BaseModel):
    """A buyer or seller party as read from a billing document."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    endpoint_scheme: str | None = None
    endpoint_id: str | None = None

    @property
    def address(self) -> str | None:
        """``scheme:identifier`` when both endpoint parts are present."""
        if self.endpoint_scheme and self.endpoint_id:
            return f"{self.endpoint_scheme}:{self.endpoint_id}"
        return None


class ParsedBillingDocument(BaseModel):
    """The structured subset of a billing document this node reads."""

    model_config = ConfigDict(frozen=True)

    kind: DocumentKind
    number: str = ""
    issue_date: str = ""
    currency: str = ""
    payable_amount: str = ""
    seller: Party = Field(default_factory=Party)
    buyer: Party = Field(default_factory=Party)


class ValidationStatus(str, Enum):
    """Outcome of business-rule validation.

    ``not_supported`` and ``error`` never block a transmission.
    """

    VALID = "valid"
    INVALID = "invalid"
    NOT_SUPPORTED = "not_supported"
    ERROR = "error"


class ValidationFinding(BaseModel):
    """One field-attributed rule violation."""

    model_config = ConfigDict(frozen=True)

    field_name: str
    message: str
    rule_code: str
    level: str = "error"

    def describe(self) -> str:
        return f"{self.field_name}: {self.message}"


class ValidationResult(BaseModel):
    """Tagged validation outcome with zero or more findings."""

    model_config = ConfigDict(frozen=True)

    status: ValidationStatus
    findings: list[ValidationFinding] = []

    @property
    def is_invalid(self) -> bool:
        return self.status == ValidationStatus.INVALID

    def describe_findings(self) -> str:
        """Render findings as ``field: message`` lines."""
        return "\n".join(f.describe() for f in self.findings)


class TransmittedDocument(BaseModel):
    """Durable record of one transmission attempt.

    Created exactly once per attempt.  Only the read marker may change
    afterwards (see ``NodeStore.mark_as_read``).
    """

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(default_factory=lambda: f"doc_{uuid.uuid4().hex}")
    tenant_id: str
    entity_id: str
    direction: Direction
    sender_address: str
    receiver_address: str
    document_type_id: str
    process_id: str
    country_code: str = ""
    body: str
    kind: DocumentKind = DocumentKind.UNKNOWN
    parsed: ParsedBillingDocument | None = None
    validation: ValidationResult | None = None
    sent_over_network: bool = False
    network_message_id: str | None = None
    envelope_id: str | None = None
    read_at: datetime | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def event_data(self) -> dict[str, Any]:
        """Event context fields describing this document."""
        return {
            "documentId": self.document_id,
            "direction": self.direction.value,
            "type": self.kind.value,
        }
