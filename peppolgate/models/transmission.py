"""Transmission state machine models and transmission outcomes."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from peppolgate.core.errors import (
    TRANSMISSION_ERROR_TYPES,
    DocumentValidationFailed,
    MissingRecipientAddress,
    TransmissionError,
)
from peppolgate.models.documents import Direction, DocumentKind, ValidationResult


class TransmissionState(str, Enum):
    """Per-attempt transmission states."""

    RECEIVED = "received"
    CLASSIFIED = "classified"
    ADDRESSED = "addressed"
    SENT = "sent"
    FAILED = "failed"


# Valid state transitions, enforced structurally by TransmissionMachine.
# Terminal states (SENT, FAILED) have no outgoing transitions: a retry is
# a fresh attempt with a fresh record.
VALID_TRANSITIONS: dict[TransmissionState, set[TransmissionState]] = {
    TransmissionState.RECEIVED: {TransmissionState.CLASSIFIED, TransmissionState.FAILED},
    TransmissionState.CLASSIFIED: {TransmissionState.ADDRESSED, TransmissionState.FAILED},
    TransmissionState.ADDRESSED: {TransmissionState.SENT, TransmissionState.FAILED},
    TransmissionState.SENT: set(),  # terminal
    TransmissionState.FAILED: set(),  # terminal
}


class SubmissionSource(str, Enum):
    """How a document reached the node.

    Validation is a hard stop for ``EMAIL`` and a stored warning for ``API``.
    """

    API = "api"
    EMAIL = "email"


class SenderContext(BaseModel):
    """Who is sending, and what the caller already knows about the send.

    For the email path ``send_address`` identifies the business entity and
    ``reply_to`` receives diagnostics.  For the API path ``entity_id`` is
    set directly and ``recipient`` is normally supplied.
    """

    model_config = ConfigDict(frozen=True)

    source: SubmissionSource = SubmissionSource.API
    tenant_id: str | None = None
    entity_id: str | None = None
    send_address: str | None = None
    reply_to: str | None = None
    recipient: str | None = None
    document_type_id: str | None = None
    process_id: str | None = None


class TransmissionResult(BaseModel):
    """Error-result form of one transmission attempt."""

    model_config = ConfigDict(frozen=True)

    attempt_id: str = Field(default_factory=lambda: f"tx_{uuid.uuid4().hex[:12]}")
    success: bool
    state: TransmissionState
    document_id: str | None = None
    entity_name: str | None = None
    kind: DocumentKind | None = None
    sender: str | None = None
    recipient: str | None = None
    simulated: bool = False
    validation: ValidationResult | None = None
    error_code: str | None = None
    error: str | None = None
    details: str = ""
    additional_context: str = ""
    party_section: str | None = None

    @classmethod
    def from_error(
        cls,
        exc: TransmissionError,
        *,
        entity_name: str | None = None,
        kind: DocumentKind | None = None,
        sender: str | None = None,
        recipient: str | None = None,
        validation: ValidationResult | None = None,
        simulated: bool = False,
    ) -> TransmissionResult:
        return cls(
            success=False,
            state=TransmissionState.FAILED,
            entity_name=entity_name,
            kind=kind,
            sender=sender,
            recipient=recipient,
            simulated=simulated,
            validation=validation,
            error_code=exc.code,
            error=exc.message,
            details=exc.details,
            additional_context=exc.additional_context,
            party_section=getattr(exc, "party_section", None),
        )

    def raise_for_failure(self) -> None:
        """Re-raise the typed error this result stands for, if it failed."""
        if self.success:
            return
        error_cls = TRANSMISSION_ERROR_TYPES.get(self.error_code or "", TransmissionError)
        kwargs: dict[str, Any] = {
            "details": self.details,
            "additional_context": self.additional_context,
        }
        if error_cls is DocumentValidationFailed:
            kwargs["findings"] = list(self.validation.findings) if self.validation else []
        elif error_cls is MissingRecipientAddress:
            kwargs["party_section"] = self.party_section or ""
        raise error_cls(self.error or "Transmission failed", **kwargs)


class TransferEvent(BaseModel):
    """A usage record for a billable transmission."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    entity_id: str
    direction: Direction
    document_id: str
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
