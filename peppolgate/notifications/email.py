"""Submitter diagnostics for documents that arrive by email.

When an emailed document cannot be transmitted, the original sender gets
an explanation.  This module builds the email payload; delivery goes
through an optional ``deliver`` callable (the mail plumbing lives outside
the node).  Payloads are also kept in a pending buffer.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

SUBMISSION_ERROR_SUBJECT = "Error processing your Peppol document"


class EmailPayload(BaseModel):
    """A diagnostic email ready for delivery."""

    model_config = ConfigDict(frozen=True)

    recipient: str
    sender: str
    subject: str
    error: str
    details: str = ""
    entity_name: str | None = None
    has_xml_attachment: bool = True

    @property
    def body_text(self) -> str:
        lines = [f"We could not process your document: {self.error}"]
        if self.entity_name:
            lines.append(f"Company: {self.entity_name}")
        if self.details:
            lines.extend(["", self.details])
        return "\n".join(lines)


EmailDelivery = Callable[[EmailPayload], Awaitable[None] | None]


class EmailNotifier:
    """Builds and delivers submitter diagnostics.

    Parameters
    ----------
    sender:
        The From address of diagnostic emails.
    deliver:
        Optional sync or async callable performing the actual delivery.
    """

    def __init__(
        self,
        sender: str = "noreply@peppolgate.local",
        deliver: EmailDelivery | None = None,
    ) -> None:
        self._sender = sender
        self._deliver = deliver
        self._pending_payloads: list[EmailPayload] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending_payloads)

    def flush(self) -> list[EmailPayload]:
        """Return and clear all pending payloads."""
        payloads = list(self._pending_payloads)
        self._pending_payloads.clear()
        return payloads

    async def notify_submission_error(
        self,
        recipient: str,
        *,
        error: str,
        details: str = "",
        entity_name: str | None = None,
    ) -> EmailPayload:
        """Send a diagnostic to *recipient*.

        Delivery failures are logged; the payload is returned regardless.
        """
        payload = EmailPayload(
            recipient=recipient,
            sender=self._sender,
            subject=SUBMISSION_ERROR_SUBJECT,
            error=error,
            details=details,
            entity_name=entity_name,
        )
        self._pending_payloads.append(payload)
        logger.info("Submission error for %s: %s", recipient, error)

        if self._deliver is not None:
            try:
                result = self._deliver(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception("Failed to deliver diagnostic email to %s", recipient)
        return payload
