"""Lifecycle events fanned out by the EventDispatcher."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DOCUMENT_SENT = "document.sent"
DOCUMENT_RECEIVED = "document.received"
DOCUMENT_LABEL_ASSIGNED = "document.label.assigned"
DOCUMENT_LABEL_UNASSIGNED = "document.label.unassigned"


class NodeEvent(BaseModel):
    """One event raised for a tenant's business entity.

    ``data`` holds event-specific fields such as a label id.  They are
    merged into both the webhook envelope and the integration context.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}")
    event_type: str
    tenant_id: str
    entity_id: str
    document_id: str | None = None
    data: dict[str, Any] = {}
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def webhook_payload(self) -> dict[str, Any]:
        """The ``{eventType, ...data}`` envelope POSTed to webhooks."""
        payload: dict[str, Any] = {"eventType": self.event_type}
        if self.document_id is not None:
            payload["id"] = self.document_id
        payload["teamId"] = self.tenant_id
        payload["companyId"] = self.entity_id
        payload.update(self.data)
        return payload

    def integration_context(self) -> dict[str, Any]:
        """Event fields passed to a plugin as its request ``context``."""
        context: dict[str, Any] = dict(self.data)
        if self.document_id is not None:
            context["documentId"] = self.document_id
        return context
