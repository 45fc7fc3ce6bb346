"""Webhook subscription model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class Webhook(BaseModel):
    """A tenant-owned subscription to lifecycle events.

    A webhook without ``entity_id`` receives events for every business
    entity owned by its tenant.
    """

    model_config = ConfigDict(frozen=True)

    webhook_id: str = Field(default_factory=lambda: f"wh_{uuid.uuid4().hex}")
    tenant_id: str
    url: str
    entity_id: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def matches(self, tenant_id: str, entity_id: str) -> bool:
        """Whether this webhook should receive an event for the entity."""
        if self.tenant_id != tenant_id:
            return False
        return self.entity_id is None or self.entity_id == entity_id
