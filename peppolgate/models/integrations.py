"""Integration plugin contract — manifest, configuration, state and task logs.

The manifest is fetched from the plugin and declares what the plugin can
do.  The configuration is supplied by the tenant and must be compatible
with the current manifest (see ``peppolgate.plugins.compatibility``).
State is an opaque plugin-owned mapping, round-tripped without
interpretation.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, field_validator

SEMVER_PATTERN = r"^[0-9]+\.[0-9]+\.[0-9]+$"
FIELD_ID_PATTERN = r"^[a-zA-Z0-9_]+$"


class IntegrationEvent(str, Enum):
    """Events a plugin may declare as capabilities."""

    DOCUMENT_RECEIVED = "document.received"
    DOCUMENT_LABEL_ASSIGNED = "document.label.assigned"
    DOCUMENT_LABEL_UNASSIGNED = "document.label.unassigned"
    SETUP = "integration.setup"
    TEARDOWN = "integration.teardown"
    INCOMING_WEBHOOK = "integration.incoming-webhook"
    CRON_SHORT = "integration.cron.short"
    CRON_MEDIUM = "integration.cron.medium"
    CRON_LONG = "integration.cron.long"

    @classmethod
    def values(cls) -> set[str]:
        return {e.value for e in cls}


CRON_EVENTS: tuple[IntegrationEvent, ...] = (
    IntegrationEvent.CRON_SHORT,
    IntegrationEvent.CRON_MEDIUM,
    IntegrationEvent.CRON_LONG,
)


class AuthType(str, Enum):
    BEARER = "bearer"


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------


class ManifestCapability(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    event: IntegrationEvent
    description: str = Field(min_length=1)
    required: StrictBool


class ManifestField(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, pattern=FIELD_ID_PATTERN)
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    type: Literal["string", "boolean", "number"]
    required: StrictBool


class IntegrationManifest(BaseModel):
    """A plugin's self-declared schema, immutable per version."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    version: str = Field(pattern=SEMVER_PATTERN)
    name: str = Field(min_length=1)
    description: str
    image_url: str | None = Field(default=None, alias="imageUrl")
    url: str = Field(min_length=1)
    capabilities: list[ManifestCapability]
    auth_types: list[AuthType] = Field(alias="authTypes", min_length=1)
    fields: list[ManifestField]

    @field_validator("url")
    @classmethod
    def _url_is_http(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"Manifest url must be an http(s) URL, got '{value}'")
        return value

    def capability(self, event: str) -> ManifestCapability | None:
        for cap in self.capabilities:
            if cap.event.value == event:
                return cap
        return None


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationAuth(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    type: AuthType
    token: str = Field(min_length=1)


class StringField(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, pattern=FIELD_ID_PATTERN)
    type: Literal["string"] = "string"
    value: str = Field(min_length=1)


class BooleanField(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, pattern=FIELD_ID_PATTERN)
    type: Literal["boolean"] = "boolean"
    value: StrictBool


class NumberField(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1, pattern=FIELD_ID_PATTERN)
    type: Literal["number"] = "number"
    value: StrictFloat


ConfigurationField = Annotated[
    Union[StringField, BooleanField, NumberField],
    Field(discriminator="type"),
]


class ConfigurationCapability(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    event: IntegrationEvent
    enabled: StrictBool


class IntegrationConfiguration(BaseModel):
    """Tenant-supplied instantiation of a manifest."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    auth: ConfigurationAuth
    fields: list[ConfigurationField] = []
    capabilities: list[ConfigurationCapability] = []

    def flattened_fields(self) -> dict[str, Any]:
        """Field values keyed by field id, as sent to the plugin."""
        return {f.id: f.value for f in self.fields}

    def is_enabled(self, event: str) -> bool:
        return any(c.event.value == event and c.enabled for c in self.capabilities)


# ---------------------------------------------------------------------------
# Activated integration and its history
# ---------------------------------------------------------------------------


class ActivatedIntegration(BaseModel):
    """A plugin bound to one business entity of one tenant."""

    model_config = ConfigDict(frozen=True)

    integration_id: str = Field(default_factory=lambda: f"int_{uuid.uuid4().hex}")
    tenant_id: str
    entity_id: str
    manifest: IntegrationManifest
    configuration: IntegrationConfiguration
    state: dict[str, Any] = {}
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class IntegrationTask(BaseModel):
    """One task entry reported by a plugin response."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    task: str = Field(min_length=1)
    success: StrictBool
    message: str = ""
    context: str = ""


class IntegrationResponse(BaseModel):
    """A successful plugin response."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str = Field(pattern=SEMVER_PATTERN)
    state: dict[str, Any] | None = None
    tasks: list[IntegrationTask] | None = None


class IntegrationErrorBody(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str
    task: str = Field(min_length=1)
    context: str | None = None


class IntegrationErrorResponse(BaseModel):
    """A failed plugin response: ``{version, error: {message, task, context}}``."""

    model_config = ConfigDict(frozen=True)

    version: str
    error: IntegrationErrorBody


class IntegrationTaskLog(BaseModel):
    """A persisted task outcome, kept for inspection."""

    model_config = ConfigDict(frozen=True)

    log_id: str = Field(default_factory=lambda: f"itl_{uuid.uuid4().hex}")
    integration_id: str
    event: str
    task: str
    success: bool
    message: str = ""
    context: str = ""
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
