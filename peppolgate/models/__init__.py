"""Peppolgate data models — all Pydantic v2, all frozen (immutable)."""

from peppolgate.models.addresses import (
    AddressFormatError,
    NaptrRecord,
    ParticipantAddress,
    PublisherRecord,
    RewriteRule,
)
from peppolgate.models.documents import (
    Direction,
    DocumentKind,
    ParsedBillingDocument,
    Party,
    TransmittedDocument,
    ValidationFinding,
    ValidationResult,
    ValidationStatus,
)
from peppolgate.models.entities import BusinessEntity
from peppolgate.models.events import NodeEvent
from peppolgate.models.integrations import (
    ActivatedIntegration,
    IntegrationConfiguration,
    IntegrationEvent,
    IntegrationManifest,
    IntegrationTaskLog,
)
from peppolgate.models.metadata import (
    BusinessCard,
    DocumentSupport,
    RecipientVerification,
    ServiceMetadata,
    SupportedDocumentType,
)
from peppolgate.models.transmission import (
    VALID_TRANSITIONS,
    SenderContext,
    SubmissionSource,
    TransferEvent,
    TransmissionResult,
    TransmissionState,
)
from peppolgate.models.webhooks import Webhook

__all__ = [
    # addresses
    "AddressFormatError",
    "NaptrRecord",
    "ParticipantAddress",
    "PublisherRecord",
    "RewriteRule",
    # documents
    "Direction",
    "DocumentKind",
    "ParsedBillingDocument",
    "Party",
    "TransmittedDocument",
    "ValidationFinding",
    "ValidationResult",
    "ValidationStatus",
    # entities
    "BusinessEntity",
    # events
    "NodeEvent",
    # integrations
    "ActivatedIntegration",
    "IntegrationConfiguration",
    "IntegrationEvent",
    "IntegrationManifest",
    "IntegrationTaskLog",
    # metadata
    "BusinessCard",
    "DocumentSupport",
    "RecipientVerification",
    "ServiceMetadata",
    "SupportedDocumentType",
    # transmission
    "VALID_TRANSITIONS",
    "SenderContext",
    "SubmissionSource",
    "TransferEvent",
    "TransmissionResult",
    "TransmissionState",
    # webhooks
    "Webhook",
]
