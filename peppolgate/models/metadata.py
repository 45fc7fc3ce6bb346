"""Service metadata publisher models — capabilities, business cards, verification."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ServiceMetadata(BaseModel):
    """One recipient's declared capability for one document type."""

    model_config = ConfigDict(frozen=True)

    document_type_id: str
    endpoint_url: str
    transport_profile: str
    technical_contact_url: str = ""
    certificate_expiry: datetime | None = None
    description: str = ""
    process_ids: list[str] = []


class BusinessCard(BaseModel):
    """Optional directory entry for a participant."""

    model_config = ConfigDict(frozen=True)

    name: str
    country_code: str = ""


class SupportedDocumentType(BaseModel):
    """A document type listed by the publisher's service group.

    ``metadata`` is populated only when full detail was requested.
    ``error`` records why a requested metadata fetch failed for this type
    without failing the whole verification.
    """

    model_config = ConfigDict(frozen=True)

    document_type_id: str
    name: str
    reference_url: str
    metadata: ServiceMetadata | None = None
    error: str | None = None


class RecipientVerification(BaseModel):
    """Answer to "is this address registered, and what does it support?".

    An unregistered participant is a negative result (``is_valid=False``),
    never an exception.
    """

    model_config = ConfigDict(frozen=True)

    address: str
    is_valid: bool
    dns_name: str = ""
    publisher_url: str | None = None
    service_metadata_references: list[str] = []
    supported_document_types: list[SupportedDocumentType] = []
    business_card: BusinessCard | None = None


class DocumentSupport(BaseModel):
    """Whether a registered recipient declares one specific document type."""

    model_config = ConfigDict(frozen=True)

    address: str
    document_type_id: str
    is_supported: bool
    metadata: ServiceMetadata | None = None
