"""Document type registry — presets, process identifiers and display names."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

from peppolgate.models.documents import DocumentKind


class DocumentTypeInfo(BaseModel):
    """A known document type with its network identifiers."""

    model_config = ConfigDict(frozen=True)

    kind: DocumentKind
    title: str
    document_type_id: str
    process_id: str


_BILLING_PROCESS = "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"
_SELF_BILLING_PROCESS = "urn:fdc:peppol.eu:2017:poacc:selfbilling:01:1.0"

INVOICE = DocumentTypeInfo(
    kind=DocumentKind.INVOICE,
    title="Invoice",
    document_type_id=(
        "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2::Invoice"
        "##urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0::2.1"
    ),
    process_id=_BILLING_PROCESS,
)

CREDIT_NOTE = DocumentTypeInfo(
    kind=DocumentKind.CREDIT_NOTE,
    title="Credit Note",
    document_type_id=(
        "urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2::CreditNote"
        "##urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0::2.1"
    ),
    process_id=_BILLING_PROCESS,
)

SELF_BILLING_INVOICE = DocumentTypeInfo(
    kind=DocumentKind.SELF_BILLING_INVOICE,
    title="Self Billing Invoice",
    document_type_id=(
        "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2::Invoice"
        "##urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:selfbilling:3.0::2.1"
    ),
    process_id=_SELF_BILLING_PROCESS,
)

SELF_BILLING_CREDIT_NOTE = DocumentTypeInfo(
    kind=DocumentKind.SELF_BILLING_CREDIT_NOTE,
    title="Self Billing Credit Note",
    document_type_id=(
        "urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2::CreditNote"
        "##urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:selfbilling:3.0::2.1"
    ),
    process_id=_SELF_BILLING_PROCESS,
)

INVOICE_RESPONSE = DocumentTypeInfo(
    kind=DocumentKind.INVOICE_RESPONSE,
    title="Invoice Response",
    document_type_id=(
        "urn:oasis:names:specification:ubl:schema:xsd:ApplicationResponse-2::ApplicationResponse"
        "##urn:fdc:peppol.eu:poacc:trns:invoice_response:3::2.1"
    ),
    process_id="urn:fdc:peppol.eu:poacc:bis:invoice_response:3",
)

MESSAGE_LEVEL_RESPONSE = DocumentTypeInfo(
    kind=DocumentKind.MESSAGE_LEVEL_RESPONSE,
    title="Message Level Response",
    document_type_id=(
        "urn:oasis:names:specification:ubl:schema:xsd:ApplicationResponse-2::ApplicationResponse"
        "##urn:fdc:peppol.eu:poacc:trns:mlr:3::2.1"
    ),
    process_id="urn:fdc:peppol.eu:poacc:bis:mlr:3",
)

DOCUMENT_TYPE_PRESETS: list[DocumentTypeInfo] = [
    INVOICE,
    CREDIT_NOTE,
    SELF_BILLING_INVOICE,
    SELF_BILLING_CREDIT_NOTE,
    INVOICE_RESPONSE,
    MESSAGE_LEVEL_RESPONSE,
]

# Subset of the network's document type code list.
_CODE_LIST_NAMES: dict[str, str] = {
    INVOICE.document_type_id: "Peppol BIS Billing UBL Invoice V3",
    CREDIT_NOTE.document_type_id: "Peppol BIS Billing UBL CreditNote V3",
    SELF_BILLING_INVOICE.document_type_id: "Peppol BIS Self-Billing UBL Invoice V3",
    SELF_BILLING_CREDIT_NOTE.document_type_id: "Peppol BIS Self-Billing UBL CreditNote V3",
    INVOICE_RESPONSE.document_type_id: "Peppol Invoice Response transaction 3.0",
    MESSAGE_LEVEL_RESPONSE.document_type_id: "Peppol Message Level Response transaction 3.0",
    (
        "urn:un:unece:uncefact:data:standard:CrossIndustryInvoice:100::CrossIndustryInvoice"
        "##urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0::D16B"
    ): "Peppol BIS Billing CII Invoice V3",
    (
        "urn:oasis:names:specification:ubl:schema:xsd:Order-2::Order"
        "##urn:fdc:peppol.eu:poacc:trns:order:3::2.1"
    ): "Peppol Order transaction 3.0",
    (
        "urn:oasis:names:specification:ubl:schema:xsd:DespatchAdvice-2::DespatchAdvice"
        "##urn:fdc:peppol.eu:poacc:trns:despatch_advice:3::2.1"
    ): "Peppol Despatch Advice transaction 3.0",
}

_UBL_NAME = re.compile(r"::(\w+)##")
_CII_NAME = re.compile(r"::(\w+)$")


class UnknownDocumentTypeError(LookupError):
    """Raised when no preset exists for a document kind."""


def get_document_type_info(kind: DocumentKind | str) -> DocumentTypeInfo:
    """Return the preset for *kind*.

    Raises
    ------
    UnknownDocumentTypeError
        For ``unknown`` or any kind without a preset.
    """
    value = kind.value if isinstance(kind, DocumentKind) else kind
    for info in DOCUMENT_TYPE_PRESETS:
        if info.kind.value == value:
            return info
    raise UnknownDocumentTypeError(f"Document type {value} not found")


def find_by_document_type_id(document_type_id: str) -> DocumentTypeInfo | None:
    for info in DOCUMENT_TYPE_PRESETS:
        if info.document_type_id == document_type_id:
            return info
    return None


def get_document_type_name(document_type_id: str) -> str:
    """Human-readable name for a network document type identifier.

    Looks up the code list first, then falls back to the UBL root name
    (``::Invoice##``), then the CII root name (``::CrossIndustryInvoice``),
    and finally returns the identifier itself.
    """
    name = _CODE_LIST_NAMES.get(document_type_id)
    if name:
        return name
    match = _UBL_NAME.search(document_type_id)
    if match:
        return match.group(1)
    match = _CII_NAME.search(document_type_id)
    if match:
        return match.group(1)
    return document_type_id
