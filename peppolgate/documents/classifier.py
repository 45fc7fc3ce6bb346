"""Document classification — coarse type detection and light parsing.

``detect_document_type`` reads only the root element and the
customization identifier; it never validates against a schema.
``parse_document`` maps the detected identifier to a ``DocumentKind`` and
extracts the few structured fields the node needs (number, parties,
totals).  A document that cannot be parsed is still transmittable from
its raw body: its kind becomes ``unknown``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from lxml import etree
from pydantic import BaseModel, ConfigDict

from peppolgate.models.documents import DocumentKind, ParsedBillingDocument, Party

logger = logging.getLogger(__name__)

UBL_NAMESPACE_PREFIX = "urn:oasis:names:specification:ubl:schema:xsd:"
UBL_SYNTAX_VERSION = "2.1"
CII_NAMESPACE = "urn:un:unece:uncefact:data:standard:CrossIndustryInvoice:100"
CII_SYNTAX_VERSION = "D16B"
SBDH_ROOT = "StandardBusinessDocument"
SBDH_HEADER = "StandardBusinessDocumentHeader"

_SAFE_PARSER = etree.XMLParser(
    resolve_entities=False,
    no_network=True,
    remove_comments=True,
    huge_tree=False,
)


class DocumentParseError(ValueError):
    """Raised when a billing document lacks the fields this node reads."""


class ClassifiedDocument(BaseModel):
    """Result of ``parse_document``."""

    model_config = ConfigDict(frozen=True)

    kind: DocumentKind
    parsed: ParsedBillingDocument | None = None
    parse_error: str | None = None


# ------------------------------------------------------------------
# XML helpers
# ------------------------------------------------------------------


def _load(raw_body: str | bytes) -> etree._Element | None:
    data = raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body
    try:
        return etree.fromstring(data.strip(), parser=_SAFE_PARSER)
    except (etree.XMLSyntaxError, ValueError):
        return None


def _split_tag(element: etree._Element) -> tuple[str, str]:
    qname = etree.QName(element)
    return qname.namespace or "", qname.localname


def payload_root(root: etree._Element) -> etree._Element:
    """Return the business payload, unwrapping a standard business header."""
    _, local = _split_tag(root)
    if local != SBDH_ROOT:
        return root
    for child in root:
        if not isinstance(child.tag, str):
            continue
        if _split_tag(child)[1] != SBDH_HEADER:
            return child
    return root


def _text(element: etree._Element | None, path: str) -> str:
    if element is None:
        return ""
    found = element.find(path)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


# ------------------------------------------------------------------
# Detection
# ------------------------------------------------------------------


def detect_document_type(raw_body: str | bytes) -> str | None:
    """Return the network document type identifier, or ``None``.

    ``None`` means the signature is not recognizable.  Callers must ask
    the sender to clarify rather than retry.
    """
    root = _load(raw_body)
    if root is None:
        return None
    document = payload_root(root)
    namespace, local = _split_tag(document)

    if namespace.startswith(UBL_NAMESPACE_PREFIX):
        customization = _text(document, "{*}CustomizationID")
        if not customization:
            return None
        return f"{namespace}::{local}##{customization}::{UBL_SYNTAX_VERSION}"

    if namespace == CII_NAMESPACE and local == "CrossIndustryInvoice":
        customization = _text(
            document,
            "{*}ExchangedDocumentContext/{*}GuidelineSpecifiedDocumentContextParameter/{*}ID",
        )
        if not customization:
            return None
        return f"{namespace}::{local}##{customization}::{CII_SYNTAX_VERSION}"

    return None


def kind_for_document_type(document_type_id: str) -> DocumentKind:
    """Map a document type identifier to its coarse business kind."""
    self_billing = "selfbilling" in document_type_id.lower()
    if "::CreditNote##" in document_type_id:
        return DocumentKind.SELF_BILLING_CREDIT_NOTE if self_billing else DocumentKind.CREDIT_NOTE
    if "::Invoice##" in document_type_id or "::CrossIndustryInvoice##" in document_type_id:
        return DocumentKind.SELF_BILLING_INVOICE if self_billing else DocumentKind.INVOICE
    if "::ApplicationResponse##" in document_type_id:
        if ":trns:mlr:" in document_type_id:
            return DocumentKind.MESSAGE_LEVEL_RESPONSE
        if ":trns:invoice_response:" in document_type_id:
            return DocumentKind.INVOICE_RESPONSE
    return DocumentKind.UNKNOWN


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------


def _endpoint(element: etree._Element | None) -> tuple[str | None, str | None]:
    if element is None:
        return None, None
    scheme = (element.get("schemeID") or "").strip()
    identifier = (element.text or "").strip()
    return scheme or None, identifier or None


def _ubl_party(document: etree._Element, section: str) -> Party:
    party = document.find(f"{{*}}{section}/{{*}}Party")
    if party is None:
        return Party()
    scheme, identifier = _endpoint(party.find("{*}EndpointID"))
    name = _text(party, "{*}PartyName/{*}Name") or _text(
        party, "{*}PartyLegalEntity/{*}RegistrationName"
    )
    return Party(name=name, endpoint_scheme=scheme, endpoint_id=identifier)


def _parse_ubl(document: etree._Element, kind: DocumentKind) -> ParsedBillingDocument:
    number = _text(document, "{*}ID")
    if not number:
        raise DocumentParseError("Missing document number (cbc:ID)")
    return ParsedBillingDocument(
        kind=kind,
        number=number,
        issue_date=_text(document, "{*}IssueDate"),
        currency=_text(document, "{*}DocumentCurrencyCode"),
        payable_amount=_text(document, "{*}LegalMonetaryTotal/{*}PayableAmount"),
        seller=_ubl_party(document, "AccountingSupplierParty"),
        buyer=_ubl_party(document, "AccountingCustomerParty"),
    )


def _cii_party(trade: etree._Element | None, role: str) -> Party:
    party = trade.find(f"{{*}}{role}") if trade is not None else None
    if party is None:
        return Party()
    scheme, identifier = _endpoint(party.find("{*}URIUniversalCommunication/{*}URIID"))
    return Party(name=_text(party, "{*}Name"), endpoint_scheme=scheme, endpoint_id=identifier)


def _parse_cii(document: etree._Element, kind: DocumentKind) -> ParsedBillingDocument:
    number = _text(document, "{*}ExchangedDocument/{*}ID")
    if not number:
        raise DocumentParseError("Missing document number (ExchangedDocument/ID)")
    transaction = document.find("{*}SupplyChainTradeTransaction")
    agreement = (
        transaction.find("{*}ApplicableHeaderTradeAgreement")
        if transaction is not None else None
    )
    settlement = (
        transaction.find("{*}ApplicableHeaderTradeSettlement")
        if transaction is not None else None
    )
    return ParsedBillingDocument(
        kind=kind,
        number=number,
        issue_date=_text(document, "{*}ExchangedDocument/{*}IssueDateTime/{*}DateTimeString"),
        currency=_text(settlement, "{*}InvoiceCurrencyCode"),
        payable_amount=_text(
            settlement,
            "{*}SpecifiedTradeSettlementHeaderMonetarySummation/{*}DuePayableAmount",
        ),
        seller=_cii_party(agreement, "SellerTradeParty"),
        buyer=_cii_party(agreement, "BuyerTradeParty"),
    )


def parse_document(
    document_type_id: str,
    raw_body: str | bytes,
    context: Mapping[str, str] | None = None,
) -> ClassifiedDocument:
    """Dispatch to the parser matching *document_type_id*.

    Parameters
    ----------
    document_type_id:
        Identifier from ``detect_document_type`` or the caller.
    raw_body:
        The document XML.
    context:
        Free-form labels (entity name, sender) included in parse-failure
        logs.

    Returns
    -------
    ClassifiedDocument
        ``kind`` is ``unknown`` with ``parsed=None`` when no parser
        matches or the billing parser fails.  Response documents keep
        their kind without a parsed body.
    """
    kind = kind_for_document_type(document_type_id)
    if not kind.is_billing:
        return ClassifiedDocument(kind=kind)

    root = _load(raw_body)
    try:
        if root is None:
            raise DocumentParseError("Body is not well-formed XML")
        document = payload_root(root)
        namespace, _ = _split_tag(document)
        if namespace == CII_NAMESPACE:
            parsed = _parse_cii(document, kind)
        else:
            parsed = _parse_ubl(document, kind)
    except DocumentParseError as exc:
        logger.error(
            "Failed to parse %s document (%s): %s",
            kind.value,
            ", ".join(f"{k}={v}" for k, v in (context or {}).items()),
            exc,
        )
        return ClassifiedDocument(kind=DocumentKind.UNKNOWN, parse_error=str(exc))

    return ClassifiedDocument(kind=kind, parsed=parsed)
