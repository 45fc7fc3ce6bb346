"""Tests for document classification, validation and numbering."""

from __future__ import annotations

import sys

import httpx
import pytest

from peppolgate.core.errors import DocumentValidationFailed
from peppolgate.core.numbering import extract_document_number, increment_document_number
from peppolgate.documents.classifier import (
    detect_document_type,
    kind_for_document_type,
    parse_document,
)
from peppolgate.documents.validation import (
    ValidationClient,
    enforce_validation_policy,
    result_from_engine,
)
from peppolgate.models.documents import (
    DocumentKind,
    ValidationFinding,
    ValidationResult,
    ValidationStatus,
)
from peppolgate.models.transmission import SubmissionSource
from peppolgate.notifications.telegram import TelegramAlerter
from peppolgate.resolver.doctypes import (
    CREDIT_NOTE,
    INVOICE,
    INVOICE_RESPONSE,
    MESSAGE_LEVEL_RESPONSE,
    SELF_BILLING_INVOICE,
    UnknownDocumentTypeError,
    find_by_document_type_id,
    get_document_type_info,
    get_document_type_name,
)

CII_DOCUMENT = (
    '<rsm:CrossIndustryInvoice'
    ' xmlns:rsm="urn:un:unece:uncefact:data:standard:CrossIndustryInvoice:100"'
    ' xmlns:ram="urn:un:unece:uncefact:data:standard:ReusableAggregateBusinessInformationEntity:100">'
    "<rsm:ExchangedDocumentContext><ram:GuidelineSpecifiedDocumentContextParameter>"
    "<ram:ID>urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0</ram:ID>"
    "</ram:GuidelineSpecifiedDocumentContextParameter></rsm:ExchangedDocumentContext>"
    "<rsm:ExchangedDocument><ram:ID>CII-42</ram:ID></rsm:ExchangedDocument>"
    "<rsm:SupplyChainTradeTransaction><ram:ApplicableHeaderTradeAgreement>"
    '<ram:SellerTradeParty><ram:Name>Seller BV</ram:Name><ram:URIUniversalCommunication>'
    '<ram:URIID schemeID="0208">0123456789</ram:URIID></ram:URIUniversalCommunication>'
    "</ram:SellerTradeParty>"
    '<ram:BuyerTradeParty><ram:Name>Buyer NV</ram:Name><ram:URIUniversalCommunication>'
    '<ram:URIID schemeID="0208">0987654321</ram:URIID></ram:URIUniversalCommunication>'
    "</ram:BuyerTradeParty>"
    "</ram:ApplicableHeaderTradeAgreement></rsm:SupplyChainTradeTransaction>"
    "</rsm:CrossIndustryInvoice>"
)

VALIDATE_URL = "https://validator.test/validate"


def _wrap_in_sbdh(document: str) -> str:
    body = document.split("?>", 1)[-1]
    return (
        '<StandardBusinessDocument xmlns="http://www.unece.org/cefact/namespaces/'
        'StandardBusinessDocumentHeader">'
        "<StandardBusinessDocumentHeader><HeaderVersion>1.0</HeaderVersion>"
        "</StandardBusinessDocumentHeader>"
        f"{body}</StandardBusinessDocument>"
    )


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


class TestDetectDocumentType:
    def test_invoice_matches_preset(self, make_invoice_xml):
        assert detect_document_type(make_invoice_xml()) == INVOICE.document_type_id

    def test_credit_note_matches_preset(self, make_invoice_xml):
        assert detect_document_type(make_invoice_xml(credit_note=True)) == (
            CREDIT_NOTE.document_type_id
        )

    def test_self_billing_matches_preset(self, make_invoice_xml):
        assert detect_document_type(make_invoice_xml(self_billing=True)) == (
            SELF_BILLING_INVOICE.document_type_id
        )

    def test_cii_invoice(self):
        detected = detect_document_type(CII_DOCUMENT)
        assert detected is not None
        assert detected.endswith("::D16B")
        assert "::CrossIndustryInvoice##" in detected

    def test_header_envelope_is_unwrapped(self, make_invoice_xml):
        assert detect_document_type(_wrap_in_sbdh(make_invoice_xml())) == (
            INVOICE.document_type_id
        )

    def test_missing_customization_is_undetectable(self, make_invoice_xml):
        assert detect_document_type(make_invoice_xml(customization="")) is None

    @pytest.mark.parametrize(
        "body", ["", "not xml", "<html><body/></html>", "<Invoice>unqualified</Invoice>"]
    )
    def test_unrecognizable_bodies(self, body):
        assert detect_document_type(body) is None

    def test_external_entities_are_not_resolved(self):
        body = (
            '<?xml version="1.0"?><!DOCTYPE r [<!ENTITY x SYSTEM "file:///etc/passwd">]>'
            '<Invoice xmlns="urn:oasis:names:specification:ubl:schema:xsd:Invoice-2">'
            "<CustomizationID>&x;</CustomizationID></Invoice>"
        )
        detected = detect_document_type(body)
        assert detected is None or "root:" not in detected


class TestKindMapping:
    @pytest.mark.parametrize(
        ("info", "kind"),
        [
            (INVOICE, DocumentKind.INVOICE),
            (CREDIT_NOTE, DocumentKind.CREDIT_NOTE),
            (SELF_BILLING_INVOICE, DocumentKind.SELF_BILLING_INVOICE),
            (INVOICE_RESPONSE, DocumentKind.INVOICE_RESPONSE),
            (MESSAGE_LEVEL_RESPONSE, DocumentKind.MESSAGE_LEVEL_RESPONSE),
        ],
    )
    def test_presets_map_to_their_kind(self, info, kind):
        assert kind_for_document_type(info.document_type_id) == kind

    def test_unknown_identifier(self):
        assert kind_for_document_type("urn:x::Order##urn:y::2.1") == DocumentKind.UNKNOWN


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseDocument:
    def test_ubl_invoice_fields(self, make_invoice_xml):
        classified = parse_document(INVOICE.document_type_id, make_invoice_xml(number="INV-7"))
        assert classified.kind == DocumentKind.INVOICE
        parsed = classified.parsed
        assert parsed is not None
        assert parsed.number == "INV-7"
        assert parsed.issue_date == "2026-01-15"
        assert parsed.currency == "EUR"
        assert parsed.payable_amount == "121.00"
        assert parsed.seller.name == "Seller BV"
        assert parsed.seller.address == "0208:0123456789"
        assert parsed.buyer.address == "0208:0987654321"

    def test_cii_invoice_fields(self):
        document_type_id = detect_document_type(CII_DOCUMENT)
        classified = parse_document(document_type_id, CII_DOCUMENT)
        assert classified.kind == DocumentKind.INVOICE
        assert classified.parsed is not None
        assert classified.parsed.number == "CII-42"
        assert classified.parsed.buyer.address == "0208:0987654321"

    def test_missing_number_degrades_to_unknown(self, make_invoice_xml):
        classified = parse_document(INVOICE.document_type_id, make_invoice_xml(number=""))
        assert classified.kind == DocumentKind.UNKNOWN
        assert classified.parsed is None
        assert "cbc:ID" in (classified.parse_error or "")

    def test_malformed_body_degrades_to_unknown(self):
        classified = parse_document(INVOICE.document_type_id, "<Invoice")
        assert classified.kind == DocumentKind.UNKNOWN
        assert classified.parse_error

    def test_responses_keep_kind_without_parsing(self):
        classified = parse_document(MESSAGE_LEVEL_RESPONSE.document_type_id, "<anything/>")
        assert classified.kind == DocumentKind.MESSAGE_LEVEL_RESPONSE
        assert classified.parsed is None
        assert classified.parse_error is None

    def test_party_without_endpoint_has_no_address(self, make_invoice_xml):
        classified = parse_document(
            INVOICE.document_type_id, make_invoice_xml(buyer_endpoint=None)
        )
        assert classified.parsed is not None
        assert classified.parsed.buyer.address is None


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


class TestDocumentTypes:
    def test_info_by_kind(self):
        assert get_document_type_info(DocumentKind.INVOICE) is INVOICE
        assert get_document_type_info("creditNote") is CREDIT_NOTE

    def test_unknown_kind_raises(self):
        with pytest.raises(UnknownDocumentTypeError, match="unknown not found"):
            get_document_type_info(DocumentKind.UNKNOWN)

    def test_find_by_identifier(self):
        assert find_by_document_type_id(INVOICE.document_type_id) is INVOICE
        assert find_by_document_type_id("nope") is None

    def test_self_billing_uses_its_own_process(self):
        assert INVOICE.process_id != SELF_BILLING_INVOICE.process_id
        assert "selfbilling" in SELF_BILLING_INVOICE.process_id

    def test_names_fall_back_to_root_element(self):
        assert get_document_type_name("urn:a:Catalogue-2::Catalogue##urn:b::2.1") == "Catalogue"
        assert get_document_type_name("urn:x::CrossIndustryThing") == "CrossIndustryThing"
        assert get_document_type_name("opaque") == "opaque"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidationClient:
    @pytest.mark.asyncio
    async def test_without_url_is_not_supported(self):
        result = await ValidationClient("").validate("<Invoice/>")
        assert result.status == ValidationStatus.NOT_SUPPORTED

    @pytest.mark.asyncio
    async def test_valid_answer(self, make_http):
        http, handler = make_http({VALIDATE_URL: httpx.Response(200, json={"result": "valid"})})
        result = await ValidationClient(VALIDATE_URL, client=http).validate("<Invoice/>")
        assert result.status == ValidationStatus.VALID
        assert result.findings == []
        assert handler.requests[0].headers["Content-Type"] == "application/xml"
        assert handler.requests[0].content == b"<Invoice/>"

    @pytest.mark.asyncio
    async def test_invalid_answer_carries_findings(self, make_http):
        engine = {
            "result": "invalid",
            "errors": [
                {
                    "ruleCode": "BR-01",
                    "errorMessage": "Specification identifier is missing",
                    "errorLevel": "fatal",
                    "fieldName": "CustomizationID",
                }
            ],
        }
        http, _ = make_http({VALIDATE_URL: httpx.Response(200, json=engine)})
        result = await ValidationClient(VALIDATE_URL, client=http).validate("<Invoice/>")
        assert result.is_invalid
        [finding] = result.findings
        assert finding.rule_code == "BR-01"
        assert finding.level == "fatal"
        assert result.describe_findings() == (
            "CustomizationID: Specification identifier is missing"
        )

    @pytest.mark.asyncio
    async def test_engine_failure_is_error_and_alerts(self, make_http):
        http, _ = make_http({VALIDATE_URL: httpx.Response(503)})
        alerter = TelegramAlerter(chat_ids=["ops"])
        client = ValidationClient(VALIDATE_URL, alerter=alerter, client=http)
        result = await client.validate("<Invoice/>")
        assert result.status == ValidationStatus.ERROR
        [alert] = alerter.flush()
        assert "503" in alert.text

    @pytest.mark.asyncio
    async def test_unparsable_answer_is_error(self, make_http):
        http, _ = make_http({VALIDATE_URL: httpx.Response(200, text="<html/>")})
        alerter = TelegramAlerter(chat_ids=["ops"])
        result = await ValidationClient(VALIDATE_URL, alerter=alerter, client=http).validate("x")
        assert result.status == ValidationStatus.ERROR
        assert alerter.pending_count == 1

    def test_result_from_engine_rejects_unknown_status(self):
        with pytest.raises(ValueError):
            result_from_engine({"result": "maybe"})


class TestValidationPolicy:
    @pytest.fixture
    def invalid(self) -> ValidationResult:
        return ValidationResult(
            status=ValidationStatus.INVALID,
            findings=[
                ValidationFinding(field_name="BT-1", message="Missing number", rule_code="R1"),
                ValidationFinding(field_name="BT-2", message="Bad date", rule_code="R2"),
            ],
        )

    def test_email_submission_is_a_hard_stop(self, invalid):
        with pytest.raises(DocumentValidationFailed) as exc_info:
            enforce_validation_policy(invalid, SubmissionSource.EMAIL)
        assert exc_info.value.details == "BT-1: Missing number\nBT-2: Bad date"
        assert len(exc_info.value.findings) == 2

    def test_api_submission_continues(self, invalid):
        enforce_validation_policy(invalid, SubmissionSource.API)

    @pytest.mark.parametrize(
        "status", [ValidationStatus.VALID, ValidationStatus.ERROR, ValidationStatus.NOT_SUPPORTED]
    )
    def test_non_invalid_results_never_block(self, status):
        enforce_validation_policy(ValidationResult(status=status), SubmissionSource.EMAIL)


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------


class TestDocumentNumbering:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("INV-099", "INV-100"),
            ("INV-999", "INV-1000"),
            ("2024-0007/A", "2024-0008/A"),
            ("7", "8"),
            ("  INV-1  ", "INV-2"),
        ],
    )
    def test_increment_last_digit_run(self, value, expected):
        assert increment_document_number(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   ", "INV-A"])
    def test_no_digits_no_suggestion(self, value):
        assert increment_document_number(value) is None

    @pytest.mark.skipif(
        not hasattr(sys, "get_int_max_str_digits") or sys.get_int_max_str_digits() == 0,
        reason="no int string limit",
    )
    def test_oversized_digit_run_has_no_suggestion(self):
        value = "INV-" + "9" * (sys.get_int_max_str_digits() + 1)
        assert increment_document_number(value) is None

    def test_extract_only_from_billing_documents(self, make_invoice_xml):
        classified = parse_document(INVOICE.document_type_id, make_invoice_xml(number="F-12"))
        assert extract_document_number(classified.parsed, classified.kind) == "F-12"
        assert extract_document_number(classified.parsed, DocumentKind.INVOICE_RESPONSE) is None
        assert extract_document_number(None, DocumentKind.INVOICE) is None
