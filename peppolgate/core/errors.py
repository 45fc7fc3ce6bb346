"""Error taxonomy for the transmission pipeline.

``UserFacingError`` messages are safe to show verbatim to the caller.
Anything else escaping the pipeline is an internal fault: it is logged
with its stack and surfaced only as a generic message.

Every ``TransmissionError`` carries a stable ``code`` so a stored
``TransmissionResult`` can be turned back into the matching exception.
"""

from __future__ import annotations

from typing import Any


class UserFacingError(RuntimeError):
    """An error whose message may be shown to the user verbatim."""


class TransmissionError(UserFacingError):
    """Base class for a failed transmission attempt.

    Parameters
    ----------
    message:
        Short user-facing error title.
    details:
        Longer diagnostic shown to the submitter (email path).
    additional_context:
        Verbatim diagnostic text from the transport, when there is one.
    """

    code: str = "transmission_error"

    def __init__(
        self,
        message: str,
        *,
        details: str = "",
        additional_context: str = "",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.additional_context = additional_context


class UnknownBusinessEntity(TransmissionError):
    """No business entity is configured for the submission address."""

    code = "unknown_business_entity"


class InvalidDocumentType(TransmissionError):
    """The document type signature could not be detected."""

    code = "invalid_document_type"


class DocumentValidationFailed(TransmissionError):
    """Business-rule validation rejected the document (hard stop)."""

    code = "validation_failed"

    def __init__(
        self,
        message: str,
        *,
        findings: list[Any] | None = None,
        details: str = "",
        additional_context: str = "",
    ) -> None:
        super().__init__(message, details=details, additional_context=additional_context)
        self.findings = list(findings or [])


class MissingRecipientAddress(TransmissionError):
    """No recipient address was supplied or found inside the document."""

    code = "missing_recipient_address"

    def __init__(
        self,
        message: str,
        *,
        party_section: str,
        details: str = "",
        additional_context: str = "",
    ) -> None:
        super().__init__(message, details=details, additional_context=additional_context)
        self.party_section = party_section


class ProcessIdentifierUnavailable(TransmissionError):
    """No process identifier is known for the classified document type."""

    code = "process_identifier_unavailable"


class TransmissionFailed(TransmissionError):
    """The transport refused or failed to deliver the document."""

    code = "transmission_failed"


TRANSMISSION_ERROR_TYPES: dict[str, type[TransmissionError]] = {
    cls.code: cls
    for cls in (
        TransmissionError,
        UnknownBusinessEntity,
        InvalidDocumentType,
        DocumentValidationFailed,
        MissingRecipientAddress,
        ProcessIdentifierUnavailable,
        TransmissionFailed,
    )
}
