"""Business-rule validation through an external rules engine.

The engine receives the raw XML and answers with a tagged result.  This
module turns that answer into a ``ValidationResult`` and applies the
submission policy:

- email submissions: an ``invalid`` result is a hard stop,
- API submissions: an ``invalid`` result is stored and surfaced, but the
  document is still transmitted.

An unreachable or misbehaving engine produces ``status="error"`` plus an
operator alert.  It never blocks a transmission.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from peppolgate.core.errors import DocumentValidationFailed
from peppolgate.models.documents import ValidationFinding, ValidationResult, ValidationStatus
from peppolgate.models.transmission import SubmissionSource
from peppolgate.notifications.telegram import TelegramAlerter

logger = logging.getLogger(__name__)


class _EngineError(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    rule_code: str = Field(alias="ruleCode")
    error_message: str = Field(alias="errorMessage")
    error_level: str = Field(default="error", alias="errorLevel")
    field_name: str = Field(default="", alias="fieldName")


class _EngineResponse(BaseModel):
    result: ValidationStatus
    errors: list[_EngineError] = []


def result_from_engine(data: Any) -> ValidationResult:
    """Convert a rules-engine JSON answer into a ``ValidationResult``.

    Raises
    ------
    pydantic.ValidationError
        If the answer does not have the expected shape.
    """
    response = _EngineResponse.model_validate(data)
    return ValidationResult(
        status=response.result,
        findings=[
            ValidationFinding(
                field_name=e.field_name,
                message=e.error_message,
                rule_code=e.rule_code,
                level=e.error_level,
            )
            for e in response.errors
        ],
    )


class ValidationClient:
    """HTTP client for the rules engine.

    Parameters
    ----------
    url:
        The engine's validate endpoint.  When empty, every document is
        reported as ``not_supported``.
    alerter:
        Receives an alert whenever the engine cannot answer.
    client:
        Optional shared ``httpx.AsyncClient``.
    timeout:
        Bound in seconds for each validation request.
    """

    def __init__(
        self,
        url: str = "",
        *,
        alerter: TelegramAlerter | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._url = url
        self._alerter = alerter
        self._client = client
        self._timeout = timeout

    async def _alert(self, message: str) -> None:
        logger.error(message)
        if self._alerter is not None:
            await self._alerter.send_system_alert("Validation service", message, "error")

    async def _post(self, raw_body: str) -> httpx.Response:
        headers = {"Content-Type": "application/xml"}
        content = raw_body.encode("utf-8")
        if self._client is not None:
            return await self._client.post(
                self._url, content=content, headers=headers, timeout=self._timeout
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self._url, content=content, headers=headers)

    async def validate(self, raw_body: str) -> ValidationResult:
        """Validate *raw_body*.  Never raises."""
        if not self._url:
            logger.info("No validation service configured; skipping validation")
            return ValidationResult(status=ValidationStatus.NOT_SUPPORTED)

        try:
            response = await self._post(raw_body)
        except httpx.HTTPError as exc:
            await self._alert(f"Failed to validate XML document: {exc}")
            return ValidationResult(status=ValidationStatus.ERROR)

        if response.status_code != 200:
            await self._alert(
                f"Failed to reach validation service successfully: {response.status_code}"
            )
            return ValidationResult(status=ValidationStatus.ERROR)

        try:
            return result_from_engine(response.json())
        except (ValueError, ValidationError) as exc:
            await self._alert(f"Failed to parse validation response: {exc}")
            return ValidationResult(status=ValidationStatus.ERROR)


def enforce_validation_policy(result: ValidationResult, source: SubmissionSource) -> None:
    """Apply the hard/soft validation policy for *source*.

    Raises
    ------
    DocumentValidationFailed
        For an ``invalid`` result on an email submission.  The details
        carry one ``field: message`` line per finding.
    """
    if not result.is_invalid:
        return
    if source == SubmissionSource.EMAIL:
        raise DocumentValidationFailed(
            "Document validation failed",
            findings=list(result.findings),
            details=result.describe_findings(),
        )
    logger.warning(
        "Document failed validation with %d findings; transmitting anyway (API submission)",
        len(result.findings),
    )
