"""HTTP client for the integration plugin contract.

Plugin contract
---------------
- ``GET <url>/manifest`` returns the plugin's ``IntegrationManifest``.
- ``POST <url>/<event>`` with ``{version, auth, fields, state, context}``
  returns ``{version, state?, tasks?}`` on success (HTTP 200), or
  ``{version, error: {message, task, context?}}`` on failure.

The response version is pinned to ``PROTOCOL_VERSION``.  A mismatch is
fatal and is checked before anything else in the response.  A returned
state replaces the stored state wholesale.  Every returned task, and the
task of a well-formed error response, is persisted as a task log.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from peppolgate.core.store import NodeStore
from peppolgate.models.integrations import (
    ActivatedIntegration,
    IntegrationErrorResponse,
    IntegrationManifest,
    IntegrationResponse,
    IntegrationTaskLog,
)
from peppolgate.plugins.errors import (
    IntegrationRequestFailed,
    ManifestError,
    UnsupportedResponseVersion,
)

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "1.0.0"
REDACTED = "..."


def clean_url(*parts: str) -> str:
    """Join URL parts with exactly one ``/`` between them.

    >>> clean_url("https://plugin.example/", "/document.received")
    'https://plugin.example/document.received'
    """
    head, *rest = parts
    pieces = [head.rstrip("/")] + [p.strip("/") for p in rest if p.strip("/")]
    return "/".join(pieces)


def validate_manifest(data: Any) -> IntegrationManifest:
    """Validate raw manifest JSON.

    Raises
    ------
    ManifestError
        If *data* does not satisfy the manifest schema.
    """
    try:
        return IntegrationManifest.model_validate(data)
    except ValidationError as exc:
        problems = ", ".join(err["msg"] for err in exc.errors())
        raise ManifestError(f"Invalid manifest: {problems}") from exc


def build_request_body(
    integration: ActivatedIntegration, context: dict[str, Any] | None = None
) -> dict[str, Any]:
    """The ``{version, auth, fields, state, context}`` body for one invocation."""
    return {
        "version": PROTOCOL_VERSION,
        "auth": integration.configuration.auth.model_dump(mode="json"),
        "fields": integration.configuration.flattened_fields(),
        "state": integration.state,
        "context": {
            **(context or {}),
            "companyId": integration.entity_id,
            "teamId": integration.tenant_id,
        },
    }


def redact_request_body(body: dict[str, Any]) -> dict[str, Any]:
    """Copy of *body* with the auth token masked, safe to log."""
    redacted = dict(body)
    redacted["auth"] = {**body.get("auth", {}), "token": REDACTED}
    return redacted


class IntegrationClient:
    """Talks to integration plugins and records what they report.

    Parameters
    ----------
    store:
        Receives state replacements and task logs.
    client:
        Optional shared ``httpx.AsyncClient``.
    timeout:
        Bound in seconds for each plugin request.
    """

    def __init__(
        self,
        store: NodeStore,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._client = client
        self._timeout = timeout

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, timeout=self._timeout, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    async def fetch_manifest(self, url: str) -> IntegrationManifest:
        """Fetch and validate the manifest published at ``<url>/manifest``.

        Raises
        ------
        ManifestError
            If the plugin cannot be reached, answers with an error status,
            or publishes an invalid manifest.
        """
        try:
            response = await self._request(
                "GET", clean_url(url, "manifest"), headers={"Content-Type": "application/json"}
            )
        except httpx.HTTPError as exc:
            raise ManifestError(
                f"Failed to fetch integration manifest from {url}: {exc}"
            ) from exc

        if not response.is_success:
            raise ManifestError(
                f"Failed to fetch integration manifest from {url}: {response.reason_phrase}"
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ManifestError(f"Invalid manifest: response from {url} is not JSON") from exc
        return validate_manifest(data)

    # ------------------------------------------------------------------
    # Event invocation
    # ------------------------------------------------------------------

    async def post_to_integration(
        self,
        integration: ActivatedIntegration,
        event: str,
        context: dict[str, Any] | None = None,
    ) -> IntegrationResponse:
        """Invoke *event* on the plugin behind *integration*.

        Returns the validated success response after applying its state
        replacement and persisting its task logs.

        Raises
        ------
        UnsupportedResponseVersion
            If the response version is not ``PROTOCOL_VERSION``.
        IntegrationRequestFailed
            If the plugin is unreachable, reports a failure, or answers
            with a body that does not match the contract.
        """
        body = build_request_body(integration, context)
        url = clean_url(integration.manifest.url, event)
        logger.info(
            "Posting to integration %s %s %s",
            integration.manifest.url,
            event,
            json.dumps(redact_request_body(body)),
        )

        try:
            response = await self._request(
                "POST", url, json=body, headers={"Content-Type": "application/json"}
            )
        except httpx.HTTPError as exc:
            raise IntegrationRequestFailed(
                f"Failed to reach integration {integration.manifest.name}: {exc}"
            ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise IntegrationRequestFailed(
                f"Invalid response from integration {integration.manifest.name}: body is not JSON"
            ) from exc

        version = data.get("version") if isinstance(data, dict) else None
        if version != PROTOCOL_VERSION:
            raise UnsupportedResponseVersion(version, PROTOCOL_VERSION)

        if response.status_code != 200:
            message = "Invalid response for unsuccessful integration request"
            try:
                failure = IntegrationErrorResponse.model_validate(data)
            except ValidationError:
                failure = None
            if failure is not None:
                message = failure.error.message
                self._store.create_task_log(
                    IntegrationTaskLog(
                        integration_id=integration.integration_id,
                        event=event,
                        task=failure.error.task,
                        success=False,
                        message=message,
                        context=failure.error.context or "",
                    )
                )
            logger.error(
                "Error response from integration %s %s: %s",
                integration.manifest.url,
                event,
                json.dumps(data),
            )
            raise IntegrationRequestFailed(message)

        try:
            parsed = IntegrationResponse.model_validate(data)
        except ValidationError as exc:
            raise IntegrationRequestFailed(
                f"Invalid response for successful integration request: {exc.errors()}"
            ) from exc

        if parsed.state is not None:
            self._store.update_integration_state(
                integration.tenant_id, integration.integration_id, parsed.state
            )
        if parsed.tasks:
            self._store.create_task_logs(
                IntegrationTaskLog(
                    integration_id=integration.integration_id,
                    event=event,
                    task=task.task,
                    success=task.success,
                    message=task.message,
                    context=task.context,
                )
                for task in parsed.tasks
            )
        return parsed
