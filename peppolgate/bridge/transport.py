"""Transport bridge: live AS4 sending and the simulated sandbox transport.

Bridge boundary
---------------
The live transport delegates to an external AS4 access-point service over
HTTP.  The simulated transport never leaves the process.  It mimics
network acceptance for sandbox entities and can hand the document to a
sandbox recipient registered in the same tenant.

Both implement ``DocumentTransport`` so the orchestrator can depend on the
protocol rather than on either backend.

The simulated transport keeps a bounded log of the requests it accepted
(default 1024) so tests and the CLI can inspect what was "sent".
"""

from __future__ import annotations

import collections
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

NOT_FOUND_RECIPIENT = "404:404"


class TransportError(RuntimeError):
    """Raised when a transport-level operation fails."""


# ---------------------------------------------------------------------------
# Request / outcome
# ---------------------------------------------------------------------------


class SendRequest(BaseModel):
    """Everything a transport needs to deliver one document."""

    model_config = ConfigDict(frozen=True)

    sender_id: str
    receiver_id: str
    document_type_id: str
    process_id: str
    country_code: str
    body: str
    use_test_network: bool = False
    tenant_id: str | None = None


class SendingException(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class SendOutcome(BaseModel):
    """Transport answer: ``{ok, peppolMessageId?, sbdhInstanceIdentifier?, sendingException?}``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ok: bool
    network_message_id: str | None = Field(default=None, alias="peppolMessageId")
    envelope_id: str | None = Field(default=None, alias="sbdhInstanceIdentifier")
    sending_exception: SendingException | None = Field(default=None, alias="sendingException")

    @property
    def diagnostic(self) -> str:
        """The transport's own failure text, or a fixed fallback."""
        if self.sending_exception is not None:
            return self.sending_exception.message
        return "No additional context available"


@runtime_checkable
class DocumentTransport(Protocol):
    """Protocol that both transports implement."""

    @property
    def transport_name(self) -> str:
        """Return the name of this transport."""
        ...

    async def send(self, request: SendRequest) -> SendOutcome:
        """Deliver *request*.

        A refused delivery is reported as ``ok=False``.  ``TransportError``
        is raised only when the transport could not produce an answer.
        """
        ...


# ---------------------------------------------------------------------------
# Live AS4
# ---------------------------------------------------------------------------


class As4Transport:
    """Delegates sending to the AS4 access-point service.

    Parameters
    ----------
    base_url:
        Root URL of the access-point service.
    token:
        Sent as ``X-Token``.  Never logged.
    client:
        Optional shared ``httpx.AsyncClient``.
    timeout:
        Bound in seconds for each send.
    """

    transport_name = "as4"

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._client = client
        self._timeout = timeout

    def build_send_url(self, request: SendRequest) -> str:
        """``<base>/sendas4/<sender>/<receiver>/<doctype>/<process>/<country>``, each part encoded."""
        parts = (
            request.sender_id,
            request.receiver_id,
            request.document_type_id,
            request.process_id,
            request.country_code,
        )
        return f"{self._base_url}/sendas4/" + "/".join(quote(p, safe="") for p in parts)

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, timeout=self._timeout, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, **kwargs)

    async def send(self, request: SendRequest) -> SendOutcome:
        url = self.build_send_url(request)
        headers = {"Content-Type": "application/xml", "X-Token": self._token}
        params = {"useTestNetwork": "true"} if request.use_test_network else None
        logger.info(
            "AS4 send %s -> %s (%s, test_network=%s)",
            request.sender_id,
            request.receiver_id,
            request.document_type_id,
            request.use_test_network,
        )
        try:
            response = await self._post(
                url, content=request.body.encode("utf-8"), headers=headers, params=params
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"AS4 service unreachable: {exc}") from exc

        try:
            outcome = SendOutcome.model_validate(response.json())
        except (ValueError, ValidationError):
            # Some failures come back as plain text with an error status.
            if response.status_code >= 400:
                return SendOutcome(
                    ok=False,
                    sending_exception=SendingException(
                        message=response.text or f"AS4 service answered {response.status_code}"
                    ),
                )
            raise TransportError(
                f"Unreadable AS4 service response (status {response.status_code})"
            ) from None

        if outcome.ok:
            logger.info("AS4 send accepted, message id %s", outcome.network_message_id)
        else:
            logger.warning("AS4 send refused: %s", outcome.diagnostic)
        return outcome


# ---------------------------------------------------------------------------
# Simulated (sandbox)
# ---------------------------------------------------------------------------

DeliveryCallback = Callable[[SendRequest], Awaitable[None]]


class SimulatedTransport:
    """In-process stand-in for the network, used by sandbox entities.

    Parameters
    ----------
    on_delivered:
        Awaited for every accepted request.  The orchestrator uses it to
        hand the document to a sandbox recipient in the same tenant.
    max_log:
        Depth of the accepted-request log.
    """

    transport_name = "simulated"

    def __init__(
        self,
        on_delivered: DeliveryCallback | None = None,
        *,
        max_log: int = 1024,
    ) -> None:
        self._on_delivered = on_delivered
        self._sent: collections.deque[SendRequest] = collections.deque(maxlen=max_log)

    def set_delivery_callback(self, callback: DeliveryCallback | None) -> None:
        self._on_delivered = callback

    @property
    def sent(self) -> list[SendRequest]:
        """Requests accepted so far, oldest first."""
        return list(self._sent)

    async def send(self, request: SendRequest) -> SendOutcome:
        """Accept *request*, or raise ``TransportError`` for the not-found address."""
        if request.receiver_id == NOT_FOUND_RECIPIENT:
            raise TransportError(
                f"This document was sent to recipient {NOT_FOUND_RECIPIENT}, simulating the "
                "sending of a document to a Peppol address that does not exist."
            )
        self._sent.append(request)
        logger.info(
            "Simulated send %s -> %s (%s)",
            request.sender_id,
            request.receiver_id,
            request.document_type_id,
        )
        if self._on_delivered is not None:
            await self._on_delivered(request)
        return SendOutcome(ok=True)
