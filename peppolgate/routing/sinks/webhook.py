"""Webhook sink: POSTs node events to tenant subscriptions.

For an event raised for entity E of tenant T the targets are T's
webhooks scoped to E plus T's unscoped webhooks.  Targets are called one
after the other.  Each call is isolated: a target that times out or
refuses the connection is logged and the next target is still called.
No response contract is enforced beyond the request completing.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from peppolgate.core.store import NodeStore
from peppolgate.models.events import NodeEvent
from peppolgate.models.webhooks import Webhook
from peppolgate.routing.sinks import SinkDeliveryError

logger = logging.getLogger(__name__)


class WebhookSink:
    """Delivers events to matching webhooks.

    Parameters
    ----------
    store:
        Source of each tenant's webhooks.
    client:
        Optional shared ``httpx.AsyncClient``.
    timeout:
        Bound in seconds for each webhook call.
    """

    def __init__(
        self,
        store: NodeStore,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._store = store
        self._client = client
        self._timeout = timeout

    @property
    def sink_name(self) -> str:
        return "webhooks"

    async def _post(self, url: str, payload: dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=self._timeout)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, json=payload)

    async def call_webhook(self, webhook: Webhook, event: NodeEvent) -> None:
        """POST *event*'s envelope to one webhook.  Transport errors propagate."""
        response = await self._post(webhook.url, event.webhook_payload())
        if response.is_error:
            logger.warning(
                "Webhook %s answered %d for event %s",
                webhook.webhook_id,
                response.status_code,
                event.event_type,
            )

    async def accept(self, event: NodeEvent) -> None:
        """Call every matching webhook.

        Raises
        ------
        SinkDeliveryError
            Only when there were targets and every one of them failed.
        """
        targets = self._store.webhooks_for_entity(event.tenant_id, event.entity_id)
        if not targets:
            logger.debug("No webhooks for %s/%s", event.tenant_id, event.entity_id)
            return

        failures: list[str] = []
        for webhook in targets:
            try:
                await self.call_webhook(webhook, event)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Failed to call webhook %s for event %s: %s",
                    webhook.webhook_id,
                    event.event_type,
                    exc,
                )
                failures.append(webhook.webhook_id)

        if failures and len(failures) == len(targets):
            raise SinkDeliveryError(
                f"All {len(targets)} webhooks failed for event {event.event_id}"
            )
