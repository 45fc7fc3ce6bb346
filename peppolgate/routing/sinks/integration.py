"""Integration sink: posts node events to activated plugins.

Only events in the plugin event set are considered, and only for the
integrations of the event's entity whose stored configuration enables
that capability.  Plugins are invoked one after the other; a plugin
failure is logged and never stops the remaining plugins.
"""

from __future__ import annotations

import logging

from peppolgate.core.store import NodeStore
from peppolgate.models.events import NodeEvent
from peppolgate.models.integrations import IntegrationEvent
from peppolgate.plugins.client import IntegrationClient
from peppolgate.routing.sinks import SinkDeliveryError

logger = logging.getLogger(__name__)


class IntegrationSink:
    """Delivers events to integrations with the matching capability enabled."""

    def __init__(self, store: NodeStore, client: IntegrationClient) -> None:
        self._store = store
        self._client = client

    @property
    def sink_name(self) -> str:
        return "integrations"

    async def accept(self, event: NodeEvent) -> None:
        if event.event_type not in IntegrationEvent.values():
            return

        targets = [
            integration
            for integration in self._store.integrations_for_entity(
                event.tenant_id, event.entity_id
            )
            if integration.configuration.is_enabled(event.event_type)
        ]
        failures = 0
        for integration in targets:
            try:
                await self._client.post_to_integration(
                    integration, event.event_type, event.integration_context()
                )
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Integration %s failed for event %s: %s",
                    integration.integration_id,
                    event.event_type,
                    exc,
                )
                failures += 1

        if targets and failures == len(targets):
            raise SinkDeliveryError(
                f"All {len(targets)} integrations failed for event {event.event_id}"
            )
