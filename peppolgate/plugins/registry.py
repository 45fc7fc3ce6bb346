"""Integration lifecycle: activate, reconfigure, reset and remove plugins.

Create and update always fetch the plugin's *current* manifest and run
the compatibility gate before anything is stored.  ``integration.setup``
is posted after a create and ``integration.teardown`` before a delete,
each only when the configuration enables it.  Both are best-effort: a
plugin failure there is logged and never undoes the lifecycle change.
The one exception is a setup answer in an unsupported protocol version,
which removes the new integration again and reaches the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from peppolgate.core.entities import EntityDirectory
from peppolgate.core.store import NodeStore
from peppolgate.models.integrations import (
    ActivatedIntegration,
    IntegrationConfiguration,
    IntegrationEvent,
    IntegrationTaskLog,
)
from peppolgate.plugins.client import IntegrationClient
from peppolgate.plugins.compatibility import (
    check_configuration_compatibility,
    parse_configuration,
)
from peppolgate.plugins.errors import (
    IntegrationError,
    IntegrationNotFound,
    UnsupportedResponseVersion,
)

logger = logging.getLogger(__name__)


class IntegrationRegistry:
    """Tenant-facing integration management.

    Parameters
    ----------
    store:
        Persists integrations and their task logs.
    client:
        Fetches manifests and posts lifecycle events.
    entities:
        Used to check that an integration's entity belongs to its tenant.
    """

    def __init__(
        self,
        store: NodeStore,
        client: IntegrationClient,
        entities: EntityDirectory,
    ) -> None:
        self._store = store
        self._client = client
        self._entities = entities

    def _require_entity(self, tenant_id: str, entity_id: str) -> None:
        entity = self._entities.get(entity_id)
        if entity is None or entity.tenant_id != tenant_id:
            raise IntegrationError("Business entity not found or does not belong to the tenant")

    def get(self, tenant_id: str, integration_id: str) -> ActivatedIntegration:
        integration = self._store.get_integration(tenant_id, integration_id)
        if integration is None:
            raise IntegrationNotFound("Integration not found")
        return integration

    def list(self, tenant_id: str, *, entity_id: str | None = None) -> list[ActivatedIntegration]:
        if entity_id is not None:
            return self._store.integrations_for_entity(tenant_id, entity_id)
        return self._store.list_integrations(tenant_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create(
        self,
        tenant_id: str,
        entity_id: str,
        url: str,
        configuration: IntegrationConfiguration | dict[str, Any],
    ) -> ActivatedIntegration:
        """Activate the plugin at *url* for one business entity.

        Raises
        ------
        IntegrationError
            If the entity is unknown, the manifest cannot be fetched, or
            the configuration is incompatible with it.
        UnsupportedResponseVersion
            If the plugin answers ``integration.setup`` in another protocol
            version.  Nothing stays stored.
        """
        self._require_entity(tenant_id, entity_id)
        manifest = await self._client.fetch_manifest(url)
        checked = check_configuration_compatibility(manifest, parse_configuration(configuration))

        integration = self._store.save_integration(
            ActivatedIntegration(
                tenant_id=tenant_id,
                entity_id=entity_id,
                manifest=manifest,
                configuration=checked,
                state={},
            )
        )
        logger.info(
            "Activated integration %s (%s) for entity %s",
            integration.integration_id,
            manifest.name,
            entity_id,
        )
        try:
            await self._post_lifecycle_event(integration, IntegrationEvent.SETUP)
        except UnsupportedResponseVersion:
            self._store.delete_integration(tenant_id, integration.integration_id)
            raise
        # Setup may have replaced the state.
        return self.get(tenant_id, integration.integration_id)

    async def update(
        self,
        tenant_id: str,
        integration_id: str,
        *,
        configuration: IntegrationConfiguration | dict[str, Any] | None = None,
        entity_id: str | None = None,
    ) -> ActivatedIntegration:
        """Reconfigure an integration against the plugin's current manifest.

        The stored state is kept.  Omitted arguments keep their stored
        values, but the gate always runs again.
        """
        existing = self.get(tenant_id, integration_id)
        target_entity = entity_id or existing.entity_id
        self._require_entity(tenant_id, target_entity)

        manifest = await self._client.fetch_manifest(existing.manifest.url)
        candidate = (
            parse_configuration(configuration)
            if configuration is not None
            else existing.configuration
        )
        checked = check_configuration_compatibility(manifest, candidate)

        updated = existing.model_copy(
            update={
                "entity_id": target_entity,
                "manifest": manifest,
                "configuration": checked,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        self._store.save_integration(updated)
        logger.info("Updated integration %s", integration_id)
        return updated

    async def delete(self, tenant_id: str, integration_id: str) -> None:
        """Remove an integration, posting ``integration.teardown`` first."""
        integration = self.get(tenant_id, integration_id)
        await self._post_lifecycle_event(integration, IntegrationEvent.TEARDOWN)
        self._store.delete_integration(tenant_id, integration_id)
        logger.info("Deleted integration %s", integration_id)

    def reset_state(self, tenant_id: str, integration_id: str) -> ActivatedIntegration:
        """Clear the plugin-owned state."""
        self.get(tenant_id, integration_id)
        self._store.update_integration_state(tenant_id, integration_id, {})
        return self.get(tenant_id, integration_id)

    def task_logs(
        self, tenant_id: str, integration_id: str, *, limit: int | None = None
    ) -> list[IntegrationTaskLog]:
        """Task logs for a tenant's integration, newest first."""
        self.get(tenant_id, integration_id)
        return self._store.list_task_logs(integration_id, limit=limit)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _post_lifecycle_event(
        self, integration: ActivatedIntegration, event: IntegrationEvent
    ) -> None:
        if not integration.configuration.is_enabled(event.value):
            return
        try:
            await self._client.post_to_integration(integration, event.value)
        except UnsupportedResponseVersion:
            if event == IntegrationEvent.SETUP:
                raise
            logger.error(
                "Integration %s answered %s in an unsupported version",
                integration.integration_id,
                event.value,
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "Integration %s failed to handle %s", integration.integration_id, event.value
            )
