"""Configuration compatibility gate.

Run on every integration create and update, against the plugin's
*current* manifest.  A configuration is rejected outright when it is
structurally incompatible:

- its auth type is not one the manifest allows,
- a manifest-required field has no configured value,
- a configured field or capability names something the manifest lacks,
- a configured field's value type differs from the manifest's.

A mandatory capability that is missing or disabled is not a rejection:
the returned configuration has it enabled.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from peppolgate.models.integrations import (
    ConfigurationCapability,
    IntegrationConfiguration,
    IntegrationManifest,
)
from peppolgate.plugins.errors import IntegrationConfigurationError

logger = logging.getLogger(__name__)


def parse_configuration(data: Any) -> IntegrationConfiguration:
    """Validate raw configuration JSON.

    Raises
    ------
    IntegrationConfigurationError
        If *data* does not satisfy the configuration schema.
    """
    if isinstance(data, IntegrationConfiguration):
        return data
    try:
        return IntegrationConfiguration.model_validate(data)
    except ValidationError as exc:
        problems = ", ".join(err["msg"] for err in exc.errors())
        raise IntegrationConfigurationError(f"Invalid configuration: {problems}") from exc


def check_configuration_compatibility(
    manifest: IntegrationManifest,
    configuration: IntegrationConfiguration,
) -> IntegrationConfiguration:
    """Check *configuration* against *manifest*.

    Returns
    -------
    IntegrationConfiguration
        The configuration to store, with every mandatory capability
        enabled.

    Raises
    ------
    IntegrationConfigurationError
        On the first structural incompatibility found.
    """
    if configuration.auth.type not in manifest.auth_types:
        supported = ", ".join(t.value for t in manifest.auth_types)
        raise IntegrationConfigurationError(
            f"Configuration auth type '{configuration.auth.type.value}' is not supported "
            f"by manifest. Supported types: {supported}"
        )

    manifest_fields = {f.id: f for f in manifest.fields}
    configured_fields = {f.id: f for f in configuration.fields}

    for field in manifest.fields:
        if field.required and field.id not in configured_fields:
            raise IntegrationConfigurationError(
                f"Required field '{field.id}' ({field.title}) is missing from configuration"
            )

    for configured in configuration.fields:
        declared = manifest_fields.get(configured.id)
        if declared is None:
            raise IntegrationConfigurationError(
                f"Configuration contains extra field '{configured.id}' that is not "
                "defined in manifest"
            )
        if declared.type != configured.type:
            raise IntegrationConfigurationError(
                f"Configuration field '{configured.id}' has type '{configured.type}' but "
                f"manifest declares '{declared.type}'"
            )

    manifest_events = {c.event for c in manifest.capabilities}
    for capability in configuration.capabilities:
        if capability.event not in manifest_events:
            raise IntegrationConfigurationError(
                f"Configuration contains capability for event '{capability.event.value}' "
                "that is not supported by manifest"
            )

    capabilities = {c.event: c for c in configuration.capabilities}
    for declared_cap in manifest.capabilities:
        if not declared_cap.required:
            continue
        current = capabilities.get(declared_cap.event)
        if current is None or not current.enabled:
            logger.info(
                "Force-enabling required capability '%s' for integration %s",
                declared_cap.event.value,
                manifest.name,
            )
            capabilities[declared_cap.event] = ConfigurationCapability(
                event=declared_cap.event, enabled=True
            )

    # Stored in manifest order.
    ordered = [capabilities[c.event] for c in manifest.capabilities if c.event in capabilities]
    return configuration.model_copy(update={"capabilities": ordered})
