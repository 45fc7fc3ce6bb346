"""Integration plugins: manifest-driven third-party extensions.

A plugin publishes a manifest, a tenant supplies a compatible
configuration, and the node posts events to the plugin under a pinned
protocol version.
"""

from peppolgate.plugins.client import PROTOCOL_VERSION, IntegrationClient
from peppolgate.plugins.compatibility import check_configuration_compatibility
from peppolgate.plugins.cron import CronScheduler
from peppolgate.plugins.registry import IntegrationRegistry

__all__ = [
    "PROTOCOL_VERSION",
    "CronScheduler",
    "IntegrationClient",
    "IntegrationRegistry",
    "check_configuration_compatibility",
]
