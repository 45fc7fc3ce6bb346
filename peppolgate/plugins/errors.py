"""Integration plugin errors.

All of them are user-facing: they describe a plugin or a tenant
configuration problem and are safe to show verbatim.
"""

from __future__ import annotations

from peppolgate.core.errors import UserFacingError


class IntegrationError(UserFacingError):
    """Base class for integration plugin failures."""


class ManifestError(IntegrationError):
    """The plugin's manifest could not be fetched or is malformed."""


class IntegrationConfigurationError(IntegrationError):
    """A tenant configuration is incompatible with the plugin's manifest."""


class UnsupportedResponseVersion(IntegrationError):
    """The plugin answered with a protocol version other than the pinned one."""

    def __init__(self, version: object, expected: str) -> None:
        super().__init__(
            f"Unsupported response version: {version}. Expected version: {expected}"
        )
        self.version = version
        self.expected = expected


class IntegrationRequestFailed(IntegrationError):
    """The plugin reported a failure or answered with an unreadable response."""


class IntegrationNotFound(IntegrationError):
    """No integration with the requested id exists for the tenant."""
