"""Address resolution — SML naming, NAPTR discovery, publisher metadata."""

from peppolgate.resolver.naptr import resolve_publisher, resolve_publisher_record
from peppolgate.resolver.smp import ServiceMetadataError, SmpClient, SmpError
from peppolgate.resolver.verifier import RecipientVerifier

__all__ = [
    "RecipientVerifier",
    "ServiceMetadataError",
    "SmpClient",
    "SmpError",
    "resolve_publisher",
    "resolve_publisher_record",
]
