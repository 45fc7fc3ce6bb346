"""Bridge layer between the node and the document transports.

Modules
-------
transport
    ``As4Transport`` delegates to the external AS4 access-point service.
    ``SimulatedTransport`` mimics network acceptance in-process for
    sandbox entities.  Both implement ``DocumentTransport``.
"""

from peppolgate.bridge.transport import (
    As4Transport,
    DocumentTransport,
    SendOutcome,
    SendRequest,
    SimulatedTransport,
    TransportError,
)

__all__ = [
    "As4Transport",
    "DocumentTransport",
    "SendOutcome",
    "SendRequest",
    "SimulatedTransport",
    "TransportError",
]
