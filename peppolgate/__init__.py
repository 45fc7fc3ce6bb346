"""peppolgate: Peppol access-point node.

Components:
  - Address resolver: SML naming, NAPTR publisher discovery, SMP metadata
  - Document classifier and rules-engine validation
  - Transmission orchestrator with live AS4 and simulated sandbox transports
  - Event dispatcher: tenant webhooks and manifest-driven integration plugins
"""

__version__ = "0.1.0"
__description__ = "Peppol access-point node: discovery, validation, transmission and events"

from peppolgate.core.orchestrator import TransmissionOrchestrator
from peppolgate.resolver.verifier import RecipientVerifier

__all__ = ["RecipientVerifier", "TransmissionOrchestrator", "__version__"]
