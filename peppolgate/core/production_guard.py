"""Production configuration guard — enforces hard constraints in production.

The guard validates that production-critical settings are correctly configured
before the node starts sending.  It runs once at construction time and fails
hard (raises ``ProductionConfigError``) if any constraint is violated.

This module is the single enforcement point for production invariants.
Other code should not scatter ``if is_production`` checks.
"""

from __future__ import annotations

import logging

from peppolgate.config import NodeConfig

logger = logging.getLogger(__name__)

# NodeConfig field names that must be non-empty in production.
PRODUCTION_REQUIRED_SETTINGS: list[str] = [
    "as4_base_url",
    "as4_token",
]


class ProductionConfigError(RuntimeError):
    """Raised when production configuration constraints are violated.

    This error indicates the node cannot safely start in production mode
    with the current configuration.  It must not be caught and ignored.
    """


def enforce_production_constraints(config: NodeConfig) -> None:
    """Validate all production-critical configuration constraints.

    Constraints enforced
    --------------------
    1. Debug mode must be disabled.
    2. The live AS4 collaborator must be configured (base URL and token).

    Raises
    ------
    ProductionConfigError
        If any production constraint is violated.
    """
    if not config.is_production:
        return

    violations: list[str] = []

    if config.debug:
        violations.append(
            "debug=True is not allowed in production. "
            "Set PEPPOLGATE_DEBUG=false."
        )

    for key_name in PRODUCTION_REQUIRED_SETTINGS:
        if not getattr(config, key_name, ""):
            violations.append(
                f"Setting '{key_name}' is required in production but not configured. "
                f"Set PEPPOLGATE_{key_name.upper()}."
            )

    if violations:
        msg = (
            "Production configuration guard failed.\n"
            + "\n".join(f"  - {v}" for v in violations)
        )
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.info("Production configuration guard passed.")
