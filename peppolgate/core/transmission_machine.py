"""Per-attempt transmission state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- SENT and FAILED are terminal; a retry is a new attempt
- Every transition recorded in the attempt's history
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from peppolgate.models.transmission import VALID_TRANSITIONS, TransmissionState

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class TransmissionMachine:
    """Tracks one transmission attempt through its states.

    Parameters
    ----------
    attempt_id:
        Identifier used in log lines and error messages.
    """

    def __init__(self, attempt_id: str) -> None:
        self._attempt_id = attempt_id
        self._state = TransmissionState.RECEIVED
        self._history: list[tuple[TransmissionState, TransmissionState, datetime]] = []

    @property
    def attempt_id(self) -> str:
        return self._attempt_id

    @property
    def state(self) -> TransmissionState:
        return self._state

    @property
    def history(self) -> list[tuple[TransmissionState, TransmissionState, datetime]]:
        """``(from, to, at)`` for every transition taken so far."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS.get(self._state)

    def transition(self, target: TransmissionState) -> TransmissionState:
        """Move to *target*, or raise ``InvalidTransitionError``."""
        current = self._state
        allowed = VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {self._attempt_id} from {current.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        self._history.append((current, target, datetime.now(timezone.utc)))
        self._state = target
        logger.debug("Attempt %s: %s -> %s", self._attempt_id, current.value, target.value)
        return target

    def fail(self) -> TransmissionState:
        """Move to FAILED from any non-terminal state."""
        return self.transition(TransmissionState.FAILED)
