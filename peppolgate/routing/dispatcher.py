"""EventDispatcher: routes node events to ALL configured sinks.

Every event dispatched through this module is handed to every registered
sink, in registration order and one after the other.  Sink failures are
logged but do not prevent delivery to remaining sinks, and never reach
the operation that raised the event unless every sink failed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from peppolgate.models.events import NodeEvent

if TYPE_CHECKING:
    from peppolgate.routing.sinks import EventSink

logger = logging.getLogger(__name__)


class SinkDispatchError(RuntimeError):
    """Raised when every registered sink failed for one event."""


class EventDispatcher:
    """Routes events to ALL configured sinks.

    Usage
    -----
    >>> dispatcher = EventDispatcher()
    >>> dispatcher.register_sink(webhook_sink)
    >>> dispatcher.register_sink(integration_sink)
    >>> await dispatcher.dispatch(event)
    """

    def __init__(self) -> None:
        self._sinks: list[EventSink] = []

    # ------------------------------------------------------------------
    # Sink management
    # ------------------------------------------------------------------

    def register_sink(self, sink: EventSink) -> None:
        """Register a sink.  Registering the same instance twice is a no-op."""
        if sink not in self._sinks:
            self._sinks.append(sink)
            logger.info("Registered sink: %s", sink.sink_name)

    def unregister_sink(self, sink: EventSink) -> None:
        """Remove a previously registered sink."""
        try:
            self._sinks.remove(sink)
            logger.info("Unregistered sink: %s", sink.sink_name)
        except ValueError:
            pass

    @property
    def registered_sinks(self) -> list[EventSink]:
        """Return a copy of the registered sink list."""
        return list(self._sinks)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(self, event: NodeEvent) -> list[str]:
        """Dispatch *event* to ALL registered sinks.

        Returns the names of the sinks that accepted the event.

        Raises
        ------
        SinkDispatchError
            If *all* sinks fail.  Individual failures are tolerated.
        """
        if not self._sinks:
            logger.warning(
                "No sinks registered: event %s (%s) dropped", event.event_id, event.event_type
            )
            return []

        succeeded: list[str] = []
        errors: list[tuple[str, Exception]] = []

        for sink in self._sinks:
            try:
                await sink.accept(event)
                succeeded.append(sink.sink_name)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Sink %s failed for event %s (%s): %s",
                    sink.sink_name,
                    event.event_id,
                    event.event_type,
                    exc,
                )
                errors.append((sink.sink_name, exc))

        if errors and not succeeded:
            raise SinkDispatchError(
                f"All {len(errors)} sinks failed for event {event.event_id}: "
                + "; ".join(f"{name}: {exc}" for name, exc in errors)
            )

        if errors:
            logger.warning(
                "Event %s: %d/%d sinks succeeded, %d failed",
                event.event_id,
                len(succeeded),
                len(self._sinks),
                len(errors),
            )

        return succeeded
