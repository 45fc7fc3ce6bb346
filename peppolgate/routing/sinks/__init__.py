"""Sink protocol for node event routing.

All sinks implement the ``EventSink`` protocol: a ``sink_name`` property
and an async ``accept(event)`` method.  The dispatcher awaits ``accept``
on every registered sink for every dispatched event.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from peppolgate.models.events import NodeEvent


class SinkDeliveryError(RuntimeError):
    """Raised by a sink when every one of its targets failed."""


@runtime_checkable
class EventSink(Protocol):
    """Protocol that every event sink must implement.

    Attributes
    ----------
    sink_name : str
        A unique human-readable identifier for this sink instance
        (e.g. ``"webhooks"``, ``"integrations"``).
    """

    @property
    def sink_name(self) -> str:
        """Return the unique name of this sink."""
        ...

    async def accept(self, event: NodeEvent) -> None:
        """Deliver *event* to this sink's targets.

        Implementations try every target before raising, so one broken
        target never starves the others.

        Parameters
        ----------
        event:
            The event to deliver.
        """
        ...
