"""Cron-triggered integration events.

Three fixed intervals are posted to every integration that enables the
matching capability:

- ``integration.cron.short``: ``*/5 * * * *`` (every five minutes)
- ``integration.cron.medium``: ``0 */6 * * *`` (every six hours)
- ``integration.cron.long``: ``0 0 * * *`` (daily at midnight UTC)

Integrations are visited one after the other.  Each is gated by an
entitlement check, and one integration's failure is logged without
stopping the rest.

The scheduler remembers the last minute it evaluated.  A late tick fires
every event that fell due since then, once, so a slow run never drops
the daily or six-hourly slot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict

from peppolgate.core.store import NodeStore
from peppolgate.models.integrations import CRON_EVENTS, ActivatedIntegration, IntegrationEvent
from peppolgate.plugins.client import IntegrationClient

logger = logging.getLogger(__name__)

CRON_SCHEDULES: dict[IntegrationEvent, str] = {
    IntegrationEvent.CRON_SHORT: "*/5 * * * *",
    IntegrationEvent.CRON_MEDIUM: "0 */6 * * *",
    IntegrationEvent.CRON_LONG: "0 0 * * *",
}

Entitlement = Callable[[ActivatedIntegration], bool]


def is_due(event: IntegrationEvent, moment: datetime) -> bool:
    """Whether *event*'s schedule fires in the minute containing *moment*."""
    if event == IntegrationEvent.CRON_SHORT:
        return moment.minute % 5 == 0
    if event == IntegrationEvent.CRON_MEDIUM:
        return moment.minute == 0 and moment.hour % 6 == 0
    if event == IntegrationEvent.CRON_LONG:
        return moment.minute == 0 and moment.hour == 0
    raise ValueError(f"{event.value} is not a cron event")


class CronRunSummary(BaseModel):
    """What one cron interval did."""

    model_config = ConfigDict(frozen=True)

    event: IntegrationEvent
    dispatched: int = 0
    skipped: int = 0
    failed: int = 0


class CronScheduler:
    """Posts the cron events to eligible integrations.

    Parameters
    ----------
    store:
        Source of the integrations enabling each cron capability.
    client:
        Posts the events.
    entitlement:
        Called per integration before dispatch.  Returning ``False``
        skips it.  Defaults to allowing every integration.
    clock:
        Returns the current UTC time.
    """

    def __init__(
        self,
        store: NodeStore,
        client: IntegrationClient,
        *,
        entitlement: Entitlement | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._entitlement = entitlement
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # event -> minute slot already run
        self._last_slot: dict[IntegrationEvent, datetime] = {}
        self._last_minute: datetime | None = None

    async def run_event(self, event: IntegrationEvent) -> CronRunSummary:
        """Post *event* to every integration that enables it, now."""
        if event not in CRON_EVENTS:
            raise ValueError(f"{event.value} is not a cron event")

        logger.info("Executing %s", event.value)
        dispatched = skipped = failed = 0
        for integration in self._store.integrations_with_capability(event.value):
            try:
                if self._entitlement is not None and not self._entitlement(integration):
                    logger.info(
                        "Skipping %s for integration %s: not entitled",
                        event.value,
                        integration.integration_id,
                    )
                    skipped += 1
                    continue
                await self._client.post_to_integration(integration, event.value)
                dispatched += 1
            except Exception:  # noqa: BLE001
                logger.exception(
                    "Cron event %s failed for integration %s",
                    event.value,
                    integration.integration_id,
                )
                failed += 1

        return CronRunSummary(event=event, dispatched=dispatched, skipped=skipped, failed=failed)

    async def tick(self, now: datetime | None = None) -> list[CronRunSummary]:
        """Run every cron event that fell due since the previous tick.

        The first tick only considers its own minute.  An event due in
        several skipped minutes still runs once.  A failing event is
        logged and left out of the returned summaries.
        """
        current = _minute_slot(now or self._clock())
        if self._last_minute is None:
            slot = current
        else:
            slot = self._last_minute + timedelta(minutes=1)
        window: list[datetime] = []
        while slot <= current:
            window.append(slot)
            slot += timedelta(minutes=1)
        if self._last_minute is None or current > self._last_minute:
            self._last_minute = current

        summaries: list[CronRunSummary] = []
        for event in CRON_EVENTS:
            due = [slot for slot in window if is_due(event, slot)]
            if not due or self._last_slot.get(event) == due[-1]:
                continue
            self._last_slot[event] = due[-1]
            summary = await self._run_logged(event)
            if summary is not None:
                summaries.append(summary)
        return summaries

    async def run_forever(self, tick_seconds: float = 30.0) -> None:
        """Tick until cancelled.  The short interval also runs once at start."""
        logger.info("Integration cron jobs initialized")
        started = _minute_slot(self._clock())
        await self._run_logged(IntegrationEvent.CRON_SHORT)
        # The startup run covers a short slot due in the same minute.
        if is_due(IntegrationEvent.CRON_SHORT, started):
            self._last_slot[IntegrationEvent.CRON_SHORT] = started
        while True:
            try:
                await self.tick()
            except Exception:  # noqa: BLE001
                logger.exception("Cron tick failed")
            await asyncio.sleep(tick_seconds)

    async def _run_logged(self, event: IntegrationEvent) -> CronRunSummary | None:
        try:
            return await self.run_event(event)
        except Exception:  # noqa: BLE001
            logger.exception("Cron event %s failed", event.value)
            return None


def _minute_slot(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)
