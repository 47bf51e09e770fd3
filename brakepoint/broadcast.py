"""Publish reference brake zones to overlay consumers as immutable snapshots."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass, replace

from brakepoint.brake_zones import BrakeZone
from brakepoint.constants import LEAD_TIME_S

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OverlaySnapshot:
    """Zones and lead time as seen by every overlay consumer."""

    zones: tuple[BrakeZone, ...] = ()
    lead_time_s: float = LEAD_TIME_S
    session_id: str | None = None
    version: int = 0


class ZoneBroadcaster:
    """Last-value-wins publish/subscribe for :class:`OverlaySnapshot`.

    Each subscriber owns a one-slot queue.  Publishing replaces any snapshot
    the subscriber has not read yet, so a slow consumer only ever sees the
    most recent state.  New subscribers immediately receive the current
    snapshot.
    """

    def __init__(self) -> None:
        self._latest = OverlaySnapshot()
        self._subscribers: set[asyncio.Queue[OverlaySnapshot]] = set()

    def latest(self) -> OverlaySnapshot:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(
        self,
        zones: Iterable[BrakeZone] | None = None,
        lead_time_s: float | None = None,
        session_id: str | None = None,
    ) -> OverlaySnapshot:
        """Publish a new snapshot; omitted fields keep their current value."""
        current = self._latest
        snapshot = replace(
            current,
            zones=tuple(zones) if zones is not None else current.zones,
            lead_time_s=lead_time_s if lead_time_s is not None else current.lead_time_s,
            session_id=session_id if session_id is not None else current.session_id,
            version=current.version + 1,
        )
        self._send(snapshot)
        logger.debug(
            "Published overlay snapshot v%d (%d zones) to %d subscriber(s)",
            snapshot.version,
            len(snapshot.zones),
            len(self._subscribers),
        )
        return snapshot

    def subscribe(self) -> asyncio.Queue[OverlaySnapshot]:
        queue: asyncio.Queue[OverlaySnapshot] = asyncio.Queue(maxsize=1)
        queue.put_nowait(self._latest)
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[OverlaySnapshot]) -> None:
        self._subscribers.discard(queue)

    async def stream(self) -> AsyncIterator[OverlaySnapshot]:
        """Yield snapshots as they are published, starting with the current one."""
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)

    def reset(self) -> OverlaySnapshot:
        """Clear zones, lead time and session; subscribers receive the cleared snapshot.

        The version keeps counting up so subscribers can still order snapshots.
        """
        snapshot = OverlaySnapshot(version=self._latest.version + 1)
        self._send(snapshot)
        logger.debug("Reset overlay snapshot to v%d", snapshot.version)
        return snapshot

    def _send(self, snapshot: OverlaySnapshot) -> None:
        self._latest = snapshot
        for queue in self._subscribers:
            _offer(queue, snapshot)


def _offer(queue: asyncio.Queue[OverlaySnapshot], snapshot: OverlaySnapshot) -> None:
    """Put *snapshot* on a one-slot queue, dropping the unread one if needed."""
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(snapshot)
