"""In-process fan-out of orchestrator events to subscriber queues."""

import asyncio
import logging
from typing import Any

logger = logging.getLogger(__name__)

ARRIVALS_CHANGED = "arrivals_changed"
JOURNEY_PROGRESS_CHANGED = "journey_progress_changed"
NEXT_STOP_CHANGED = "next_stop_changed"
STOP_CHANGED = "stop_changed"
MESSAGES_CHANGED = "messages_changed"
STOPS_CHANGED = "stops_changed"
DOWNLOAD_STATE_CHANGED = "download_state_changed"
DISPLAY_TICK = "display_tick"


class Notifier:
    """Publishes events to every subscriber queue without blocking."""

    def __init__(self, queue_size: int = 64) -> None:
        self._queue_size = queue_size
        self._subscribers: set[asyncio.Queue] = set()

    def publish(self, event: str, **data: Any) -> None:
        payload = {"type": event, **data}
        for q in self._subscribers:
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                # A slow reader misses this event but stays subscribed.
                logger.debug("Dropping %s for a full subscriber queue", event)

    def subscribe(self) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue) -> None:
        self._subscribers.discard(q)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
