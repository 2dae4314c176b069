"""
In-process publish/subscribe channel for sale notifications.

One broker lives on ``app.state`` per process.  Subscribers get their own
bounded queue; a subscriber that falls behind loses the oldest events
rather than blocking publishers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from leaftrack.schemas.assignment import SaleEvent

logger = logging.getLogger(__name__)


class SaleEventBroker:
    def __init__(self, max_queue_size: int = 100) -> None:
        self._max_queue_size = max_queue_size
        self._subscribers: set[asyncio.Queue[SaleEvent]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: SaleEvent) -> int:
        """Fan *event* out to every subscriber; returns how many received it."""
        for queue in self._subscribers:
            if queue.full():
                queue.get_nowait()
                logger.warning("Sale event subscriber lagging, dropped oldest event")
            queue.put_nowait(event)
        return len(self._subscribers)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[SaleEvent]]:
        queue: asyncio.Queue[SaleEvent] = asyncio.Queue(maxsize=self._max_queue_size)
        self._subscribers.add(queue)
        logger.debug("Sale event subscriber added (%d active)", len(self._subscribers))
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)
            logger.debug("Sale event subscriber removed (%d active)", len(self._subscribers))


def format_sse(event: SaleEvent) -> str:
    """Render an event as a server-sent-events frame."""
    return f"event: {event.event}\ndata: {event.model_dump_json()}\n\n"
