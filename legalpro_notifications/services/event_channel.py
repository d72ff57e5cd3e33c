"""
Push Event Channel

Message-passing channel between a gateway subscription (producer) and a
reconciler (consumer). The gateway callback only enqueues; the reconciler
drains the queue from its own consumer task, so closing the channel is an
explicit cancellation point and the queue bound is the backpressure knob.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

from legalpro_notifications.schemas.notification import Notification

logger = logging.getLogger(__name__)

_CLOSED = object()


class EventChannel:
    """
    asyncio.Queue backed channel of push events.

    ``maxsize=0`` means unbounded. When bounded and full, the newest event
    is dropped and logged; the next ``refresh()`` resynchronizes.
    """

    def __init__(self, maxsize: int = 0, name: str = "notifications"):
        self.name = name
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Events enqueued but not yet consumed."""
        return self._queue.qsize()

    def send(self, notification: Notification) -> bool:
        """
        Enqueue a push event. Safe to call from a subscription callback.

        Returns:
            True if the event was accepted
        """
        if self._closed:
            logger.debug(f"Channel {self.name} closed; dropping event {notification.id}")
            return False
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                f"Channel {self.name} full; dropped event {notification.id} "
                f"(total dropped: {self.dropped})"
            )
            return False
        return True

    def close(self) -> None:
        """Stop accepting events and wake the consumer so it can exit."""
        if self._closed:
            return
        self._closed = True
        # Drop anything not yet consumed; the sentinel must fit
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def receive(self) -> Optional[Notification]:
        """Wait for the next event; ``None`` once the channel is closed."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[Notification]:
        while True:
            item = await self.receive()
            if item is None:
                return
            yield item
