"""In-process publish/subscribe hub for per-user push channels."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)

CODE_AVAILABLE_EVENT: dict[str, Any] = {"status": "AVAILABLE"}


def code_channel(user_id: str) -> str:
    """Return the push channel name for ``user_id``."""
    return f"code_{user_id}"


class Subscription:
    """A single subscriber's buffered view of one channel."""

    def __init__(self, channel: str, max_queue_size: int) -> None:
        self.channel = channel
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(
            maxsize=max_queue_size
        )

    def offer(self, message: dict[str, Any]) -> bool:
        try:
            self._queue.put_nowait(dict(message))
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> dict[str, Any]:
        return await self._queue.get()

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class RealtimeBroker:
    """Fan out messages to every live subscriber of a channel.

    Delivery is best effort: messages sent while nobody listens are dropped,
    and a subscriber whose buffer is full misses the message. Clients that
    miss an event catch up on their next poll.

    Example:
        async with broker.subscribe("code_t2_abc") as subscription:
            message = await subscription.get()
    """

    def __init__(self, max_queue_size: int = 16) -> None:
        self.max_queue_size = max(1, max_queue_size)
        self._subscribers: dict[str, set[Subscription]] = {}

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    async def send(self, channel: str, message: dict[str, Any]) -> int:
        """Publish ``message`` to ``channel``.

        Returns:
            Number of subscribers the message was queued for.
        """
        delivered = 0
        for subscription in list(self._subscribers.get(channel, ())):
            if subscription.offer(message):
                delivered += 1
            else:
                logger.warning(
                    "Dropping realtime message for channel=%s; subscriber queue full",
                    channel,
                )
        logger.debug("Realtime message sent to channel=%s (%d subscribers)", channel, delivered)
        return delivered

    @asynccontextmanager
    async def subscribe(self, channel: str) -> AsyncIterator[Subscription]:
        subscription = Subscription(channel, self.max_queue_size)
        self._subscribers.setdefault(channel, set()).add(subscription)
        logger.debug("Subscriber joined channel=%s", channel)
        try:
            yield subscription
        finally:
            subscribers = self._subscribers.get(channel)
            if subscribers is not None:
                subscribers.discard(subscription)
                if not subscribers:
                    self._subscribers.pop(channel, None)
            logger.debug("Subscriber left channel=%s", channel)
