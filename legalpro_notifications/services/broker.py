"""
Notification Broker

Transport for live push events. Producers ``publish()`` a freshly created
notification; gateways hand out ``subscribe()`` handles scoped to one
user id.

Two implementations:
- InMemoryBroker: per-process fan-out, used for local dev and tests
- RedisBroker: Redis Pub/Sub, so a notification created on one instance
  reaches sessions held by every other instance
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

from redis.asyncio import Redis

from legalpro_notifications.gateways.base import EventHandler, Subscription, SubscriptionError
from legalpro_notifications.schemas.notification import Notification

logger = logging.getLogger(__name__)


def channel_name(user_id: str) -> str:
    return f"notifications:{user_id}"


class NotificationBroker(ABC):
    """Publish/subscribe transport for new-notification events."""

    @abstractmethod
    async def publish(self, notification: Notification) -> None:
        pass

    @abstractmethod
    async def subscribe(self, user_id: str, on_event: EventHandler) -> Subscription:
        pass

    async def close(self) -> None:
        return None


# ============================================================
# In-Memory Broker
# ============================================================

class InMemoryBroker(NotificationBroker):
    """
    Delivers published notifications to local subscribers synchronously,
    in publish order.
    """

    def __init__(self):
        # Map: user_id -> handlers in subscription order
        self._handlers: Dict[str, List[EventHandler]] = {}

    def subscriber_count(self, user_id: str) -> int:
        return len(self._handlers.get(user_id, []))

    async def publish(self, notification: Notification) -> None:
        handlers = list(self._handlers.get(notification.user_id, []))
        if not handlers:
            logger.debug(f"No local subscribers for user={notification.user_id}")
            return

        for handler in handlers:
            try:
                handler(notification.model_copy())
            except Exception as e:
                logger.warning(f"Push handler failed for user={notification.user_id}: {e}")

    async def subscribe(self, user_id: str, on_event: EventHandler) -> Subscription:
        self._handlers.setdefault(user_id, []).append(on_event)

        async def _remove() -> None:
            handlers = self._handlers.get(user_id)
            if not handlers:
                return
            if on_event in handlers:
                handlers.remove(on_event)
            if not handlers:
                del self._handlers[user_id]

        return Subscription(user_id, on_close=_remove)

    async def close(self) -> None:
        self._handlers.clear()


# ============================================================
# Redis Pub/Sub Broker
# ============================================================

class RedisBroker(NotificationBroker):
    """
    Redis Pub/Sub transport.

    Each subscription owns a PubSub connection on ``notifications:{user_id}``
    and a background task that decodes messages and hands them to the
    handler.
    """

    def __init__(self, redis: Redis):
        self._redis = redis
        self._tasks: Set[asyncio.Task] = set()

    async def publish(self, notification: Notification) -> None:
        channel = channel_name(notification.user_id)
        await self._redis.publish(channel, notification.model_dump_json())
        logger.info(f"Published notification {notification.id} to Redis channel {channel}")

    async def subscribe(self, user_id: str, on_event: EventHandler) -> Subscription:
        channel = channel_name(user_id)
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(channel)
        except Exception as e:
            await pubsub.aclose()
            raise SubscriptionError(f"Could not subscribe to {channel}: {e}") from e

        task = asyncio.create_task(self._listen(pubsub, user_id, on_event))
        self._tasks.add(task)
        logger.info(f"Subscribed to Redis channel: {channel}")

        async def _stop() -> None:
            self._tasks.discard(task)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            try:
                await pubsub.unsubscribe(channel)
            finally:
                await pubsub.aclose()

        return Subscription(user_id, on_close=_stop)

    async def _listen(self, pubsub, user_id: str, on_event: EventHandler) -> None:
        """Background task delivering channel messages to one handler."""
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    data = message["data"]
                    if isinstance(data, bytes):
                        data = data.decode("utf-8")
                    notification = Notification.model_validate_json(data)
                    on_event(notification)
                except Exception as e:
                    logger.error(f"Error processing Redis message for user={user_id}: {e}")
        except asyncio.CancelledError:
            logger.info(f"Redis subscriber task cancelled for user={user_id}")
            raise

    async def close(self) -> None:
        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass


# ============================================================
# Singleton Instance
# ============================================================

_broker: Optional[NotificationBroker] = None


async def get_broker() -> NotificationBroker:
    """Return the broker configured by NOTIFICATION_BROKER."""
    global _broker
    if _broker is None:
        from legalpro_notifications.core.config import settings

        if settings.NOTIFICATION_BROKER == "redis":
            from legalpro_notifications.db.redis import get_redis
            _broker = RedisBroker(await get_redis())
        else:
            _broker = InMemoryBroker()
        logger.info(f"Notification broker initialized: {settings.NOTIFICATION_BROKER}")
    return _broker


async def shutdown_broker() -> None:
    global _broker
    if _broker is not None:
        await _broker.close()
        _broker = None
