"""
Notification Gateway Abstract Base Class

This module defines the interface every notification backend must
implement. The reconciler only ever talks to a NotificationGateway, so the
backing store (in-memory, SQL database, Supabase REST) can be swapped
without touching reconciliation logic.

A gateway returns plain data. It never touches a session's local
NotificationStore; that is the reconciler's job.
"""
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional

from legalpro_notifications.schemas.notification import Notification, NotificationCreate

logger = logging.getLogger(__name__)

# Push callback: receives each new notification for the subscribed user
EventHandler = Callable[[Notification], None]


class GatewayError(Exception):
    """
    Base exception for gateway operations.

    All backend errors inherit from this, allowing the reconciler to
    catch gateway failures generically:

        try:
            await gateway.mark_read(notification_id, user_id)
        except GatewayError as e:
            # Log and carry on
    """
    pass


class GatewayUnavailableError(GatewayError):
    """Raised when the backing store cannot be reached or rejects a call."""
    pass


class SubscriptionError(GatewayError):
    """Raised when the live push channel cannot be established."""
    pass


class Subscription:
    """
    Handle for an open live channel.

    ``close()`` is idempotent; after it returns no further events are
    delivered for this handle.
    """

    def __init__(
        self,
        user_id: str,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self.user_id = user_id
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            await self._on_close()
        logger.debug(f"Subscription closed for user={self.user_id}")


class NotificationGateway(ABC):
    """
    Abstract base class for notification backends.

    Usage:
    ------
        gateway = InMemoryNotificationGateway()
        notifications = await gateway.list_notifications("user-1", limit=20)
        subscription = await gateway.subscribe("user-1", on_event)
        ...
        await subscription.close()
    """

    @abstractmethod
    async def list_notifications(
        self,
        user_id: str,
        limit: Optional[int] = None
    ) -> List[Notification]:
        """
        Fetch a user's notifications, most recent first.

        Args:
            user_id: Owner of the notifications
            limit: Maximum records (None = backend default)

        Returns:
            Notifications ordered by created_at descending

        Raises:
            GatewayError: If the backing store cannot be queried
        """
        pass

    @abstractmethod
    async def count_unread(self, user_id: str) -> int:
        """
        Count every unread notification of a user.

        Independent of ``list_notifications``: the list may be truncated,
        the count never is.
        """
        pass

    @abstractmethod
    async def list_unread(self, user_id: str) -> List[Notification]:
        """Fetch only the unread notifications, most recent first."""
        pass

    @abstractmethod
    async def mark_read(self, notification_id: str, user_id: str) -> None:
        """
        Persist ``is_read = True`` for one notification owned by ``user_id``.

        Unknown ids and ids owned by someone else are not an error: the
        update simply matches nothing.
        """
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: str) -> None:
        """Persist ``is_read = True`` for every unread notification of a user."""
        pass

    @abstractmethod
    async def delete(self, notification_id: str, user_id: str) -> None:
        """Delete one notification owned by ``user_id``. Matching nothing is not an error."""
        pass

    @abstractmethod
    async def create(self, payload: NotificationCreate) -> Notification:
        """
        Insert a new unread notification and push it to live subscribers.

        ``payload`` must already carry its title and message.
        """
        pass

    @abstractmethod
    async def subscribe(self, user_id: str, on_event: EventHandler) -> Subscription:
        """
        Open a live channel delivering new notifications for ``user_id``.

        Raises:
            SubscriptionError: If the channel cannot be established
        """
        pass

    async def close(self) -> None:
        """
        Release backend resources (HTTP clients, engines...).

        Optional: default implementation does nothing.
        """
        return None
