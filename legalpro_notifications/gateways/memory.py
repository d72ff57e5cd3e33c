"""
In-Memory Notification Gateway

Keeps notifications in a process-local dict. Perfect for:
- Development without a database
- Tests
- Single-process demos of the live channel

Nothing survives a restart.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from legalpro_notifications.gateways.base import (
    EventHandler,
    NotificationGateway,
    Subscription,
)
from legalpro_notifications.schemas.notification import Notification, NotificationCreate
from legalpro_notifications.services.broker import InMemoryBroker, NotificationBroker

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 20


class InMemoryNotificationGateway(NotificationGateway):
    """
    Dict-backed gateway.

    Attributes:
        broker: Push transport used by ``create`` and ``subscribe``
    """

    def __init__(
        self,
        broker: Optional[NotificationBroker] = None,
        notifications: Optional[Iterable[Notification]] = None,
    ):
        self.broker = broker or InMemoryBroker()
        self._records: Dict[str, Notification] = {}
        for notification in notifications or []:
            self._records[notification.id] = notification.model_copy()

    def _for_user(self, user_id: str) -> List[Notification]:
        records = [n for n in self._records.values() if n.user_id == user_id]
        records.sort(key=lambda n: n.created_at, reverse=True)
        return records

    def get(self, notification_id: str) -> Optional[Notification]:
        record = self._records.get(notification_id)
        return record.model_copy() if record else None

    async def list_notifications(
        self,
        user_id: str,
        limit: Optional[int] = None
    ) -> List[Notification]:
        records = self._for_user(user_id)[: limit or DEFAULT_LIST_LIMIT]
        return [n.model_copy() for n in records]

    async def count_unread(self, user_id: str) -> int:
        return sum(1 for n in self._for_user(user_id) if not n.is_read)

    async def list_unread(self, user_id: str) -> List[Notification]:
        return [n.model_copy() for n in self._for_user(user_id) if not n.is_read]

    def _owned(self, notification_id: str, user_id: str) -> Optional[Notification]:
        record = self._records.get(notification_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    async def mark_read(self, notification_id: str, user_id: str) -> None:
        record = self._owned(notification_id, user_id)
        if record is not None:
            record.is_read = True

    async def mark_all_read(self, user_id: str) -> None:
        for record in self._for_user(user_id):
            record.is_read = True

    async def delete(self, notification_id: str, user_id: str) -> None:
        if self._owned(notification_id, user_id) is not None:
            del self._records[notification_id]

    async def create(self, payload: NotificationCreate) -> Notification:
        notification = Notification(
            id=str(uuid.uuid4()),
            user_id=payload.user_id,
            type=payload.type,
            title=payload.title or "",
            message=payload.message or "",
            action_url=payload.action_url,
            is_read=False,
            created_at=datetime.now(timezone.utc),
        )
        self._records[notification.id] = notification
        logger.info(f"Notification {notification.id} created for user={notification.user_id}")

        await self.broker.publish(notification.model_copy())
        return notification.model_copy()

    async def subscribe(self, user_id: str, on_event: EventHandler) -> Subscription:
        return await self.broker.subscribe(user_id, on_event)
