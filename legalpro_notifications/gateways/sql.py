"""
SQL Notification Gateway

Persists notifications in the ``notifications`` table through async
SQLAlchemy (Postgres/Supabase in production). SQL has no push channel of
its own, so new rows are announced through a NotificationBroker.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from legalpro_notifications.gateways.base import (
    EventHandler,
    GatewayUnavailableError,
    NotificationGateway,
    Subscription,
)
from legalpro_notifications.repositories.notification_repo import NotificationRepository
from legalpro_notifications.schemas.notification import Notification, NotificationCreate
from legalpro_notifications.services.broker import NotificationBroker

logger = logging.getLogger(__name__)


class SqlNotificationGateway(NotificationGateway):
    """
    Database-backed gateway.

    Every call opens its own short-lived session, so calls issued
    concurrently by one reconciler never share a transaction.
    """

    def __init__(self, session_factory: async_sessionmaker, broker: NotificationBroker):
        self.session_factory = session_factory
        self.broker = broker

    async def list_notifications(
        self,
        user_id: str,
        limit: Optional[int] = None
    ) -> List[Notification]:
        try:
            async with self.session_factory() as db:
                rows = await NotificationRepository(db).get_user_notifications(user_id, limit=limit)
                return [Notification.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise GatewayUnavailableError(f"Failed to list notifications: {e}") from e

    async def count_unread(self, user_id: str) -> int:
        try:
            async with self.session_factory() as db:
                return await NotificationRepository(db).count_unread(user_id)
        except SQLAlchemyError as e:
            raise GatewayUnavailableError(f"Failed to count unread notifications: {e}") from e

    async def list_unread(self, user_id: str) -> List[Notification]:
        try:
            async with self.session_factory() as db:
                rows = await NotificationRepository(db).get_user_notifications(
                    user_id, unread_only=True
                )
                return [Notification.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise GatewayUnavailableError(f"Failed to list unread notifications: {e}") from e

    async def mark_read(self, notification_id: str, user_id: str) -> None:
        try:
            async with self.session_factory() as db:
                updated = await NotificationRepository(db).mark_read(notification_id, user_id)
        except SQLAlchemyError as e:
            raise GatewayUnavailableError(f"Failed to mark notification as read: {e}") from e
        if not updated:
            logger.debug(f"mark_read matched no rows: id={notification_id}, user={user_id}")

    async def mark_all_read(self, user_id: str) -> None:
        try:
            async with self.session_factory() as db:
                updated = await NotificationRepository(db).mark_all_read(user_id)
        except SQLAlchemyError as e:
            raise GatewayUnavailableError(f"Failed to mark all notifications as read: {e}") from e
        logger.info(f"Marked {updated} notifications read for user={user_id}")

    async def delete(self, notification_id: str, user_id: str) -> None:
        try:
            async with self.session_factory() as db:
                deleted = await NotificationRepository(db).delete_for_user(notification_id, user_id)
        except SQLAlchemyError as e:
            raise GatewayUnavailableError(f"Failed to delete notification: {e}") from e
        if not deleted:
            logger.debug(f"delete matched no rows: id={notification_id}, user={user_id}")

    async def create(self, payload: NotificationCreate) -> Notification:
        try:
            async with self.session_factory() as db:
                row = await NotificationRepository(db).create(
                    user_id=payload.user_id,
                    type=payload.type,
                    title=payload.title or "",
                    message=payload.message or "",
                    action_url=payload.action_url,
                    is_read=False,
                )
                notification = Notification.model_validate(row)
        except SQLAlchemyError as e:
            raise GatewayUnavailableError(f"Failed to create notification: {e}") from e

        logger.info(f"Notification {notification.id} created for user={notification.user_id}")
        await self.broker.publish(notification)
        return notification

    async def subscribe(self, user_id: str, on_event: EventHandler) -> Subscription:
        return await self.broker.subscribe(user_id, on_event)
