"""
Notification Repository

Data access layer for the notifications table.
"""

from typing import List, Optional

from sqlalchemy import delete, select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from legalpro_notifications.repositories.base import BaseRepository
from legalpro_notifications.models.notification import Notification


class NotificationRepository(BaseRepository[Notification]):
    """Repository for Notification model."""

    def __init__(self, db: AsyncSession):
        super().__init__(Notification, db)

    async def get_user_notifications(
        self,
        user_id: str,
        limit: Optional[int] = None,
        unread_only: bool = False
    ) -> List[Notification]:
        """
        Get a user's notifications, most recent first.

        Args:
            user_id: Owner id
            limit: Maximum records (None = all)
            unread_only: Only return ``is_read == False`` rows
        """
        stmt = select(self.model).where(self.model.user_id == user_id)

        if unread_only:
            stmt = stmt.where(self.model.is_read.is_(False))

        stmt = stmt.order_by(self.model.created_at.desc())

        if limit:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_unread(self, user_id: str) -> int:
        result = await self.db.execute(
            select(func.count(self.model.id)).where(
                self.model.user_id == user_id,
                self.model.is_read.is_(False),
            )
        )
        return result.scalar() or 0

    async def mark_read(self, notification_id: str, user_id: str) -> int:
        """Returns the number of rows updated (0 for an unknown or foreign id)."""
        result = await self.db.execute(
            update(self.model)
            .where(
                self.model.id == notification_id,
                self.model.user_id == user_id,
            )
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.db.execute(
            update(self.model)
            .where(
                self.model.user_id == user_id,
                self.model.is_read.is_(False),
            )
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def delete_for_user(self, notification_id: str, user_id: str) -> bool:
        """Delete one of ``user_id``'s notifications. False when nothing matched."""
        result = await self.db.execute(
            delete(self.model).where(
                self.model.id == notification_id,
                self.model.user_id == user_id,
            )
        )
        await self.db.commit()
        return bool(result.rowcount)
