from legalpro_notifications.repositories.base import BaseRepository
from legalpro_notifications.repositories.notification_repo import NotificationRepository

__all__ = [
    "BaseRepository",
    "NotificationRepository",
]
