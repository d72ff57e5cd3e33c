"""
Notification Store

In-memory ordered collection of one session's notifications plus its
unread counter. Owns no network access and enforces no policy beyond its
own invariants: most-recent-first order as given by callers, unique ids,
and a counter that never goes negative.
"""

from typing import Iterable, List, Optional, Tuple

from legalpro_notifications.schemas.notification import Notification


class NotificationStore:
    """Ordered notifications for the current user session."""

    def __init__(self) -> None:
        self._notifications: List[Notification] = []
        self._unread_count = 0

    def __len__(self) -> int:
        return len(self._notifications)

    @property
    def unread_count(self) -> int:
        return self._unread_count

    def index_of(self, notification_id: str) -> Optional[int]:
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                return index
        return None

    def get(self, notification_id: str) -> Optional[Notification]:
        index = self.index_of(notification_id)
        return None if index is None else self._notifications[index]

    # ------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------
    def replace(self, notifications: Iterable[Notification], unread_count: int) -> None:
        """Replace contents with a full load, keeping the server's order."""
        self._notifications = [n.model_copy() for n in notifications]
        self._unread_count = max(0, unread_count)

    def clear(self) -> None:
        self._notifications = []
        self._unread_count = 0

    # ------------------------------------------------------------
    # Records
    # ------------------------------------------------------------
    def prepend(self, notification: Notification) -> None:
        """Insert at the head: arrival order, not timestamp order."""
        self._notifications.insert(0, notification.model_copy())

    def insert(self, index: int, notification: Notification) -> None:
        self._notifications.insert(index, notification.model_copy())

    def remove(self, notification_id: str) -> Optional[Tuple[int, Notification]]:
        """
        Remove a record by id.

        Returns:
            (previous index, record), or None if the id is unknown
        """
        index = self.index_of(notification_id)
        if index is None:
            return None
        return index, self._notifications.pop(index)

    def mark_read(self, notification_id: str) -> bool:
        """
        Set ``is_read`` on one record.

        Returns:
            True only if the record exists and was unread before
        """
        notification = self.get(notification_id)
        if notification is None or notification.is_read:
            return False
        notification.is_read = True
        return True

    def mark_unread(self, notification_id: str) -> bool:
        notification = self.get(notification_id)
        if notification is None or not notification.is_read:
            return False
        notification.is_read = False
        return True

    def mark_all_read(self) -> List[str]:
        """Mark every record read; returns the ids that changed."""
        changed = []
        for notification in self._notifications:
            if not notification.is_read:
                notification.is_read = True
                changed.append(notification.id)
        return changed

    # ------------------------------------------------------------
    # Counter
    # ------------------------------------------------------------
    def increment_unread(self, amount: int = 1) -> None:
        self._unread_count += max(0, amount)

    def decrement_unread(self) -> None:
        self._unread_count = max(0, self._unread_count - 1)

    def reset_unread(self) -> None:
        self._unread_count = 0

    def snapshot(self) -> List[Notification]:
        """Copies of the records, so readers can never mutate the store."""
        return [n.model_copy() for n in self._notifications]
