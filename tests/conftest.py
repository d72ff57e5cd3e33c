"""
Shared fixtures.

ControllableGateway wraps the in-memory backend so tests can make single
operations fail, hold them open on an asyncio.Event, or report an unread
count that disagrees with the list.
"""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import pytest

from legalpro_notifications.gateways.base import GatewayUnavailableError
from legalpro_notifications.gateways.memory import InMemoryNotificationGateway
from legalpro_notifications.schemas.notification import Notification
from legalpro_notifications.services.broker import InMemoryBroker
from legalpro_notifications.services.reconciler import NotificationReconciler

BASE_TIME = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class ControllableGateway(InMemoryNotificationGateway):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.failing: Set[str] = set()
        self.gates: Dict[str, asyncio.Event] = {}
        self.calls: List[str] = []
        self.count_override: Optional[int] = None

    def seed(self, *notifications: Notification) -> None:
        for notification in notifications:
            self._records[notification.id] = notification.model_copy()

    def calls_to(self, operation: str) -> int:
        return self.calls.count(operation)

    async def wait_for(self, operation: str) -> None:
        """Spin the loop until ``operation`` has been entered."""
        for _ in range(1000):
            if operation in self.calls:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"{operation} was never called")

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        if operation in self.failing:
            raise GatewayUnavailableError(f"{operation} unavailable")

    async def list_notifications(self, user_id, limit=None):
        await self._enter("list_notifications")
        return await super().list_notifications(user_id, limit)

    async def count_unread(self, user_id):
        await self._enter("count_unread")
        if self.count_override is not None:
            return self.count_override
        return await super().count_unread(user_id)

    async def list_unread(self, user_id):
        await self._enter("list_unread")
        return await super().list_unread(user_id)

    async def mark_read(self, notification_id, user_id):
        await self._enter("mark_read")
        await super().mark_read(notification_id, user_id)

    async def mark_all_read(self, user_id):
        await self._enter("mark_all_read")
        await super().mark_all_read(user_id)

    async def delete(self, notification_id, user_id):
        await self._enter("delete")
        await super().delete(notification_id, user_id)

    async def subscribe(self, user_id, on_event):
        await self._enter("subscribe")
        return await super().subscribe(user_id, on_event)


@pytest.fixture
def make_notification():
    counter = itertools.count(1)

    def _make(
        user_id: str = "user-1",
        is_read: bool = False,
        minutes_ago: int = 0,
        id: Optional[str] = None,
        **fields,
    ) -> Notification:
        number = next(counter)
        fields.setdefault("type", "order_completed")
        fields.setdefault("title", "Compra Exitosa")
        fields.setdefault("message", f"Tu orden #{number} ha sido procesada correctamente.")
        return Notification(
            id=id or f"n{number}",
            user_id=user_id,
            is_read=is_read,
            created_at=BASE_TIME - timedelta(minutes=minutes_ago),
            **fields,
        )

    return _make


@pytest.fixture
def broker():
    return InMemoryBroker()


@pytest.fixture
def gateway(broker):
    return ControllableGateway(broker=broker)


@pytest.fixture
async def reconciler(gateway):
    reconciler = NotificationReconciler(gateway)
    yield reconciler
    await reconciler.teardown()


@pytest.fixture
async def rollback_reconciler(gateway):
    reconciler = NotificationReconciler(gateway, rollback_on_failure=True)
    yield reconciler
    await reconciler.teardown()
