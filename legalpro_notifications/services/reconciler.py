"""
Notification Reconciler

Single authority over one session's NotificationStore. Bridges two event
sources:

- user commands (mark read, mark all read, delete, refresh), applied to
  the store optimistically *before* the gateway call is awaited, so local
  mutation order always follows call order
- push events from the gateway's live channel, drained from an
  EventChannel by one consumer task per binding

Every gateway failure is caught here and logged; nothing is re-raised to
the presentation layer. Local state is only eventually consistent with the
backing store, and ``refresh()`` is the resynchronization point.

Each binding gets a generation number. Any asynchronous result that comes
back after the generation moved on (teardown, re-bind to another user) is
discarded instead of being applied to the new session's store.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from legalpro_notifications.gateways.base import NotificationGateway, Subscription
from legalpro_notifications.schemas.notification import Notification, NotificationSnapshot
from legalpro_notifications.services.event_channel import EventChannel
from legalpro_notifications.services.notification_store import NotificationStore

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[NotificationSnapshot], None]


class ReconcilerState(str, Enum):
    UNBOUND = "unbound"
    LOADING = "loading"
    ACTIVE = "active"


@dataclass
class PendingCommand:
    """Marker for a command applied locally but not yet confirmed."""
    kind: str
    notification_id: Optional[str]
    generation: int
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationReconciler:
    """
    Keeps a session's notification list and unread counter consistent
    with local commands and remote push events.

    Args:
        gateway: Backend used for loads, persistence and the live channel
        list_limit: Maximum records fetched by a full load
        rollback_on_failure: Revert a command's optimistic effect when its
            persistence call fails (off by default: silent divergence until
            the next refresh)
        queue_size: Bound of the push event channel (0 = unbounded)
    """

    def __init__(
        self,
        gateway: NotificationGateway,
        list_limit: Optional[int] = None,
        rollback_on_failure: bool = False,
        queue_size: int = 0,
    ):
        self.gateway = gateway
        self.list_limit = list_limit
        self.rollback_on_failure = rollback_on_failure
        self.queue_size = queue_size

        self._store = NotificationStore()
        self._user_id: Optional[str] = None
        self._state = ReconcilerState.UNBOUND
        self._loading = False
        self._generation = 0

        self._subscription: Optional[Subscription] = None
        self._channel: Optional[EventChannel] = None
        self._consumer: Optional[asyncio.Task] = None

        self._pending: Dict[int, PendingCommand] = {}
        self._markers = itertools.count(1)
        self._listeners: List[SnapshotListener] = []

    # ============================================================
    # Read-only surface
    # ============================================================

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def state(self) -> ReconcilerState:
        return self._state

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def unread_count(self) -> int:
        return self._store.unread_count

    @property
    def notifications(self) -> List[Notification]:
        return self._store.snapshot()

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    @property
    def pending(self) -> List[PendingCommand]:
        return list(self._pending.values())

    def snapshot(self) -> NotificationSnapshot:
        return NotificationSnapshot(
            user_id=self._user_id,
            notifications=self._store.snapshot(),
            unread_count=self._store.unread_count,
            loading=self._loading,
        )

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Call ``listener`` with a fresh snapshot after every store change.

        Returns:
            A callable that unregisters the listener
        """
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    # ============================================================
    # Lifecycle
    # ============================================================

    async def initialize(self, user_id: Optional[str]) -> None:
        """
        Bind to ``user_id``: subscribe to its live channel and run a full load.

        An absent user id leaves the reconciler unbound with an empty store.
        Any previous binding is torn down first.
        """
        if self._state is not ReconcilerState.UNBOUND:
            await self.teardown()
        if not user_id:
            return

        self._generation += 1
        generation = self._generation
        self._user_id = user_id
        self._state = ReconcilerState.LOADING
        self._loading = True
        self._notify()

        channel = EventChannel(maxsize=self.queue_size, name=f"notifications:{user_id}")
        self._channel = channel

        await self._open_subscription(user_id, channel, generation)
        if generation != self._generation:
            return

        await self._load(user_id, generation)
        if generation != self._generation:
            return

        self._state = ReconcilerState.ACTIVE
        # Events that queued up during the load may already be in its result
        self._consumer = asyncio.create_task(
            self._consume(channel, generation, overlap=channel.pending())
        )
        logger.info(
            f"Notifications bound: user={user_id}, "
            f"records={len(self._store)}, unread={self._store.unread_count}"
        )
        self._notify()

    bind = initialize

    async def teardown(self) -> None:
        """
        Close the live channel and drop the session's state.

        In-flight command I/O is not cancelled; its late results are ignored.
        """
        self._generation += 1
        previous_user = self._user_id

        subscription, self._subscription = self._subscription, None
        channel, self._channel = self._channel, None
        consumer, self._consumer = self._consumer, None

        if channel is not None:
            channel.close()

        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass

        if subscription is not None:
            try:
                await subscription.close()
            except Exception as e:
                logger.warning(f"Failed to close subscription for user={previous_user}: {e}")

        self._user_id = None
        self._state = ReconcilerState.UNBOUND
        self._loading = False
        self._store.clear()

        if previous_user is not None:
            logger.info(f"Notifications unbound: user={previous_user}")
        self._notify()

    unbind = teardown

    async def refresh(self) -> None:
        """
        Re-run the full load for the bound user.

        Also retries the live channel if it could not be opened before.
        """
        user_id = self._user_id
        if not user_id:
            return
        generation = self._generation

        if self._subscription is None and self._channel is not None:
            await self._open_subscription(user_id, self._channel, generation)
            if generation != self._generation:
                return

        await self._load(user_id, generation)

    async def settle(self) -> None:
        """Yield to the loop until every queued push event has been applied."""
        channel = self._channel
        if channel is None or self._consumer is None:
            return
        while channel.pending() and not channel.closed:
            await asyncio.sleep(0)
        await asyncio.sleep(0)

    # ============================================================
    # Commands
    # ============================================================

    async def mark_as_read(self, notification_id: str) -> None:
        """
        Mark one notification read.

        The counter is decremented only if the local record was unread, so
        repeated calls decrement exactly once.
        """
        user_id = self._user_id
        if not user_id:
            logger.debug(f"mark_as_read ignored: no bound user (id={notification_id})")
            return

        generation = self._generation
        was_unread = self._store.mark_read(notification_id)
        if was_unread:
            self._store.decrement_unread()
            self._notify()

        marker = self._track("mark_read", notification_id, generation)
        try:
            await self.gateway.mark_read(notification_id, user_id)
        except Exception as e:
            logger.error(f"CommandFailure: mark_read id={notification_id}: {e}")
            if was_unread and self._should_rollback(generation):
                if self._store.mark_unread(notification_id):
                    self._store.increment_unread()
                    self._notify()
        finally:
            self._untrack(marker)

    async def mark_all_as_read(self) -> None:
        """Mark every notification read and reset the counter to zero."""
        user_id = self._user_id
        if not user_id:
            logger.debug("mark_all_as_read ignored: no bound user")
            return

        generation = self._generation
        previous_count = self._store.unread_count
        changed = self._store.mark_all_read()
        self._store.reset_unread()
        self._notify()

        marker = self._track("mark_all_read", None, generation)
        try:
            await self.gateway.mark_all_read(user_id)
        except Exception as e:
            logger.error(f"CommandFailure: mark_all_read user={user_id}: {e}")
            if self._should_rollback(generation):
                restored = sum(1 for nid in changed if self._store.mark_unread(nid))
                self._store.increment_unread(previous_count - (len(changed) - restored))
                self._notify()
        finally:
            self._untrack(marker)

    async def delete_notification(self, notification_id: str) -> None:
        """
        Delete one notification.

        The record leaves the local list whatever the backend answers. The
        unread counter is deliberately left alone, even for an unread record;
        the next full load corrects it.
        """
        user_id = self._user_id
        if not user_id:
            logger.debug(f"delete_notification ignored: no bound user (id={notification_id})")
            return

        generation = self._generation
        removed = self._store.remove(notification_id)
        if removed is not None:
            self._notify()

        marker = self._track("delete", notification_id, generation)
        try:
            await self.gateway.delete(notification_id, user_id)
        except Exception as e:
            logger.error(f"CommandFailure: delete id={notification_id}: {e}")
            if (
                removed is not None
                and self._should_rollback(generation)
                and self._store.get(notification_id) is None
            ):
                index, record = removed
                self._store.insert(min(index, len(self._store)), record)
                self._notify()
        finally:
            self._untrack(marker)

    # ============================================================
    # Push events
    # ============================================================

    def on_push_event(self, notification: Notification) -> None:
        """
        Apply a new notification delivered by the live channel.

        Prepended regardless of its timestamp and never de-duplicated; the
        counter grows only for unread records.
        """
        if self._state is ReconcilerState.UNBOUND or notification.user_id != self._user_id:
            logger.debug(
                f"Ignoring push event {notification.id} for user={notification.user_id} "
                f"(bound: {self._user_id})"
            )
            return

        self._store.prepend(notification)
        if not notification.is_read:
            self._store.increment_unread()
        self._notify()

    # ============================================================
    # Internals
    # ============================================================

    async def _open_subscription(
        self,
        user_id: str,
        channel: EventChannel,
        generation: int,
    ) -> None:
        try:
            subscription = await self.gateway.subscribe(user_id, channel.send)
        except Exception as e:
            logger.error(
                f"SubscriptionFailure for user={user_id}: {e}. "
                f"Continuing without live updates"
            )
            return

        if generation != self._generation:
            await subscription.close()
            return
        self._subscription = subscription

    async def _load(self, user_id: str, generation: int) -> bool:
        self._loading = True
        try:
            notifications, unread = await asyncio.gather(
                self.gateway.list_notifications(user_id, limit=self.list_limit),
                self.gateway.count_unread(user_id),
            )
        except Exception as e:
            if generation != self._generation:
                logger.debug(f"Discarding stale load failure for user={user_id}: {e}")
                return False
            logger.error(f"LoadFailure for user={user_id}: {e}")
            self._loading = False
            self._notify()
            return False

        if generation != self._generation:
            logger.debug(f"Discarding stale load result for user={user_id}")
            return False

        # The count query is authoritative; the list may be truncated
        self._store.replace(notifications, unread)
        self._loading = False
        self._notify()
        return True

    async def _consume(self, channel: EventChannel, generation: int, overlap: int) -> None:
        async for notification in channel:
            if generation != self._generation:
                return
            if overlap > 0:
                overlap -= 1
                if self._store.get(notification.id) is not None:
                    logger.debug(f"Skipping push event {notification.id} already in initial load")
                    continue
            self.on_push_event(notification)

    def _should_rollback(self, generation: int) -> bool:
        if generation != self._generation:
            logger.debug("Ignoring late command failure from a previous binding")
            return False
        return self.rollback_on_failure

    def _track(self, kind: str, notification_id: Optional[str], generation: int) -> int:
        marker = next(self._markers)
        self._pending[marker] = PendingCommand(kind, notification_id, generation)
        return marker

    def _untrack(self, marker: int) -> None:
        self._pending.pop(marker, None)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Snapshot listener failed: {e}")
