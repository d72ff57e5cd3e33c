"""
Session Registry

Holds one SessionBinding (and its reconciler) per authenticated user for
the HTTP surface, so every request and SSE stream of the same user reads
the same reconciled snapshot.

Sessions are released on logout, on shutdown, or by the idle sweeper once
no SSE stream is attached and nothing touched them for ``idle_ttl``
seconds.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from legalpro_notifications.gateways.base import NotificationGateway
from legalpro_notifications.services.reconciler import NotificationReconciler
from legalpro_notifications.services.session_binding import SessionBinding

logger = logging.getLogger(__name__)

ReconcilerFactory = Callable[[], NotificationReconciler]


@dataclass
class SessionEntry:
    """A registered session plus the bookkeeping used to expire it."""
    user_id: str
    binding: SessionBinding
    last_seen: float
    streams: int = 0

    @property
    def reconciler(self) -> NotificationReconciler:
        return self.binding.reconciler


class SessionRegistry:
    """
    Maps user ids to live session bindings.

    Features:
    - Lazy creation: first request for a user binds and loads
    - Per-user lock so concurrent first requests share one binding
    - SSE streams counted per session; a session with a stream is never idle
    - Explicit release on logout, idle release by ``prune_idle``, bulk close
      on shutdown

    Args:
        reconciler_factory: Builds an unbound reconciler for a new session
        idle_ttl: Seconds without requests or streams before a session is
            released (0 disables idle release)
        clock: Monotonic time source
    """

    def __init__(
        self,
        reconciler_factory: ReconcilerFactory,
        idle_ttl: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._factory = reconciler_factory
        self.idle_ttl = idle_ttl
        self._clock = clock
        self._sessions: Dict[str, SessionEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._sessions

    def get(self, user_id: str) -> Optional[SessionEntry]:
        return self._sessions.get(user_id)

    async def get_or_create(self, user_id: str) -> NotificationReconciler:
        """Return the user's reconciler, binding a new session if needed."""
        entry = self._sessions.get(user_id)
        if entry is None:
            lock = self._locks.setdefault(user_id, asyncio.Lock())
            async with lock:
                entry = self._sessions.get(user_id)
                if entry is None:
                    binding = SessionBinding(self._factory())
                    await binding.login(user_id)
                    entry = SessionEntry(user_id, binding, last_seen=self._clock())
                    self._sessions[user_id] = entry
                    logger.info(f"Session opened for user={user_id} (active sessions: {len(self._sessions)})")

        entry.last_seen = self._clock()
        return entry.reconciler

    # ============================================================
    # Streams
    # ============================================================

    def attach(self, user_id: str) -> Optional[SessionEntry]:
        """
        Register an SSE stream on the user's open session.

        Returns:
            The session entry to hand back to ``detach``, or None if the
            session was already released
        """
        entry = self._sessions.get(user_id)
        if entry is None:
            return None
        entry.streams += 1
        entry.last_seen = self._clock()
        return entry

    def detach(self, entry: Optional[SessionEntry]) -> None:
        if entry is None:
            return
        entry.streams = max(0, entry.streams - 1)
        entry.last_seen = self._clock()

    # ============================================================
    # Release
    # ============================================================

    async def release(self, user_id: str) -> bool:
        """Log a user out; returns False if no session was open."""
        entry = self._sessions.pop(user_id, None)
        self._locks.pop(user_id, None)
        if entry is None:
            return False
        await entry.binding.logout()
        logger.info(f"Session released for user={user_id}")
        return True

    async def prune_idle(self) -> List[str]:
        """
        Release every session with no attached stream that has been idle
        for at least ``idle_ttl`` seconds.

        Returns:
            The user ids that were released
        """
        if self.idle_ttl <= 0:
            return []

        now = self._clock()
        expired = [
            entry.user_id
            for entry in self._sessions.values()
            if entry.streams == 0 and now - entry.last_seen >= self.idle_ttl
        ]

        released = []
        for user_id in expired:
            if await self.release(user_id):
                released.append(user_id)
        if released:
            logger.info(f"Released {len(released)} idle session(s) (active sessions: {len(self._sessions)})")
        return released

    def start_sweeper(self, interval: float) -> None:
        """Run ``prune_idle`` every ``interval`` seconds until ``close``."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(interval))
            logger.info(f"Started idle session sweeper (ttl={self.idle_ttl}s, every {interval}s)")

    async def _sweep_loop(self, interval: float) -> None:
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    await self.prune_idle()
                except Exception as e:
                    logger.error(f"Idle session sweep failed: {e}")
        except asyncio.CancelledError:
            logger.info("Idle session sweeper cancelled")
            raise

    async def close(self) -> None:
        sweeper, self._sweeper = self._sweeper, None
        if sweeper is not None:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass

        entries = list(self._sessions.values())
        self._sessions.clear()
        self._locks.clear()
        for entry in entries:
            try:
                await entry.binding.close()
            except Exception as e:
                logger.warning(f"Failed to close session for user={entry.user_id}: {e}")
        logger.info("Session registry shutdown complete")


# ============================================================
# Singleton Instance
# ============================================================

_registry: Optional[SessionRegistry] = None


def build_reconciler_factory(gateway: NotificationGateway) -> ReconcilerFactory:
    """Reconciler factory wired to the configured limits and policies."""
    from legalpro_notifications.core.config import settings

    def _factory() -> NotificationReconciler:
        return NotificationReconciler(
            gateway,
            list_limit=settings.NOTIFICATION_LIST_LIMIT,
            rollback_on_failure=settings.NOTIFICATION_ROLLBACK_ON_FAILURE,
            queue_size=settings.NOTIFICATION_EVENT_QUEUE_SIZE,
        )

    return _factory


async def get_session_registry() -> SessionRegistry:
    """Get the singleton SessionRegistry instance."""
    global _registry
    if _registry is None:
        from legalpro_notifications.core.config import settings
        from legalpro_notifications.gateways import get_gateway

        gateway = await get_gateway()
        _registry = SessionRegistry(
            build_reconciler_factory(gateway),
            idle_ttl=settings.SESSION_IDLE_TTL_SECONDS,
        )
        if settings.SESSION_IDLE_TTL_SECONDS > 0:
            _registry.start_sweeper(settings.SESSION_SWEEP_INTERVAL_SECONDS)
    return _registry


async def shutdown_session_registry() -> None:
    """Close every open session on app shutdown."""
    global _registry
    if _registry is not None:
        await _registry.close()
        _registry = None
