"""
Session Binding

Explicit identity context for a reconciler. The auth layer reports the
current user (or None on logout) and the binding turns each transition
into a reconciler bind/unbind. Nothing here is global, so several
simulated sessions can live side by side.
"""

import logging
from typing import Optional

from legalpro_notifications.services.reconciler import NotificationReconciler

logger = logging.getLogger(__name__)


class SessionBinding:
    """Tracks the authenticated user and re-scopes its reconciler."""

    def __init__(self, reconciler: NotificationReconciler):
        self.reconciler = reconciler
        self._user_id: Optional[str] = None

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    async def set_user(self, user_id: Optional[str]) -> None:
        """
        Observe an identity transition.

        Same user again: nothing happens. New user: the reconciler is
        re-bound. No user: the reconciler is torn down.
        """
        user_id = user_id or None
        if user_id == self._user_id:
            return

        previous, self._user_id = self._user_id, user_id
        logger.info(f"Session identity changed: {previous} -> {user_id}")

        if user_id is None:
            await self.reconciler.unbind()
        else:
            await self.reconciler.bind(user_id)

    async def login(self, user_id: str) -> None:
        await self.set_user(user_id)

    async def logout(self) -> None:
        await self.set_user(None)

    async def close(self) -> None:
        """Tear down for good (the UI surface was unmounted)."""
        self._user_id = None
        await self.reconciler.teardown()
