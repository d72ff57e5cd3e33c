"""
Notification Service

Producer side: renders LegalPro notification templates, persists the
result through the gateway and lets the gateway announce it on the owner's
live channel. Checkout, course and appointment flows call this; the
reconciler on the receiving end picks the event up.
"""

import logging
from typing import List, Optional

from legalpro_notifications.gateways.base import NotificationGateway
from legalpro_notifications.schemas.notification import Notification, NotificationCreate
from legalpro_notifications.services.catalog import build_notification, resolve_payload

logger = logging.getLogger(__name__)


class NotificationService:
    """Service class for creating notifications."""

    def __init__(self, gateway: NotificationGateway):
        self.gateway = gateway

    # ============================================================
    # Create Notification
    # ============================================================
    async def create_notification(self, payload: NotificationCreate) -> Notification:
        """
        Persist a notification and push it to the owner's sessions.

        Title and message default to the catalog template of
        ``payload.type`` when not given.

        Raises:
            KeyError: If no text was given and the type has no template
            GatewayError: If the backend rejects the insert
        """
        resolved = resolve_payload(payload)
        notification = await self.gateway.create(resolved)
        logger.info(
            f"Notification sent: user={notification.user_id}, type={notification.type}"
        )
        return notification

    async def notify(
        self,
        notification_type: str,
        user_id: str,
        value: Optional[str] = None,
        action_url: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Best-effort shortcut for business flows.

        Failures are logged and swallowed so a failed notification never
        breaks the checkout or booking that triggered it.
        """
        try:
            payload = build_notification(notification_type, user_id, value, action_url)
            return await self.gateway.create(payload)
        except Exception as e:
            logger.warning(f"Failed to send {notification_type} notification to user={user_id}: {e}")
            return None

    # ============================================================
    # Queries
    # ============================================================
    async def get_unread(self, user_id: str) -> List[Notification]:
        return await self.gateway.list_unread(user_id)
