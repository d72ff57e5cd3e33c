"""
Gateways Module

Backends the reconciler uses to reach the notification store. The active
backend is chosen by configuration (NOTIFICATION_BACKEND setting):

- "memory": process-local dict (development, tests)
- "sql": async SQLAlchemy over the notifications table
- "rest": Supabase / PostgREST over httpx

Business logic never changes, only configuration.
"""

import logging
from typing import Optional

from legalpro_notifications.gateways.base import (
    EventHandler,
    GatewayError,
    GatewayUnavailableError,
    NotificationGateway,
    Subscription,
    SubscriptionError,
)

logger = logging.getLogger(__name__)

# Module-level gateway instance (singleton)
_gateway_instance: Optional[NotificationGateway] = None


async def get_gateway() -> NotificationGateway:
    """
    Factory function that returns the configured gateway.

    Raises:
        ValueError: If the rest backend is selected without Supabase settings
    """
    global _gateway_instance

    if _gateway_instance is not None:
        return _gateway_instance

    from legalpro_notifications.core.config import settings
    from legalpro_notifications.services.broker import get_broker

    broker = await get_broker()
    backend = settings.NOTIFICATION_BACKEND

    if backend == "sql":
        from legalpro_notifications.db.database import get_session_factory
        from legalpro_notifications.gateways.sql import SqlNotificationGateway

        _gateway_instance = SqlNotificationGateway(get_session_factory(), broker)

    elif backend == "rest":
        from legalpro_notifications.gateways.rest import RestNotificationGateway

        if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY are required for the rest backend")
        _gateway_instance = RestNotificationGateway(
            base_url=settings.SUPABASE_URL,
            api_key=settings.SUPABASE_KEY,
            broker=broker,
            table=settings.NOTIFICATIONS_TABLE,
        )

    else:
        from legalpro_notifications.gateways.memory import InMemoryNotificationGateway

        _gateway_instance = InMemoryNotificationGateway(broker=broker)

    logger.info(f"Notification gateway initialized: {backend}")
    return _gateway_instance


async def close_gateway() -> None:
    global _gateway_instance
    if _gateway_instance is not None:
        await _gateway_instance.close()
        _gateway_instance = None


__all__ = [
    "EventHandler",
    "GatewayError",
    "GatewayUnavailableError",
    "NotificationGateway",
    "Subscription",
    "SubscriptionError",
    "get_gateway",
    "close_gateway",
]
