"""
Redis Connection Module

Shared connection pool for the ``redis`` push broker. Every instance that
holds a session for a user listens on ``notifications:{user_id}``, so a
notification created on one instance reaches all of them.
"""

import logging
from typing import Optional

from redis.asyncio import Redis, ConnectionPool

from legalpro_notifications.core.config import settings

logger = logging.getLogger(__name__)

# Created on first use, closed on shutdown
_pool: Optional[ConnectionPool] = None


def get_redis_pool() -> ConnectionPool:
    global _pool
    if _pool is None:
        # Raw bytes: the broker decodes JSON payloads itself
        _pool = ConnectionPool.from_url(settings.REDIS_URL, max_connections=10)
        logger.info(f"Redis pool ready: {settings.REDIS_URL}")
    return _pool


async def get_redis() -> Redis:
    """Client on the shared pool; cheap to create per caller."""
    return Redis(connection_pool=get_redis_pool())


async def close_redis_pool() -> None:
    global _pool
    if _pool is None:
        return
    await _pool.disconnect()
    _pool = None
    logger.info("Redis pool closed")


# ============================================================
# Health Check
# ============================================================

async def check_redis_connection() -> bool:
    """True if Redis answers PING."""
    try:
        client = await get_redis()
        return bool(await client.ping())
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
