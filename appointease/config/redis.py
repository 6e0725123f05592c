"""Redis connection for broker health checks"""
import logging
from typing import Optional

import redis.asyncio as redis

from appointease.config.settings import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

_redis_pool: Optional[redis.ConnectionPool] = None


def get_redis_pool() -> redis.ConnectionPool:
    """Shared pool for the Redis instance backing the notification queue"""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=settings.NOTIFICATION_QUEUE_TIMEOUT_SECONDS,
            socket_timeout=settings.NOTIFICATION_QUEUE_TIMEOUT_SECONDS,
            retry_on_timeout=True,
        )
    return _redis_pool


async def get_redis() -> redis.Redis:
    return redis.Redis(connection_pool=get_redis_pool())


async def ping_broker() -> str:
    """'healthy' or the failure reason; used by /health/detailed"""
    try:
        client = await get_redis()
        await client.ping()
        return "healthy"
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Notification broker ping failed: {e}")
        return f"unhealthy: {e}"


async def close_redis_pool() -> None:
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None
