"""
Redis client backing the realtime location feed.

Location change events travel over Redis pub/sub; the same client is
pinged by the health check.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from ridesafe.app.core.config import settings

logger = logging.getLogger("ridesafe.redis")

# Create async Redis client
redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    health_check_interval=30,  # long-lived pub/sub connections
)


async def ping_redis() -> bool:
    """
    Test Redis connection.

    Returns:
        True if the feed backend answered, False otherwise
    """
    try:
        return bool(await redis_client.ping())
    except (RedisError, OSError):
        return False


async def close_redis() -> None:
    """Release pooled connections on shutdown."""
    try:
        await redis_client.aclose()
    except RedisError:
        logger.warning("Redis client did not close cleanly")
