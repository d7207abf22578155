"""Shared async Redis connection.

One client per process, created in the application lifespan and reused by
every request. Holds the principal cache.
"""

import redis.asyncio as aioredis

from secureplace.config import settings
from secureplace.logging_config import get_logger

logger = get_logger(__name__)

_client: aioredis.Redis | None = None


async def init_redis() -> None:
    """Create the Redis client and check connectivity."""
    global _client
    _client = aioredis.from_url(str(settings.redis_url), decode_responses=True)
    await _client.ping()
    logger.info("Redis connection established")


async def close_redis() -> None:
    """Close the Redis client."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        logger.info("Redis connection closed")


def get_redis_client() -> aioredis.Redis:
    """Return the process-wide Redis client.

    Raises:
        RuntimeError: If init_redis() has not run.
    """
    if _client is None:
        raise RuntimeError("Redis client not initialized")
    return _client


async def get_redis_health() -> bool:
    """Check Redis health for readiness probe."""
    try:
        return bool(await get_redis_client().ping())
    except Exception as e:
        logger.error("Redis health check failed", error=str(e))
        return False
