"""
Redis Configuration

Async Redis client. Used as the durable rate-limit counter store when
RATE_LIMIT_BACKEND=redis, and reported by the dev-only /debug/redis endpoint.
Readiness only checks the database: the limiter fails open without Redis.
"""

import logging

from redis.asyncio import Redis, from_url

from transfer_intake.core.config import settings

logger = logging.getLogger(__name__)

# Redis client instance
redis_client: Redis | None = None


async def init_redis() -> Redis:
    """
    Initialize Redis connection.

    Call this on application startup.
    """
    global redis_client
    client = from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    # Test connection before publishing the client
    await client.ping()
    redis_client = client
    logger.info("Redis connection established")
    return redis_client


async def get_redis() -> Redis | None:
    """
    Get Redis client instance.

    Returns None if Redis is not available (optional dependency).
    """
    return redis_client


def is_redis_available() -> bool:
    """Check if Redis client is initialized and available."""
    return redis_client is not None


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
