"""
Rate Limiting Module

FastAPI glue for the hybrid rate limiter in modules/rate_limits:
- client IP normalization from proxy headers
- construction of the limiter from settings at startup
- dependency that hands the application's limiter to endpoints

SECURITY: Rate limiting protects the public submission endpoints from
spam and scripted abuse. Counters are keyed by salted hashes, raw IPs
and emails are never stored.
"""

import logging
from datetime import timedelta

from fastapi import Request
from redis.asyncio import Redis

from transfer_intake.core.background import BackgroundTaskRunner
from transfer_intake.core.config import settings
from transfer_intake.core.database import async_session_maker
from transfer_intake.modules.rate_limits.cache import RateLimitCache
from transfer_intake.modules.rate_limits.limiter import RateLimiter
from transfer_intake.modules.rate_limits.store import (
    CounterStore,
    DatabaseCounterStore,
    RedisCounterStore,
)

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_IP = "unknown"


def get_client_ip(request: Request) -> str:
    """
    Best-effort client IP for rate limiting.

    Order: first entry of X-Forwarded-For, X-Real-IP, socket peer.
    Requests with none of these share the "unknown" bucket.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT_IP


def build_rate_limiter(
    runner: BackgroundTaskRunner,
    redis_client: Redis | None = None,
) -> RateLimiter:
    """
    Create the application's rate limiter from settings.

    Args:
        runner: Background runner used for cache write-through
        redis_client: Connected Redis client, required when RATE_LIMIT_BACKEND=redis

    Returns:
        Configured RateLimiter
    """
    window = timedelta(milliseconds=settings.rate_limit_window_ms)

    store: CounterStore
    if settings.rate_limit_backend == "redis":
        if redis_client is None:
            logger.warning("RATE_LIMIT_BACKEND=redis but Redis is unavailable, using database store")
            store = DatabaseCounterStore(async_session_maker)
        else:
            store = RedisCounterStore(redis_client, window)
    else:
        store = DatabaseCounterStore(async_session_maker)

    logger.info(
        f"Rate limiter: {settings.rate_limit_max} requests per "
        f"{settings.rate_limit_window_ms}ms, store={type(store).__name__}"
    )

    return RateLimiter(
        store=store,
        cache=RateLimitCache(ttl=timedelta(milliseconds=settings.rate_limit_cache_ttl_ms)),
        runner=runner,
        window=window,
        max_requests=settings.rate_limit_max,
        secret=settings.ip_hash_secret,
    )


def get_rate_limiter(request: Request) -> RateLimiter:
    """FastAPI dependency returning the limiter created in the lifespan."""
    return request.app.state.rate_limiter


__all__ = [
    "UNKNOWN_CLIENT_IP",
    "build_rate_limiter",
    "get_client_ip",
    "get_rate_limiter",
]
