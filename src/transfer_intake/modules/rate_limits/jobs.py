"""
Rate Limit Background Jobs

Scheduled housekeeping for the rate limiter:
1. Sweep expired entries out of the in-process cache
2. Purge durable counters whose window ended long ago

Neither job affects which requests are allowed. The sweep bounds memory use
of the cache and the purge bounds the size of the `rate_limits` table.
"""

import logging
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger

from transfer_intake.core.config import settings
from transfer_intake.core.scheduler import register_job
from transfer_intake.modules.rate_limits.limiter import RateLimiter

logger = logging.getLogger(__name__)

JOB_ID_SWEEP_CACHE = "rate_limits_sweep_cache"
JOB_ID_PURGE_COUNTERS = "rate_limits_purge_stale_counters"


async def sweep_rate_limit_cache(limiter: RateLimiter) -> dict[str, Any]:
    """Remove expired cache entries."""
    removed = limiter.sweep_cache()
    if removed:
        logger.debug(f"Swept {removed} expired rate limit cache entries")
    return {"removed": removed, "remaining": len(limiter.cache)}


async def purge_stale_counters(limiter: RateLimiter) -> dict[str, Any]:
    """Delete stale durable counters."""
    purged = await limiter.purge_stale_counters()
    logger.info(f"Purged {purged} stale rate limit counters")
    return {"purged": purged}


def register_rate_limit_jobs(limiter: RateLimiter) -> None:
    """
    Register rate limit jobs with the scheduler.

    Call this during application startup, before start_scheduler().

    Args:
        limiter: The application's rate limiter instance
    """

    async def _sweep() -> None:
        await sweep_rate_limit_cache(limiter)

    async def _purge() -> None:
        await purge_stale_counters(limiter)

    register_job(
        job_id=JOB_ID_SWEEP_CACHE,
        func=_sweep,
        trigger=IntervalTrigger(seconds=settings.rate_limit_cache_sweep_seconds),
    )
    register_job(
        job_id=JOB_ID_PURGE_COUNTERS,
        func=_purge,
        trigger=IntervalTrigger(minutes=settings.rate_limit_purge_interval_minutes),
    )

    logger.info("Rate limit jobs registered")
