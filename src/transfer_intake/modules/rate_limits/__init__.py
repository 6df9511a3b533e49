"""Hybrid cache + durable-store rate limiting."""

from transfer_intake.modules.rate_limits.cache import RateLimitCache
from transfer_intake.modules.rate_limits.limiter import (
    BUCKET_EMAIL,
    BUCKET_IP,
    RateLimiter,
    RateLimitResult,
    hash_identifier,
)
from transfer_intake.modules.rate_limits.store import (
    CounterRecord,
    CounterStore,
    DatabaseCounterStore,
    RedisCounterStore,
)

__all__ = [
    "BUCKET_EMAIL",
    "BUCKET_IP",
    "CounterRecord",
    "CounterStore",
    "DatabaseCounterStore",
    "RateLimitCache",
    "RateLimitResult",
    "RateLimiter",
    "RedisCounterStore",
    "hash_identifier",
]
