"""
Rate Limiter

Fixed-window request counters per hashed client identifier, backed by a
durable CounterStore and fronted by a short-lived in-process cache.

Algorithm for check(identifier, bucket_type):

1. Hash the identifier into a bucket-namespaced key.
2. Cache hit (entry not past its cache TTL):
   a. Window over: reset the entry to count=1 starting now and persist the
      reset in the background. Allowed.
   b. count >= max_requests: denied, nothing changes.
   c. Otherwise increment the entry and persist the increment in the
      background. Allowed.
3. Cache miss: read the durable counter.
   - Missing: create it at count=1.
   - Window over: reset it (awaited, there is no cache to lean on).
   - count >= max_requests: denied, nothing changes.
   - Otherwise atomically increment it.
   The resulting counter is cached.
4. Any durable-store error fails open: the request is allowed and the error
   is logged.

The cache may drift from the durable count when several processes serve the
same identifier; it only spares this process redundant round trips.
"""

import asyncio
import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from transfer_intake.core.background import BackgroundTaskRunner
from transfer_intake.modules.rate_limits.cache import CacheEntry, RateLimitCache
from transfer_intake.modules.rate_limits.store import CounterRecord, CounterStore

logger = logging.getLogger(__name__)

BUCKET_IP = "ip"
BUCKET_EMAIL = "email"


def hash_identifier(identifier: str, bucket_type: str, secret: str) -> str:
    """
    Salted one-way hash of a client identifier.

    The bucket type is part of the hashed material, so the same raw string
    yields unrelated keys in the "ip" and "email" buckets.

    Args:
        identifier: Raw identifier (IP address, email, or "unknown")
        bucket_type: Namespace such as "ip" or "email"
        secret: Static process-wide salt

    Returns:
        Hex-encoded SHA-256 digest (64 characters)
    """
    return hashlib.sha256(f"{bucket_type}:{identifier}:{secret}".encode()).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a rate-limit check."""

    allowed: bool
    remaining: int
    reset_at: datetime


class RateLimiter:
    """Hybrid cache + durable-store fixed-window rate limiter."""

    def __init__(
        self,
        store: CounterStore,
        cache: RateLimitCache,
        runner: BackgroundTaskRunner,
        *,
        window: timedelta,
        max_requests: int,
        secret: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._cache = cache
        self._runner = runner
        self._window = window
        self._max_requests = max_requests
        self._secret = secret
        self._clock = clock

    @property
    def cache(self) -> RateLimitCache:
        return self._cache

    @property
    def store(self) -> CounterStore:
        return self._store

    @property
    def window(self) -> timedelta:
        return self._window

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def key_for(self, identifier: str, bucket_type: str) -> str:
        return hash_identifier(identifier, bucket_type, self._secret)

    async def check(self, identifier: str, bucket_type: str = BUCKET_IP) -> RateLimitResult:
        """
        Count one request for identifier and decide whether it may proceed.

        Args:
            identifier: Raw client identifier, already normalized by the caller
            bucket_type: Counting scope ("ip" or "email")

        Returns:
            RateLimitResult with allowed flag, remaining quota and reset time
        """
        key = self.key_for(identifier, bucket_type)
        now = self._clock()

        entry = self._cache.get(key, now)
        if entry is not None:
            return self._check_cached(key, entry, now)

        try:
            return await self._check_store(key, now)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Rate limit store unavailable for {bucket_type} bucket, failing open: {e}")
            return RateLimitResult(
                allowed=True,
                remaining=self._max_requests,
                reset_at=now + self._window,
            )

    def _check_cached(self, key: str, entry: CacheEntry, now: datetime) -> RateLimitResult:
        # No awaits in here: the read-modify-write of the entry is atomic
        # with respect to other requests on this event loop.
        if now - entry.window_start >= self._window:
            entry.count = 1
            entry.window_start = now
            self._cache.touch(entry, now)
            self._runner.submit(
                self._store.reset(key, now),
                description="rate limit window reset write-through",
            )
            return RateLimitResult(
                allowed=True,
                remaining=self._max_requests - 1,
                reset_at=now + self._window,
            )

        reset_at = entry.window_start + self._window

        if entry.count >= self._max_requests:
            return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at)

        entry.count += 1
        self._runner.submit(
            self._store.increment(key, now),
            description="rate limit increment write-through",
        )
        return RateLimitResult(
            allowed=True,
            remaining=self._max_requests - entry.count,
            reset_at=reset_at,
        )

    async def _check_store(self, key: str, now: datetime) -> RateLimitResult:
        record = await self._store.get(key)

        if record is None:
            record = await self._store.create(key, now)
        elif now - record.window_start >= self._window:
            record = await self._store.reset(key, now)
        elif record.count >= self._max_requests:
            self._remember(key, record, now)
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_at=record.window_start + self._window,
            )
        else:
            record = await self._store.increment(key, now)

        self._remember(key, record, now)

        # Another process may have pushed the counter past the ceiling
        # between our read and our increment.
        allowed = record.count <= self._max_requests
        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, self._max_requests - record.count),
            reset_at=record.window_start + self._window,
        )

    def _remember(self, key: str, record: CounterRecord, now: datetime) -> None:
        self._cache.put(key, record.count, record.window_start, now)

    def sweep_cache(self) -> int:
        """Drop expired cache entries. Returns how many were removed."""
        return self._cache.sweep(self._clock())

    async def purge_stale_counters(self) -> int:
        """
        Delete durable counters whose window ended at least one window ago.

        Stale counters are harmless (the next observation resets them), this
        only keeps the table from growing without bound.
        """
        cutoff = self._clock() - 2 * self._window
        return await self._store.purge_expired(cutoff)

    def close(self) -> None:
        """Release the in-process cache."""
        self._cache.clear()
