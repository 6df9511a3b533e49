"""
Rate Limit Cache

Process-local, time-bounded mirror of durable rate-limit counters.

The cache only saves durable-store round trips for identifiers seen within
the last few seconds. Entries expire after a short TTL that is unrelated to
the rate-limit window, and losing the cache (restart, sweep, eviction)
never changes which requests are allowed, only how fast the answer comes.

Entries are mutated in place by the limiter. Every read-modify-write on an
entry happens without an intervening await, so no lock is needed.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass
class CacheEntry:
    """Cached view of one counter."""

    count: int
    window_start: datetime
    expires_at: datetime


class RateLimitCache:
    """Dictionary of CacheEntry objects keyed by hashed identifier."""

    def __init__(self, ttl: timedelta) -> None:
        self._ttl = ttl
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str, now: datetime) -> CacheEntry | None:
        """Return the live entry for key, dropping it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, count: int, window_start: datetime, now: datetime) -> CacheEntry:
        """Store (or replace) the entry for key with a fresh TTL."""
        entry = CacheEntry(count=count, window_start=window_start, expires_at=now + self._ttl)
        self._entries[key] = entry
        return entry

    def touch(self, entry: CacheEntry, now: datetime) -> None:
        """Extend an entry's TTL from now."""
        entry.expires_at = now + self._ttl

    def sweep(self, now: datetime) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed
        """
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
