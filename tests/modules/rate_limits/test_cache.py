"""Unit tests for the in-process rate limit cache."""

from datetime import UTC, datetime, timedelta

from transfer_intake.modules.rate_limits.cache import RateLimitCache

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class TestRateLimitCache:
    """Tests for RateLimitCache."""

    def test_get_missing_returns_none(self):
        cache = RateLimitCache(ttl=timedelta(seconds=5))
        assert cache.get("missing", T0) is None

    def test_put_then_get(self):
        cache = RateLimitCache(ttl=timedelta(seconds=5))
        cache.put("k", 3, T0, T0)

        entry = cache.get("k", T0 + timedelta(seconds=4))

        assert entry is not None
        assert entry.count == 3
        assert entry.window_start == T0
        assert entry.expires_at == T0 + timedelta(seconds=5)

    def test_get_drops_expired_entry(self):
        cache = RateLimitCache(ttl=timedelta(seconds=5))
        cache.put("k", 1, T0, T0)

        assert cache.get("k", T0 + timedelta(seconds=5)) is None
        assert "k" not in cache

    def test_touch_extends_ttl(self):
        cache = RateLimitCache(ttl=timedelta(seconds=5))
        entry = cache.put("k", 1, T0, T0)

        cache.touch(entry, T0 + timedelta(seconds=4))

        assert cache.get("k", T0 + timedelta(seconds=8)) is entry

    def test_sweep_removes_only_expired(self):
        cache = RateLimitCache(ttl=timedelta(seconds=5))
        cache.put("old", 1, T0, T0)
        cache.put("new", 1, T0, T0 + timedelta(seconds=3))

        removed = cache.sweep(T0 + timedelta(seconds=6))

        assert removed == 1
        assert "old" not in cache
        assert "new" in cache

    def test_clear(self):
        cache = RateLimitCache(ttl=timedelta(seconds=5))
        cache.put("a", 1, T0, T0)
        cache.put("b", 1, T0, T0)

        cache.clear()

        assert len(cache) == 0
