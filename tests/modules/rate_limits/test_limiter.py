"""
Unit tests for the hybrid rate limiter.

These tests cover:
- Identifier hashing and bucket isolation
- Fixed-window counting through the cache and the durable store
- Background write-through of cache-hit decisions
- Fail-open behavior when the durable store is unavailable
- Housekeeping (cache sweep, stale counter purge)
"""

import asyncio
from datetime import timedelta

import pytest

from transfer_intake.modules.rate_limits.limiter import (
    BUCKET_EMAIL,
    BUCKET_IP,
    hash_identifier,
)
from transfer_intake.modules.rate_limits.store import CounterRecord


class TestHashIdentifier:
    """Tests for hash_identifier."""

    def test_returns_sha256_hex(self):
        result = hash_identifier("203.0.113.7", BUCKET_IP, "secret")
        assert len(result) == 64
        int(result, 16)

    def test_is_deterministic(self):
        assert hash_identifier("a@b.com", BUCKET_EMAIL, "s") == hash_identifier(
            "a@b.com", BUCKET_EMAIL, "s"
        )

    def test_bucket_type_changes_key(self):
        """The same raw string in two buckets never shares a counter."""
        assert hash_identifier("x", BUCKET_IP, "s") != hash_identifier("x", BUCKET_EMAIL, "s")

    def test_secret_changes_key(self):
        assert hash_identifier("x", BUCKET_IP, "s1") != hash_identifier("x", BUCKET_IP, "s2")

    def test_raw_identifier_not_in_key(self):
        assert "203.0.113.7" not in hash_identifier("203.0.113.7", BUCKET_IP, "s")


class TestFixedWindow:
    """Counting within and across windows."""

    @pytest.mark.asyncio
    async def test_twenty_allowed_then_denied(self, limiter, store, runner, clock):
        """20 requests in a 10 minute window pass, the 21st is denied."""
        start = clock.now
        results = [await limiter.check("203.0.113.7", BUCKET_IP) for _ in range(21)]

        for i, result in enumerate(results[:20]):
            assert result.allowed is True
            assert result.remaining == 19 - i
            assert result.reset_at == start + timedelta(minutes=10)

        assert results[20].allowed is False
        assert results[20].remaining == 0
        assert results[20].reset_at == start + timedelta(minutes=10)

        await runner.drain()
        key = limiter.key_for("203.0.113.7", BUCKET_IP)
        assert store.records[key].count == 20

    @pytest.mark.asyncio
    async def test_first_request_creates_counter(self, limiter, store, clock):
        result = await limiter.check("198.51.100.1")

        assert result.allowed is True
        assert result.remaining == 19
        key = limiter.key_for("198.51.100.1", BUCKET_IP)
        assert store.records[key] == CounterRecord(count=1, window_start=clock.now)
        assert key in limiter.cache

    @pytest.mark.asyncio
    async def test_allowed_count_never_exceeds_max(self, make_limiter, runner, clock):
        """Across many windows no window admits more than max_requests."""
        limiter = make_limiter(window=timedelta(seconds=10), max_requests=3)
        allowed_per_window: dict[int, int] = {}

        for step in range(60):
            result = await limiter.check("client")
            await runner.drain()
            if result.allowed:
                window_index = step // 10
                allowed_per_window[window_index] = allowed_per_window.get(window_index, 0) + 1
            clock.advance(seconds=1)

        assert allowed_per_window
        assert all(count <= 3 for count in allowed_per_window.values())

    @pytest.mark.asyncio
    async def test_buckets_are_independent(self, make_limiter):
        """Exhausting the IP bucket leaves the email bucket untouched."""
        limiter = make_limiter(max_requests=2)
        for _ in range(2):
            await limiter.check("same-value", BUCKET_IP)

        assert (await limiter.check("same-value", BUCKET_IP)).allowed is False
        assert (await limiter.check("same-value", BUCKET_EMAIL)).allowed is True

    @pytest.mark.asyncio
    async def test_identifiers_are_independent(self, make_limiter):
        limiter = make_limiter(max_requests=1)
        assert (await limiter.check("198.51.100.1")).allowed is True
        assert (await limiter.check("198.51.100.1")).allowed is False
        assert (await limiter.check("198.51.100.2")).allowed is True


class TestCacheBehavior:
    """Cache hits, expiry and write-through."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_store_read(self, limiter, store):
        await limiter.check("client")
        reads_before = store.calls.count("get")

        await limiter.check("client")

        assert store.calls.count("get") == reads_before

    @pytest.mark.asyncio
    async def test_cache_hit_increment_written_through(self, limiter, store, runner):
        await limiter.check("client")
        await limiter.check("client")
        await limiter.check("client")
        await runner.drain()

        assert store.calls.count("increment") == 2
        assert store.records[limiter.key_for("client", BUCKET_IP)].count == 3

    @pytest.mark.asyncio
    async def test_window_reset_on_cache_hit_is_persisted(self, make_limiter, store, runner, clock):
        """A window that ends while the entry is cached restarts at count 1."""
        limiter = make_limiter(
            window=timedelta(seconds=2),
            max_requests=2,
            cache_ttl=timedelta(seconds=5),
        )
        await limiter.check("client")
        await limiter.check("client")
        assert (await limiter.check("client")).allowed is False

        clock.advance(seconds=3)
        result = await limiter.check("client")

        assert result.allowed is True
        assert result.remaining == 1
        assert result.reset_at == clock.now + timedelta(seconds=2)

        await runner.drain()
        record = store.records[limiter.key_for("client", BUCKET_IP)]
        assert record == CounterRecord(count=1, window_start=clock.now)

    @pytest.mark.asyncio
    async def test_expired_cache_entry_reads_store(self, limiter, store, runner, clock):
        await limiter.check("client")
        await runner.drain()
        reads_before = store.calls.count("get")

        clock.advance(seconds=6)
        result = await limiter.check("client")

        assert store.calls.count("get") == reads_before + 1
        assert result.remaining == 18

    @pytest.mark.asyncio
    async def test_store_reset_when_window_over_on_cache_miss(self, limiter, store, clock):
        key = limiter.key_for("client", BUCKET_IP)
        store.records[key] = CounterRecord(count=20, window_start=clock.now)

        clock.advance(minutes=11)
        result = await limiter.check("client")

        assert result.allowed is True
        assert store.records[key] == CounterRecord(count=1, window_start=clock.now)

    @pytest.mark.asyncio
    async def test_denied_result_is_cached(self, limiter, store, clock):
        key = limiter.key_for("client", BUCKET_IP)
        store.records[key] = CounterRecord(count=20, window_start=clock.now)

        assert (await limiter.check("client")).allowed is False
        reads_before = store.calls.count("get")

        assert (await limiter.check("client")).allowed is False
        assert store.calls.count("get") == reads_before
        assert store.records[key].count == 20

    @pytest.mark.asyncio
    async def test_concurrent_overshoot_is_denied(self, limiter, store, clock):
        """Another process pushed the counter past max between read and increment."""
        key = limiter.key_for("client", BUCKET_IP)
        store.records[key] = CounterRecord(count=19, window_start=clock.now)
        original_increment = store.increment

        async def racing_increment(k, now):
            store.records[k] = CounterRecord(count=20, window_start=clock.now)
            return await original_increment(k, now)

        store.increment = racing_increment
        result = await limiter.check("client")

        assert result.allowed is False
        assert result.remaining == 0

    @pytest.mark.asyncio
    async def test_concurrent_checks_in_one_process(self, make_limiter, runner):
        """Cached decisions for gathered checks never admit more than max."""
        limiter = make_limiter(max_requests=5)
        await limiter.check("client")

        results = await asyncio.gather(*(limiter.check("client") for _ in range(10)))
        await runner.drain()

        assert sum(1 for r in results if r.allowed) == 4


class TestFailOpen:
    """Durable store errors never block a request."""

    @pytest.mark.asyncio
    async def test_store_error_allows_request(self, limiter, store, clock):
        store.fail = ConnectionError("database unreachable")

        result = await limiter.check("client")

        assert result.allowed is True
        assert result.remaining == 20
        assert result.reset_at == clock.now + timedelta(minutes=10)

    @pytest.mark.asyncio
    async def test_fail_open_does_not_populate_cache(self, limiter, store):
        store.fail = ConnectionError("database unreachable")
        await limiter.check("client")

        assert len(limiter.cache) == 0

    @pytest.mark.asyncio
    async def test_write_through_failure_is_swallowed(self, limiter, store, runner):
        await limiter.check("client")
        store.fail = ConnectionError("database unreachable")

        result = await limiter.check("client")
        await runner.drain()

        assert result.allowed is True
        assert result.remaining == 18


class TestHousekeeping:
    """Cache sweep and durable purge."""

    @pytest.mark.asyncio
    async def test_sweep_cache_removes_expired(self, limiter, clock):
        await limiter.check("a")
        clock.advance(seconds=3)
        await limiter.check("b")
        clock.advance(seconds=3)

        assert limiter.sweep_cache() == 1
        assert len(limiter.cache) == 1

    @pytest.mark.asyncio
    async def test_purge_uses_two_window_cutoff(self, limiter, store, clock):
        old_key = limiter.key_for("old", BUCKET_IP)
        recent_key = limiter.key_for("recent", BUCKET_IP)
        store.records[old_key] = CounterRecord(count=3, window_start=clock.now - timedelta(minutes=21))
        store.records[recent_key] = CounterRecord(
            count=3, window_start=clock.now - timedelta(minutes=15)
        )

        purged = await limiter.purge_stale_counters()

        assert purged == 1
        assert old_key not in store.records
        assert recent_key in store.records

    def test_close_clears_cache(self, limiter, clock):
        limiter.cache.put("k", 1, clock.now, clock.now)
        limiter.close()
        assert len(limiter.cache) == 0
