"""
Fixtures for rate limit tests.
"""

from datetime import UTC, datetime, timedelta

import pytest

from transfer_intake.core.background import BackgroundTaskRunner
from transfer_intake.modules.rate_limits.cache import RateLimitCache
from transfer_intake.modules.rate_limits.limiter import RateLimiter
from transfer_intake.modules.rate_limits.store import CounterRecord

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class InMemoryCounterStore:
    """CounterStore backed by a dict, with call tracking and failure injection."""

    def __init__(self) -> None:
        self.records: dict[str, CounterRecord] = {}
        self.calls: list[str] = []
        self.fail: Exception | None = None

    def _track(self, name: str) -> None:
        self.calls.append(name)
        if self.fail is not None:
            raise self.fail

    async def get(self, key):
        self._track("get")
        return self.records.get(key)

    async def create(self, key, now):
        self._track("create")
        existing = self.records.get(key)
        if existing is None:
            record = CounterRecord(count=1, window_start=now)
        else:
            record = CounterRecord(count=existing.count + 1, window_start=existing.window_start)
        self.records[key] = record
        return record

    async def reset(self, key, now):
        self._track("reset")
        record = CounterRecord(count=1, window_start=now)
        self.records[key] = record
        return record

    async def increment(self, key, now):
        self._track("increment")
        existing = self.records.get(key)
        if existing is None:
            return await self.create(key, now)
        record = CounterRecord(count=existing.count + 1, window_start=existing.window_start)
        self.records[key] = record
        return record

    async def purge_expired(self, before):
        self._track("purge_expired")
        expired = [key for key, record in self.records.items() if record.window_start < before]
        for key in expired:
            del self.records[key]
        return len(expired)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryCounterStore()


@pytest.fixture
def runner():
    return BackgroundTaskRunner()


@pytest.fixture
def make_limiter(store, runner, clock):
    """Build a limiter around the shared store, runner and clock."""

    def _make(
        window: timedelta = timedelta(minutes=10),
        max_requests: int = 20,
        cache_ttl: timedelta = timedelta(seconds=5),
    ) -> RateLimiter:
        return RateLimiter(
            store=store,
            cache=RateLimitCache(ttl=cache_ttl),
            runner=runner,
            window=window,
            max_requests=max_requests,
            secret="test-secret",
            clock=clock,
        )

    return _make


@pytest.fixture
def limiter(make_limiter):
    """Limiter with the production defaults: 20 requests per 10 minutes."""
    return make_limiter()
