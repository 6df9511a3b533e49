"""
Rate Limit Counter Stores

Durable backends for fixed-window counters. Two implementations share the
CounterStore protocol and are chosen with RATE_LIMIT_BACKEND:

- DatabaseCounterStore: PostgreSQL table `rate_limits` (default)
- RedisCounterStore: one Redis hash per key, expiring with the window

Both provide an atomic increment-and-return so that concurrent requests for
the same identifier from several processes are counted exactly once each.

Every DatabaseCounterStore call opens its own short-lived session. Write-
through calls run as detached background tasks and must not share the
session of the request that triggered them.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from redis.asyncio import Redis
from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from transfer_intake.modules.rate_limits.models import RateLimit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterRecord:
    """Snapshot of a durable counter."""

    count: int
    window_start: datetime


class CounterStore(Protocol):
    """Durable fixed-window counter storage."""

    async def get(self, key: str) -> CounterRecord | None:
        """Return the counter for key, or None if it has never been seen."""
        ...

    async def create(self, key: str, now: datetime) -> CounterRecord:
        """Create the counter at count=1, or increment it if another process won the race."""
        ...

    async def reset(self, key: str, now: datetime) -> CounterRecord:
        """Start a new window: count=1, window_start=now (creates the counter if missing)."""
        ...

    async def increment(self, key: str, now: datetime) -> CounterRecord:
        """Atomically add one and return the resulting counter."""
        ...

    async def purge_expired(self, before: datetime) -> int:
        """Delete counters whose window started before the given time."""
        ...


# ============================================
# PostgreSQL
# ============================================


class DatabaseCounterStore:
    """Counters stored in the `rate_limits` table."""

    def __init__(self, session_factory: Callable[[], AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, key: str) -> CounterRecord | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RateLimit.count, RateLimit.window_start).where(RateLimit.key == key)
            )
            row = result.one_or_none()

        if row is None:
            return None
        return CounterRecord(count=row.count, window_start=row.window_start)

    async def create(self, key: str, now: datetime) -> CounterRecord:
        stmt = pg_insert(RateLimit).values(key=key, count=1, window_start=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RateLimit.key],
            set_={"count": RateLimit.count + 1, "updated_at": func.now()},
        ).returning(RateLimit.count, RateLimit.window_start)

        return await self._execute_returning(stmt)

    async def reset(self, key: str, now: datetime) -> CounterRecord:
        stmt = pg_insert(RateLimit).values(key=key, count=1, window_start=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RateLimit.key],
            set_={
                "count": 1,
                "window_start": stmt.excluded.window_start,
                "updated_at": func.now(),
            },
        ).returning(RateLimit.count, RateLimit.window_start)

        return await self._execute_returning(stmt)

    async def increment(self, key: str, now: datetime) -> CounterRecord:
        stmt = (
            update(RateLimit)
            .where(RateLimit.key == key)
            .values(count=RateLimit.count + 1)
            .returning(RateLimit.count, RateLimit.window_start)
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.one_or_none()
            await session.commit()

        if row is None:
            # Purged between read and write; start it again
            logger.debug("Counter vanished before increment, recreating")
            return await self.create(key, now)

        return CounterRecord(count=row.count, window_start=row.window_start)

    async def purge_expired(self, before: datetime) -> int:
        async with self._session_factory() as session:
            result = await session.execute(delete(RateLimit).where(RateLimit.window_start < before))
            await session.commit()
        return result.rowcount or 0

    async def _execute_returning(self, stmt) -> CounterRecord:
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            row = result.one()
            await session.commit()
        return CounterRecord(count=row.count, window_start=row.window_start)


# ============================================
# Redis
# ============================================


def _to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def _from_ms(value: str | bytes | int) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=UTC)


class RedisCounterStore:
    """
    Counters stored as Redis hashes: {count, window_start (epoch ms)}.

    Keys expire together with their window, so stale counters clean
    themselves up and purge_expired() has nothing to do.
    """

    KEY_PREFIX = "rate_limit:"

    def __init__(self, client: Redis, window: timedelta) -> None:
        self._client = client
        self._window_ms = int(window.total_seconds() * 1000)

    def _name(self, key: str) -> str:
        return f"{self.KEY_PREFIX}{key}"

    async def get(self, key: str) -> CounterRecord | None:
        data = await self._client.hgetall(self._name(key))
        if not data:
            return None

        count = data.get("count", data.get(b"count"))
        window_start = data.get("window_start", data.get(b"window_start"))
        if count is None or window_start is None:
            return None

        return CounterRecord(count=int(count), window_start=_from_ms(window_start))

    async def create(self, key: str, now: datetime) -> CounterRecord:
        name = self._name(key)

        pipe = self._client.pipeline(transaction=True)
        pipe.hsetnx(name, "window_start", _to_ms(now))
        pipe.hincrby(name, "count", 1)
        pipe.hget(name, "window_start")
        pipe.pexpire(name, self._window_ms)
        _, count, window_start, _ = await pipe.execute()

        return CounterRecord(count=int(count), window_start=_from_ms(window_start))

    async def reset(self, key: str, now: datetime) -> CounterRecord:
        name = self._name(key)

        pipe = self._client.pipeline(transaction=True)
        pipe.hset(name, mapping={"count": 1, "window_start": _to_ms(now)})
        pipe.pexpire(name, self._window_ms)
        await pipe.execute()

        return CounterRecord(count=1, window_start=now)

    async def increment(self, key: str, now: datetime) -> CounterRecord:
        name = self._name(key)

        pipe = self._client.pipeline(transaction=True)
        pipe.hincrby(name, "count", 1)
        pipe.hget(name, "window_start")
        count, window_start = await pipe.execute()

        if window_start is None:
            # Key expired between read and write; HINCRBY left a bare counter
            return await self.reset(key, now)

        return CounterRecord(count=int(count), window_start=_from_ms(window_start))

    async def purge_expired(self, before: datetime) -> int:
        return 0
