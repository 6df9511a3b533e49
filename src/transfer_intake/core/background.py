"""
Background Task Runner

Fire-and-forget execution of side effects that must never block or fail the
request that triggered them (rate-limit write-through, notification emails).

Contract:
- submit() schedules the coroutine and returns immediately; callers never
  await the result.
- Errors raised by a task are logged, never re-raised.
- The runner keeps a strong reference to every pending task so the event
  loop cannot garbage-collect it mid-flight.
- drain() / shutdown() let the application lifespan (and tests) wait for
  outstanding work.

Usage:
    runner = BackgroundTaskRunner()
    runner.submit(store.increment(key), description="rate limit write-through")
    ...
    await runner.shutdown()
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTaskRunner:
    """Owns detached asyncio tasks for the lifetime of the application."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of tasks that have not finished yet."""
        return len(self._tasks)

    def submit(self, coro: Coroutine[Any, Any, Any], description: str = "background task") -> None:
        """
        Schedule a coroutine without awaiting it.

        Args:
            coro: The coroutine to run
            description: Human-readable label used in log lines
        """
        if self._closed:
            logger.warning(f"Runner closed, dropping {description}")
            coro.close()
            return

        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, description))

    def _on_done(self, task: asyncio.Task, description: str) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning(f"{description} was cancelled")
            return

        exc = task.exception()
        if exc is not None:
            logger.error(f"{description} failed: {exc}", exc_info=exc)

    async def drain(self) -> None:
        """Wait until every submitted task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 5.0) -> None:
        """
        Stop accepting work, wait for pending tasks, cancel stragglers.

        Args:
            timeout: Seconds to wait before cancelling what is left
        """
        self._closed = True

        if not self._tasks:
            return

        logger.info(f"Waiting for {len(self._tasks)} background task(s) to finish...")
        done, pending = await asyncio.wait(list(self._tasks), timeout=timeout)

        for task in pending:
            task.cancel()

        if pending:
            logger.warning(f"Cancelled {len(pending)} background task(s) still running at shutdown")
            await asyncio.gather(*pending, return_exceptions=True)
