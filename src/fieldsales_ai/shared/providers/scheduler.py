"""Cancellable periodic background task.

Wraps the ``create_task`` / ``sleep`` loop used for health checks and daily
maintenance.  The sleep function is injectable so tests can drive logical
time without waiting on the wall clock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class PeriodicTask:
    """Run ``callback`` every ``interval_seconds`` until stopped."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], Awaitable[object]],
        *,
        run_immediately: bool = True,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._name = name
        self._interval = interval_seconds
        self._callback = callback
        self._run_immediately = run_immediately
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._runs = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def runs(self) -> int:
        """Number of completed callback invocations (successful or not)."""
        return self._runs

    def start(self, interval_seconds: float | None = None) -> None:
        """Start the loop, replacing any loop already running."""
        if interval_seconds is not None:
            if interval_seconds <= 0:
                raise ValueError("interval_seconds must be > 0")
            self._interval = interval_seconds
        self.cancel()
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self._name}")
        logger.info("periodic_task_started", task=self._name, interval_s=self._interval)

    def cancel(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel and wait, so no callback fires after this returns."""
        task = self._task
        self._task = None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("periodic_task_stopped", task=self._name, runs=self._runs)

    async def _loop(self) -> None:
        if not self._run_immediately:
            await self._sleep(self._interval)
        while True:
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("periodic_task_failed", task=self._name)
            finally:
                self._runs += 1
            await self._sleep(self._interval)
