"""
Auto-check — background task that periodically runs a promotion.

Errors from a tick go to the error sink given at construction (or to the log
when there is none) and never stop the loop. stop() is synchronous and
idempotent: once it returns no new tick begins, while a tick already running
is left to finish (await join() to wait for it).
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger()

ErrorSink = Callable[[BaseException], Any]


class AutoChecker:
    """
    Usage:
        checker = AutoChecker(scheduler_check, interval_ms=5000, on_error=report)
        checker.start()       # returns immediately, runs as a task
        checker.stop()        # no further ticks
        await checker.join()  # wait for an in-flight tick
    """

    def __init__(
        self,
        check: Callable[[], Awaitable[Any]],
        interval_ms: int,
        on_error: Optional[ErrorSink] = None,
    ):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self._check = check
        self.interval_ms = interval_ms
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None     # set = stop requested for the current run
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def stopped(self) -> bool:
        return self._wake is None or self._wake.is_set()

    def start(self) -> asyncio.Task:
        """Start ticking; a no-op returning the current task if already running."""
        if self.running and not self.stopped:
            return self._task
        self._wake = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run(self._wake))
        return self._task

    def stop(self) -> None:
        if self.stopped:
            return
        self._wake.set()
        logger.info("auto_check_stop_requested", ticks=self.ticks)

    async def join(self) -> None:
        if self._task is not None:
            await self._task

    async def _run(self, wake: asyncio.Event):
        interval = self.interval_ms / 1000
        logger.info("auto_check_started", interval_ms=self.interval_ms)
        while not wake.is_set():
            try:
                await asyncio.wait_for(wake.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
            if wake.is_set():
                break

            self.ticks += 1
            try:
                await self._check()
            except Exception as e:
                self._report(e)
        logger.info("auto_check_stopped", ticks=self.ticks)

    def _report(self, error: Exception):
        if self._on_error is None:
            logger.error("auto_check_failed", error=str(error), error_type=type(error).__name__)
            return
        try:
            self._on_error(error)
        except Exception as e:
            logger.error("auto_check_error_sink_failed", error=str(e), original_error=str(error))
