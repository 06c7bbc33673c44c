"""
Payload Consumer — pops ready payloads and hands them to a handler.

Runs as an async task inside the application process. It owns nothing but
its loop: the consumer store handle is supplied (and closed) by the caller.

Topology:
  ┌──────────────┐ enqueue_at  ┌──────────────────┐
  │  Producers   │────────────▶│ <queue>-scheduler │ (sorted set)
  └──────────────┘             └────────┬─────────┘
                                        │ check_now / auto-check
                                        ▼
                               ┌──────────────────┐ blpop ┌───────────┐
                               │ <queue>           │──────▶│ Consumer  │
                               │ (list)            │       │ (handler) │
                               └──────────────────┘       └───────────┘
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog

from config.settings import SchedulerConfig
from database.store_base import BackingStore
from job_queue.errors import BackingStoreUnavailable
from job_queue.scheduler import ReScheduler

logger = structlog.get_logger()

Handler = Callable[[str], Awaitable[Any]]


class PayloadConsumer:
    """
    Usage:
        consumer = PayloadConsumer(scheduler, store.duplicate(), handle_payload)
        await consumer.start()              # blocks until stop()
        await consumer.start_background()   # returns immediately, runs as task
        await consumer.stop()
    """

    def __init__(
        self,
        scheduler: ReScheduler,
        store: BackingStore,
        handler: Handler,
        timeout_seconds: float = 2,
    ):
        self.scheduler = scheduler
        self.store = store
        self.handler = handler
        self.timeout_seconds = timeout_seconds
        self.processed = 0
        self.failed = 0
        self.error: Optional[BackingStoreUnavailable] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @classmethod
    def from_config(
        cls,
        scheduler: ReScheduler,
        store: BackingStore,
        handler: Handler,
        config: SchedulerConfig,
    ) -> PayloadConsumer:
        return cls(scheduler, store, handler, timeout_seconds=config.pop_timeout_seconds)

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """
        Consume until stop() is called. A store error is logged, kept in
        self.error, and ends the loop.
        """
        self._running = True
        self.error = None
        logger.info("payload_consumer_started", queue=self.scheduler.queue_name)

        while self._running:
            # A bounded wait lets the loop notice stop() between pops.
            try:
                payload = await self.scheduler.pop(self.store, self.timeout_seconds)
            except BackingStoreUnavailable as e:
                self._running = False
                self.error = e
                logger.error("payload_consumer_failed",
                             queue=self.scheduler.queue_name,
                             operation=e.operation,
                             error=str(e))
                return
            if payload is None:
                continue
            await self._handle(payload)

    async def start_background(self) -> asyncio.Task:
        self._task = asyncio.create_task(self.start())
        return self._task

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("payload_consumer_stopped",
                    processed=self.processed,
                    failed=self.failed)

    async def _handle(self, payload: str):
        try:
            await self.handler(payload)
            self.processed += 1
        except Exception as e:
            self.failed += 1
            logger.error("payload_handler_error",
                         queue=self.scheduler.queue_name,
                         payload=payload,
                         error=str(e),
                         exc_info=True)
