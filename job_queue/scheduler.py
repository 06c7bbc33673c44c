"""
ReScheduler — defer payloads onto a queue until a chosen time.

Payloads wait in a sorted set named "<queue>-scheduler", scored by the epoch
millisecond at which they become ready. A promotion (check_now, run
periodically by the auto-check loop unless disabled) moves every ready
payload onto the list "<queue>" in ascending score order. Consumers pop that
list; pop() is a thin BLPOP wrapper, and any other client can consume the
list without knowing about this class.

Delivery accuracy is bounded by how often promotion runs. Sub-second
precision is out of scope.

Store discipline:
  The store handle given to the constructor belongs to the scheduler until
  shutdown(). pop() must be given a different handle (store.duplicate()),
  because a blocking pop on the scheduling handle could stall every
  scheduling call and auto-check tick behind it.
"""
from __future__ import annotations

from typing import Optional, Union

import structlog

from database.store_base import BackingStore
from job_queue.auto_check import AutoChecker, ErrorSink
from job_queue.capabilities import Capabilities, negotiate
from job_queue.errors import UsageError
from job_queue.invocation import dual_mode
from job_queue.promotion import PromotionEngine
from models.schemas import ScheduledItem, SchedulerOptions
from utils.timestamps import Timestamp, minutes_from_now, now_ms, to_millis

logger = structlog.get_logger()

SCHEDULER_SUFFIX = "-scheduler"


def scheduler_key_for(queue_name: str) -> str:
    return queue_name + SCHEDULER_SUFFIX


class ReScheduler:
    """
    Usage:
        scheduler = ReScheduler(store, "emails", {"check_interval_ms": 5000})
        await scheduler.start()
        await scheduler.enqueue_in(15, "payload")
        payload = await scheduler.pop(store.duplicate(), timeout=30)
        await scheduler.shutdown()

    Every public operation also accepts callback=fn, called as fn(error, result).
    """

    def __init__(
        self,
        store: BackingStore,
        queue_name: str,
        options: Union[SchedulerOptions, dict, None] = None,
        on_error: Optional[ErrorSink] = None,
    ):
        if not queue_name:
            raise ValueError("queue_name is required")
        if isinstance(options, dict):
            options = SchedulerOptions(**options)

        self.store = store
        self.queue_name = queue_name
        self.scheduler_key = scheduler_key_for(queue_name)
        self.options = options or SchedulerOptions()
        self.capabilities: Optional[Capabilities] = None
        self._engine: Optional[PromotionEngine] = None
        self._checker: Optional[AutoChecker] = None
        self._checking_cancelled = False
        if self.options.auto_check_enabled:
            self._checker = AutoChecker(self._check_now, self.options.check_interval_ms, on_error)

        logger.info("rescheduler_created",
                    queue=queue_name,
                    scheduler_key=self.scheduler_key,
                    check_interval_ms=self.options.check_interval_ms,
                    force_fallback=self.options.force_fallback)

    # ── Lifecycle ─────────────────────────────────────────

    @property
    def ready(self) -> bool:
        return self.capabilities is not None

    @property
    def checking(self) -> bool:
        return self._checker is not None and self._checker.running and not self._checker.stopped

    @dual_mode
    def start(self):
        """
        Connect the store, negotiate capabilities and start auto-checking.
        Calling it again (e.g. after a reconnect) negotiates afresh.
        Result is the scheduler itself.
        """
        return self._start()

    async def _start(self) -> ReScheduler:
        await self.store.connect()
        version = await self.store.server_version()
        self.capabilities = negotiate(version, force_fallback=self.options.force_fallback)
        self._engine = PromotionEngine(
            self.store,
            self.scheduler_key,
            self.queue_name,
            atomic=self.capabilities.atomic_promotion,
        )
        if self._checker is not None and not self._checking_cancelled:
            self._checker.start()
        logger.info("rescheduler_ready", queue=self.queue_name, path=self.capabilities.path.value)
        return self

    async def __aenter__(self) -> ReScheduler:
        return await self._start()

    async def __aexit__(self, exc_type, exc, tb):
        await self._shutdown()

    def stop_checking(self) -> None:
        """
        Cancel auto-checking. Safe to call any number of times, before or
        after start(); a later start() does not re-arm it (see resume_checking).
        """
        self._checking_cancelled = True
        if self._checker is not None:
            self._checker.stop()

    def resume_checking(self) -> bool:
        """
        Re-arm auto-checking after stop_checking(). Ticking resumes now if the
        scheduler is ready, otherwise at the next start(). Returns False when
        auto-checking is disabled by options.
        """
        if self._checker is None:
            return False
        self._checking_cancelled = False
        if self.ready:
            self._checker.start()
        return True

    @dual_mode
    def shutdown(self, leave_store_open: bool = False):
        """
        Stop auto-checking, let an in-flight check finish, then close the
        scheduling store unless leave_store_open is set. Consumer handles
        passed to pop() are never closed here.
        """
        return self._shutdown(leave_store_open)

    async def _shutdown(self, leave_store_open: bool = False):
        self.stop_checking()
        if self._checker is not None:
            await self._checker.join()
        if not leave_store_open:
            await self.store.close()
        logger.info("rescheduler_shutdown", queue=self.queue_name, store_closed=not leave_store_open)

    # ── Scheduling ────────────────────────────────────────

    @dual_mode
    def enqueue_at(self, when: Timestamp, payload: str):
        """
        Schedule payload for `when` (epoch millis or datetime). Result is 1 if
        the payload is new, 0 if it was already waiting and got rescheduled.
        """
        return self.store.zadd(self.scheduler_key, to_millis(when), payload)

    @dual_mode
    def enqueue_in(self, minutes: float, payload: str):
        """Same as enqueue_at, relative to now."""
        return self.store.zadd(self.scheduler_key, minutes_from_now(minutes), payload)

    @dual_mode
    def scheduled_count(self):
        """Number of payloads still waiting for their execution time."""
        return self.store.zcard(self.scheduler_key)

    @dual_mode
    def pending(self):
        """The waiting payloads as ScheduledItems, soonest first."""
        return self._pending()

    async def _pending(self) -> list[ScheduledItem]:
        scored = await self.store.zrange_withscores(self.scheduler_key)
        return [ScheduledItem(payload=member, execution_time=int(score)) for member, score in scored]

    # ── Promotion ─────────────────────────────────────────

    @dual_mode
    def check_now(self, max_timestamp: Optional[Timestamp] = None):
        """
        Move every payload whose time has come onto the queue. Result is the
        number of payloads moved.
        """
        return self._check_now(max_timestamp)

    async def _check_now(self, max_timestamp: Optional[Timestamp] = None) -> int:
        if self._engine is None:
            await self._start()
        max_score = now_ms() if max_timestamp is None else to_millis(max_timestamp)
        return await self._engine.run(max_score)

    # ── Consuming ─────────────────────────────────────────

    @dual_mode
    def pop(self, consumer: BackingStore, timeout: float = 0):
        """
        Pop the next ready payload using `consumer`, a handle other than the
        scheduling one. Waits up to timeout seconds (0 = forever); result is
        the payload, or None on timeout.
        """
        if consumer is None:
            raise UsageError("pop() needs a consumer store handle", operation="pop")
        if consumer.shares_connection(self.store):
            raise UsageError(
                "pop() must not use the scheduler's own store handle; pass store.duplicate()",
                operation="pop",
            )
        if timeout < 0:
            raise UsageError("timeout must be >= 0", operation="pop")
        return self._pop(consumer, timeout)

    async def _pop(self, consumer: BackingStore, timeout: float) -> Optional[str]:
        res = await consumer.blpop(self.queue_name, timeout)
        if res is None:
            return None
        return res[1]
