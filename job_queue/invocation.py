"""
Dual-mode invocation.

Every public scheduler operation can be used two ways, chosen explicitly by
the caller:

    count = await scheduler.check_now()                  # deferred value
    scheduler.check_now(callback=lambda err, count: ...) # completion callback

Decorated methods are plain functions returning an awaitable, so argument
validation runs synchronously at the call site in both modes. The awaitable
is then scheduled as a task on the running event loop.

dual_mode is applied at class definition, so both modes are available on
every instance from construction on; there is no per-instance enable step.
"""
from __future__ import annotations

import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional

import structlog

from job_queue.errors import CapabilityUnavailable

logger = structlog.get_logger()

Callback = Callable[[Optional[BaseException], Any], Any]


def _running_loop(operation: str) -> asyncio.AbstractEventLoop:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        raise CapabilityUnavailable(
            f"{operation}() needs a running asyncio event loop",
            operation=operation,
        ) from None


def _deliver(task: asyncio.Task, callback: Callback, operation: str):
    if task.cancelled():
        error, result = asyncio.CancelledError(), None
    elif task.exception() is not None:
        error, result = task.exception(), None
    else:
        error, result = None, task.result()
    try:
        callback(error, result)
    except Exception as e:
        logger.error("callback_failed", operation=operation, error=str(e), exc_info=True)


def invoke(awaitable: Awaitable, callback: Optional[Callback] = None, operation: str = "") -> asyncio.Task:
    """
    Schedule `awaitable` and return its task. With a callback, the outcome is
    also delivered as callback(error, result).
    """
    try:
        loop = _running_loop(operation)
    except CapabilityUnavailable:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise

    task = loop.create_task(awaitable)
    if callback is not None:
        task.add_done_callback(functools.partial(_deliver, callback=callback, operation=operation))
    return task


def dual_mode(method: Callable[..., Awaitable]) -> Callable[..., asyncio.Task]:
    """Give `method` an optional keyword-only `callback` selecting the mode."""

    @functools.wraps(method)
    def wrapper(self, *args, callback: Optional[Callback] = None, **kwargs):
        awaitable = method(self, *args, **kwargs)
        return invoke(awaitable, callback, operation=method.__name__)

    wrapper.dual_mode = True
    return wrapper
