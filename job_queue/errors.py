"""
Scheduler errors.

Store-level failures surface through the same channel as results (the awaited
task or the completion callback). Usage errors are raised synchronously at the
call site, before any store access.
"""
from __future__ import annotations


class SchedulerError(Exception):
    """Base exception for all scheduler operations."""

    def __init__(self, message: str, operation: str = ""):
        self.operation = operation
        super().__init__(message)


class BackingStoreUnavailable(SchedulerError):
    """Connectivity or protocol failure reported by the backing store."""


class UsageError(SchedulerError):
    """The caller violated the scheduler's usage contract."""


class CapabilityUnavailable(SchedulerError):
    """An optional feature was used without the machinery it depends on."""
