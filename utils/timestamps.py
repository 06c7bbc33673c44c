"""Epoch-millisecond helpers shared by the scheduler and the stores."""
from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Union

Timestamp = Union[int, float, datetime]

MS_PER_MINUTE = 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def to_millis(when: Timestamp) -> int:
    """
    Normalize an execution time to integer milliseconds since the epoch.

    Accepts a millisecond timestamp or a datetime. Naive datetimes are
    interpreted as UTC.
    """
    if isinstance(when, datetime):
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        return int(when.timestamp() * 1000)
    if isinstance(when, bool) or not isinstance(when, (int, float)):
        raise TypeError(f"execution time must be a datetime or epoch millis, got {type(when).__name__}")
    return int(when)


def minutes_from_now(minutes: float) -> int:
    return now_ms() + int(minutes * MS_PER_MINUTE)
