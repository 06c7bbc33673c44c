"""
Core data models for the delayed-delivery scheduler.
These are the types shared between the scheduler, the stores and the config layer.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ──────────────────────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────────────────────

class PromotionPath(str, Enum):
    ATOMIC = "atomic"          # single server-side script
    FALLBACK = "fallback"      # range query → append → range delete


# ──────────────────────────────────────────────────────────────
#  ScheduledItem — a payload waiting in the holding collection
# ──────────────────────────────────────────────────────────────

class ScheduledItem(BaseModel):
    """A payload and the epoch-millisecond time it becomes ready."""
    model_config = ConfigDict(frozen=True)

    payload: str                              # unique within the holding collection
    execution_time: int                       # ms since epoch, used as the score


# ──────────────────────────────────────────────────────────────
#  SchedulerOptions
# ──────────────────────────────────────────────────────────────

class SchedulerOptions(BaseModel):
    """
    Per-instance scheduler options.

    check_interval_ms: period of the auto-check loop; 0 disables it and leaves
        promotion to explicit check_now() calls.
    force_fallback: never use the atomic server-side script, even when the
        backing store supports it.
    """
    model_config = ConfigDict(frozen=True)

    check_interval_ms: int = Field(default=60 * 1000, ge=0)
    force_fallback: bool = False

    @property
    def auto_check_enabled(self) -> bool:
        return self.check_interval_ms > 0
