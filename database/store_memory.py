"""
InMemoryBackingStore — Dict-backed store for development and testing.

Features:
  - Zero dependencies (no Redis)
  - Same semantics as the Redis adapter for every scheduler primitive
  - Handles from duplicate() share the data, like two connections to one server
  - promote_atomic() never awaits mid-mutation, so it is indivisible on the loop
  - All data lost on process restart

Best for: local development, unit tests, quick prototyping.
"""
from __future__ import annotations

import asyncio
import math
from collections import defaultdict, deque
from typing import Optional

import structlog

from database.store_base import BackingStore, Score
from job_queue.capabilities import Version
from job_queue.errors import BackingStoreUnavailable

logger = structlog.get_logger()

DEFAULT_VERSION: Version = (7, 2, 0)


def _bound(value: Score) -> float:
    if isinstance(value, str):
        lowered = value.lower()
        if lowered in ("-inf", "+inf", "inf"):
            return -math.inf if lowered == "-inf" else math.inf
        return float(value)
    return float(value)


class InMemoryState:
    """The data every handle on one in-memory 'server' sees."""

    def __init__(self):
        self.sorted_sets: dict[str, dict[str, float]] = defaultdict(dict)    # key → member → score
        self.lists: dict[str, deque[str]] = defaultdict(deque)
        self.changed = asyncio.Condition()

    def ranked(self, key: str, min_score: Score, max_score: Score) -> list[str]:
        lo, hi = _bound(min_score), _bound(max_score)
        members = self.sorted_sets.get(key, {})
        hits = [(score, member) for member, score in members.items() if lo <= score <= hi]
        hits.sort()
        return [member for _, member in hits]

    def remove_range(self, key: str, min_score: Score, max_score: Score) -> int:
        doomed = self.ranked(key, min_score, max_score)
        members = self.sorted_sets.get(key, {})
        for member in doomed:
            del members[member]
        return len(doomed)

    async def notify(self):
        async with self.changed:
            self.changed.notify_all()


class InMemoryBackingStore(BackingStore):
    """
    Single-process stand-in for the Redis adapter.

    `version` is what server_version() reports; pass None to model a server
    without scripting support.
    """

    name = "memory"

    def __init__(self, state: InMemoryState = None, version: Optional[Version] = DEFAULT_VERSION):
        self._state = state or InMemoryState()
        self._version = version
        self._closed = False
        logger.debug("inmemory_backing_store_initialized")

    @property
    def state(self) -> InMemoryState:
        return self._state

    def _check_open(self, operation: str):
        if self._closed:
            raise BackingStoreUnavailable("connection closed", operation=operation)

    # ── Lifecycle ─────────────────────────────────────────

    async def connect(self) -> None:
        self._closed = False

    async def close(self) -> None:
        self._closed = True

    def duplicate(self) -> InMemoryBackingStore:
        return InMemoryBackingStore(state=self._state, version=self._version)

    # ── Ordered collection ────────────────────────────────

    async def zadd(self, key: str, score: int, member: str) -> int:
        self._check_open("zadd")
        members = self._state.sorted_sets[key]
        added = 0 if member in members else 1
        members[member] = float(score)
        return added

    async def zrangebyscore(self, key: str, min_score: Score, max_score: Score) -> list[str]:
        self._check_open("zrangebyscore")
        return self._state.ranked(key, min_score, max_score)

    async def zremrangebyscore(self, key: str, min_score: Score, max_score: Score) -> int:
        self._check_open("zremrangebyscore")
        return self._state.remove_range(key, min_score, max_score)

    async def zcard(self, key: str) -> int:
        self._check_open("zcard")
        return len(self._state.sorted_sets.get(key, {}))

    async def zrange_withscores(self, key: str) -> list[tuple[str, float]]:
        self._check_open("zrange")
        members = self._state.sorted_sets.get(key, {})
        return sorted(members.items(), key=lambda item: (item[1], item[0]))

    # ── Queue ─────────────────────────────────────────────

    async def rpush(self, key: str, *members: str) -> int:
        self._check_open("rpush")
        queue = self._state.lists[key]
        queue.extend(members)
        length = len(queue)
        await self._state.notify()
        return length

    async def lrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        self._check_open("lrange")
        items = list(self._state.lists.get(key, ()))
        end = None if stop == -1 else stop + 1
        return items[start:end]

    async def blpop(self, key: str, timeout: float = 0) -> Optional[tuple[str, str]]:
        self._check_open("blpop")
        state = self._state
        async with state.changed:
            try:
                await asyncio.wait_for(
                    state.changed.wait_for(lambda: bool(state.lists.get(key))),
                    timeout=timeout or None,
                )
            except asyncio.TimeoutError:
                return None
            return key, state.lists[key].popleft()

    # ── Optional capabilities ─────────────────────────────

    async def server_version(self) -> Optional[Version]:
        self._check_open("server_version")
        return self._version

    async def promote_atomic(self, source: str, destination: str, max_score: int) -> int:
        self._check_open("promote_atomic")
        if self._version is None:
            return await super().promote_atomic(source, destination, max_score)
        state = self._state
        ready = state.ranked(source, "-inf", max_score)
        if not ready:
            return 0
        state.lists[destination].extend(ready)
        state.remove_range(source, "-inf", max_score)
        await state.notify()
        return len(ready)
