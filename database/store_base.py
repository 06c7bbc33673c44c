"""
Abstract Backing Store — the ordered-collection and queue primitives the
scheduler orchestrates.

Implementations:
  - RedisBackingStore    (redis.asyncio; sorted sets, lists, Lua scripting)
  - InMemoryBackingStore (dict-based, single-process, no persistence)

A store instance is one handle on one connection. The scheduler needs two:
its own exclusive handle for scheduling and promotion, and a separate one for
blocking pops (see duplicate()).

Every failure talking to the store is raised as BackingStoreUnavailable.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Union

from job_queue.capabilities import Version

Score = Union[int, float, str]      # str for "-inf" / "+inf"


class BackingStore(ABC):
    """Interface that all backing-store adapters must implement."""

    name: str = "abstract"

    # ── Lifecycle ─────────────────────────────────────────────

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection; returns once the store is ready."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    def duplicate(self) -> BackingStore:
        """A new handle, on its own connection, to the same data."""
        ...

    def shares_connection(self, other: BackingStore) -> bool:
        return other is self

    # ── Ordered collection ────────────────────────────────────

    @abstractmethod
    async def zadd(self, key: str, score: int, member: str) -> int:
        """Upsert member with score. 1 if it was added, 0 if rescored."""
        ...

    @abstractmethod
    async def zrangebyscore(self, key: str, min_score: Score, max_score: Score) -> list[str]:
        """Members with min ≤ score ≤ max, ascending by score."""
        ...

    @abstractmethod
    async def zremrangebyscore(self, key: str, min_score: Score, max_score: Score) -> int:
        ...

    @abstractmethod
    async def zcard(self, key: str) -> int:
        ...

    @abstractmethod
    async def zrange_withscores(self, key: str) -> list[tuple[str, float]]:
        """Every (member, score) pair, ascending by score."""
        ...

    # ── Queue ─────────────────────────────────────────────────

    @abstractmethod
    async def rpush(self, key: str, *members: str) -> int:
        """Append members in argument order; returns the new length."""
        ...

    @abstractmethod
    async def lrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        ...

    @abstractmethod
    async def blpop(self, key: str, timeout: float = 0) -> Optional[tuple[str, str]]:
        """Pop the head, waiting up to timeout seconds (0 = forever)."""
        ...

    # ── Optional capabilities ─────────────────────────────────

    async def server_version(self) -> Optional[Version]:
        """(major, minor, patch) of the server, or None if unknown."""
        return None

    async def promote_atomic(self, source: str, destination: str, max_score: int) -> int:
        """
        In one indivisible step: move every member of `source` scored
        ≤ max_score onto the tail of `destination`, ascending by score.
        """
        raise NotImplementedError(f"{self.name} store has no atomic execution")
