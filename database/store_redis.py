"""
RedisBackingStore — production adapter over redis.asyncio.

- Holding collection is a Redis Sorted Set (ZADD / ZRANGEBYSCORE / ZREMRANGEBYSCORE)
- Destination queue is a Redis List (RPUSH to append, BLPOP to consume)
- Atomic promotion is a Lua script; Redis runs scripts atomically, so the
  set cannot change between the range read and the range delete
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from redis.exceptions import RedisError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from database.store_base import BackingStore, Score
from job_queue.capabilities import Version, parse_version
from job_queue.errors import BackingStoreUnavailable

logger = structlog.get_logger()


# KEYS[1] = holding sorted set, KEYS[2] = destination list, ARGV[1] = max score.
# RPUSH keeps the ascending order of ZRANGEBYSCORE. Pushing in slices keeps
# unpack() under Lua's stack limit for very large ready sets.
PROMOTE_SCRIPT = """
local ready = redis.call("zrangebyscore", KEYS[1], "-inf", ARGV[1])
if #ready == 0 then return 0 end
for i = 1, #ready, 1000 do
    redis.call("rpush", KEYS[2], unpack(ready, i, math.min(i + 999, #ready)))
end
redis.call("zremrangebyscore", KEYS[1], "-inf", ARGV[1])
return #ready
"""


class RedisBackingStore(BackingStore):
    """
    One handle on a Redis server.

    Pass either a URL or an existing redis.asyncio client. The handle given to
    a ReScheduler must not be shared with anything else while it runs.
    """

    name = "redis"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        client=None,
        decode_responses: bool = True,
        connect_attempts: int = 3,
    ):
        self._redis_url = redis_url
        self._decode_responses = decode_responses
        self._connect_attempts = max(1, connect_attempts)
        self._redis = client if client is not None else self._create_client()
        self._promote = self._redis.register_script(PROMOTE_SCRIPT)

    def _create_client(self):
        import redis.asyncio as aioredis
        return aioredis.from_url(
            self._redis_url,
            decode_responses=self._decode_responses,
        )

    @property
    def client(self):
        return self._redis

    @asynccontextmanager
    async def _op(self, operation: str):
        try:
            yield
        except RedisError as e:
            logger.warning("redis_operation_failed", operation=operation, error=str(e))
            raise BackingStoreUnavailable(f"{operation} failed: {e}", operation=operation) from e

    # ── Lifecycle ─────────────────────────────────────────

    async def connect(self) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._connect_attempts),
            wait=wait_exponential(multiplier=0.2, max=5),
            retry=retry_if_exception_type(RedisError),
            reraise=True,
        )
        async with self._op("connect"):
            async for attempt in retrying:
                with attempt:
                    await self._redis.ping()
        logger.info("redis_store_connected", url=self._redis_url)

    async def close(self) -> None:
        async with self._op("close"):
            await self._redis.aclose()

    def duplicate(self) -> RedisBackingStore:
        return RedisBackingStore(
            redis_url=self._redis_url,
            decode_responses=self._decode_responses,
            connect_attempts=self._connect_attempts,
        )

    def shares_connection(self, other: BackingStore) -> bool:
        if other is self:
            return True
        return isinstance(other, RedisBackingStore) and other._redis is self._redis

    # ── Ordered collection ────────────────────────────────

    async def zadd(self, key: str, score: int, member: str) -> int:
        async with self._op("zadd"):
            return await self._redis.zadd(key, {member: score})

    async def zrangebyscore(self, key: str, min_score: Score, max_score: Score) -> list[str]:
        async with self._op("zrangebyscore"):
            return await self._redis.zrangebyscore(key, min_score, max_score)

    async def zremrangebyscore(self, key: str, min_score: Score, max_score: Score) -> int:
        async with self._op("zremrangebyscore"):
            return await self._redis.zremrangebyscore(key, min_score, max_score)

    async def zcard(self, key: str) -> int:
        async with self._op("zcard"):
            return await self._redis.zcard(key)

    async def zrange_withscores(self, key: str) -> list[tuple[str, float]]:
        async with self._op("zrange"):
            return [(m, s) for m, s in await self._redis.zrange(key, 0, -1, withscores=True)]

    # ── Queue ─────────────────────────────────────────────

    async def rpush(self, key: str, *members: str) -> int:
        async with self._op("rpush"):
            return await self._redis.rpush(key, *members)

    async def lrange(self, key: str, start: int = 0, stop: int = -1) -> list[str]:
        async with self._op("lrange"):
            return await self._redis.lrange(key, start, stop)

    async def blpop(self, key: str, timeout: float = 0) -> Optional[tuple[str, str]]:
        async with self._op("blpop"):
            res = await self._redis.blpop([key], timeout=timeout)
        if not res:
            return None
        return res[0], res[1]

    # ── Optional capabilities ─────────────────────────────

    async def server_version(self) -> Optional[Version]:
        async with self._op("info"):
            info = await self._redis.info("server")
        return parse_version(info.get("redis_version", ""))

    async def promote_atomic(self, source: str, destination: str, max_score: int) -> int:
        async with self._op("promote_atomic"):
            return int(await self._promote(keys=[source, destination], args=[max_score]))
