"""
Promotion — move every ready payload from the holding sorted set onto the
destination queue, oldest execution time first.

Two paths:

  atomic    One server-side script: range read, append, range delete.
            Nobody can observe the payloads removed but not yet enqueued,
            or enqueued but not yet removed.

  fallback  The same three steps as separate commands, for servers that
            cannot run scripts (or when forced by options). Not atomic as
            a whole: two promoters running concurrently can both read the
            same payloads before either deletes them, and both will append
            them. A payload scheduled into the promoted range between the
            read and the delete is removed without being enqueued. Both are
            accepted limitations of this path.
"""
from __future__ import annotations

import structlog

from database.store_base import BackingStore
from models.schemas import PromotionPath

logger = structlog.get_logger()

PUSH_BATCH = 1000


class PromotionEngine:
    """Runs promotions for one (holding set, destination queue) pair."""

    def __init__(self, store: BackingStore, source: str, destination: str, atomic: bool):
        self.store = store
        self.source = source
        self.destination = destination
        self.path = PromotionPath.ATOMIC if atomic else PromotionPath.FALLBACK

    async def run(self, max_score: int) -> int:
        """Promote everything scored ≤ max_score; returns how many moved."""
        if self.path is PromotionPath.ATOMIC:
            count = await self.store.promote_atomic(self.source, self.destination, max_score)
        else:
            count = await self._run_fallback(max_score)

        if count:
            logger.info("payloads_promoted",
                        source=self.source,
                        destination=self.destination,
                        path=self.path.value,
                        count=count,
                        max_score=max_score)
        return count

    async def _run_fallback(self, max_score: int) -> int:
        ready = await self.store.zrangebyscore(self.source, "-inf", max_score)
        if not ready:
            return 0

        for i in range(0, len(ready), PUSH_BATCH):
            await self.store.rpush(self.destination, *ready[i:i + PUSH_BATCH])
        await self.store.zremrangebyscore(self.source, "-inf", max_score)
        return len(ready)
