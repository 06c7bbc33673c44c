"""
Store Factory — Create the right backing-store adapter from configuration.

Configuration in settings.yaml:
    store:
      # Backing store
      #   "redis"   — Redis server (production)
      #   "memory"  — In-process dicts (development, testing)
      backend: "redis"
      redis_url: "redis://localhost:6379"

      # Readiness pings attempted by connect() before giving up
      connect_attempts: 3

Usage:
    from database.store_factory import create_store, get_store
    store = create_store(config)     # Create a new handle from a config dict
    store = get_store()              # Get the singleton scheduling handle
    consumer = store.duplicate()     # Separate handle for blocking pops
"""
from __future__ import annotations

from typing import Optional

import structlog

from database.store_base import BackingStore

logger = structlog.get_logger()

_instance: Optional[BackingStore] = None


def create_store(config: dict = None) -> BackingStore:
    """
    Factory: create a new backing-store handle.

    Args:
        config: dict with keys:
            backend: "redis" | "memory"  (default: "memory")
            redis_url: str (for redis backend)
            decode_responses: bool (for redis backend, default True)
            connect_attempts: int (for redis backend, default 3)
    """
    config = config or {}
    backend = config.get("backend", "memory")

    if backend == "redis":
        from database.store_redis import RedisBackingStore
        url = config.get("redis_url", "redis://localhost:6379")
        store = RedisBackingStore(
            redis_url=url,
            decode_responses=config.get("decode_responses", True),
            connect_attempts=config.get("connect_attempts", 3),
        )
        logger.info("store_created", backend="redis", url=url)

    elif backend == "memory":
        from database.store_memory import InMemoryBackingStore
        store = InMemoryBackingStore()
        logger.info("store_created", backend="memory")

    else:
        raise ValueError(f"Unknown store backend: {backend!r}")

    return store


def get_store(config: dict = None) -> BackingStore:
    """Return the singleton scheduling handle, creating it on first use."""
    global _instance
    if _instance is None:
        _instance = create_store(config)
    return _instance


def reset_store() -> None:
    """Reset the singleton (for testing)."""
    global _instance
    _instance = None
