"""
Database layer — backing stores for the scheduler.

Backends:
  - Redis (sorted sets + lists, Lua scripting for atomic promotion)
  - In-memory (dict-based, for development/testing)

Quick start:
  from database import create_store
  store = create_store({"backend": "memory"})
  consumer = store.duplicate()
"""
from database.store_base import BackingStore
from database.store_memory import InMemoryBackingStore, InMemoryState
from database.store_redis import RedisBackingStore, PROMOTE_SCRIPT
from database.store_factory import create_store, get_store, reset_store

__all__ = [
    # Store interface
    "BackingStore",
    # Store backends
    "InMemoryBackingStore", "InMemoryState",
    "RedisBackingStore", "PROMOTE_SCRIPT",
    # Factory
    "create_store", "get_store", "reset_store",
]
