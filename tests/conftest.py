"""Shared test fixtures for the delayed-delivery scheduler."""
import pytest
import pytest_asyncio

from database.store_memory import InMemoryBackingStore
from job_queue.scheduler import ReScheduler
from utils.timestamps import now_ms


QUEUE = "myqueue"


@pytest.fixture
def store() -> InMemoryBackingStore:
    """Scheduling handle on a fresh in-memory server."""
    return InMemoryBackingStore()


@pytest.fixture
def consumer_store(store) -> InMemoryBackingStore:
    """A second handle on the same in-memory server, for blocking pops."""
    return store.duplicate()


@pytest.fixture
def legacy_store() -> InMemoryBackingStore:
    """A server that predates scripting."""
    return InMemoryBackingStore(version=(2, 4, 0))


@pytest.fixture
def now() -> int:
    return now_ms()


@pytest_asyncio.fixture
async def scheduler(store):
    """Started scheduler with auto-check disabled."""
    rs = ReScheduler(store, QUEUE, {"check_interval_ms": 0})
    await rs.start()
    yield rs
    await rs.shutdown(leave_store_open=True)


@pytest_asyncio.fixture
async def fallback_scheduler(store):
    rs = ReScheduler(store, QUEUE, {"check_interval_ms": 0, "force_fallback": True})
    await rs.start()
    yield rs
    await rs.shutdown(leave_store_open=True)
