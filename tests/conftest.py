"""
Shared fixtures: in-memory store dan clients yang mensimulasikan
beberapa process pada satu coordination service.
"""

import pytest
import pytest_asyncio

from zkatom.coordination import MemoryCoordinationClient, MemoryStore
from zkatom.retry import RetryPolicy

# Backoff kecil supaya tests cepat
FAST_RETRY = RetryPolicy(base_delay=0.001, max_delay=0.01)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def fast_retry():
    return FAST_RETRY


@pytest_asyncio.fixture
async def make_client(store):
    """Factory untuk clients yang di-close otomatis setelah test"""
    clients = []

    async def _make(latency: float = 0.0):
        client = MemoryCoordinationClient(store, latency=latency)
        await client.start()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.close()


@pytest_asyncio.fixture
async def client(make_client):
    return await make_client()


@pytest_asyncio.fixture
async def other_client(make_client):
    return await make_client()
