"""
Integration tests untuk Redis backend.
Di-skip jika tidak ada Redis server di REDIS_URL.
"""

import asyncio
import os
import uuid

import pytest
import pytest_asyncio

from zkatom.atom import create_atom
from zkatom.coordination import EventType, RedisCoordinationClient
from zkatom.errors import ConnectionLostError, CoordinationError, NodeExistsError, NoNodeError, NotEmptyError, VersionConflict
from zkatom.retry import RetryPolicy

REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/15')
FAST_RETRY = RetryPolicy(base_delay=0.001, max_delay=0.02)


@pytest_asyncio.fixture
async def make_redis_client():
    """Factory untuk clients dengan key prefix unik per test"""
    prefix = f"zkatom-test-{uuid.uuid4().hex[:8]}"
    clients = []

    async def _make():
        client = RedisCoordinationClient(REDIS_URL, key_prefix=prefix)
        try:
            await client.start()
        except ConnectionLostError:
            pytest.skip(f"Redis not available at {REDIS_URL}")
        clients.append(client)
        return client

    yield _make

    if clients:
        redis = clients[0].redis
        async for key in redis.scan_iter(match=f"{prefix}:*"):
            await redis.delete(key)
    for client in clients:
        await client.close()


@pytest.mark.asyncio
async def test_create_and_versions(make_redis_client):
    client = await make_redis_client()

    await client.create_node('/a')
    with pytest.raises(NodeExistsError):
        await client.create_node('/a')
    with pytest.raises(NoNodeError):
        await client.create_node('/missing/child')

    node = await client.get_data('/a')
    assert (node.payload, node.version) == (b"", 0)

    assert await client.set_data('/a', b"1", 0) == 1
    with pytest.raises(VersionConflict):
        await client.set_data('/a', b"2", 0)


@pytest.mark.asyncio
async def test_ephemeral_not_supported(make_redis_client):
    client = await make_redis_client()
    with pytest.raises(CoordinationError):
        await client.create_node('/e', durable=False)


@pytest.mark.asyncio
async def test_watch_across_clients(make_redis_client):
    watcher = await make_redis_client()
    writer = await make_redis_client()
    await writer.create_node('/w')

    node = await watcher.get_data('/w', watch=True)
    await writer.set_data('/w', b"x")

    event = await asyncio.wait_for(node.watch, 2.0)
    assert event.event_type == EventType.CHANGED
    assert event.version == 1


@pytest.mark.asyncio
async def test_delete(make_redis_client):
    client = await make_redis_client()
    await client.create_node('/p')
    await client.create_node('/p/c')

    with pytest.raises(NotEmptyError):
        await client.delete_node('/p')

    node = await client.get_data('/p/c', watch=True)
    await client.delete_node('/p/c')
    event = await asyncio.wait_for(node.watch, 2.0)
    assert event.event_type == EventType.DELETED

    await client.delete_node('/p')


@pytest.mark.asyncio
async def test_atom_end_to_end(make_redis_client):
    first = await create_atom(await make_redis_client(), '/x', retry=FAST_RETRY)
    second = await create_atom(await make_redis_client(), '/x', retry=FAST_RETRY)
    assert first.deref() is None

    assert await first.swap(lambda v: {**(v or {}), "foo": "bar"}) == {"foo": "bar"}
    await second.wait_for_version(1, timeout=2.0)
    assert second.deref() == {"foo": "bar"}

    assert await second.reset({}) == {}
    await first.wait_for_version(2, timeout=2.0)
    assert first.deref() == {}

    await first.close()
    await second.close()


@pytest.mark.asyncio
async def test_concurrent_swaps(make_redis_client):
    atoms = [
        await create_atom(await make_redis_client(), '/counter', initial_value=0, retry=FAST_RETRY)
        for _ in range(3)
    ]
    for atom in atoms:
        await atom.wait_for_version(1, timeout=2.0)

    await asyncio.gather(*(
        atoms[i % 3].swap(lambda n, k: n + k, k) for i, k in enumerate(range(1, 21))
    ))

    for atom in atoms:
        await atom.wait_for_version(21, timeout=5.0)
        assert atom.deref() == sum(range(1, 21))
        await atom.close()
