"""
Unit tests untuk in-memory coordination client.
"""

import asyncio

import pytest

from zkatom.coordination import ANY_VERSION, EventType, MemoryCoordinationClient, connect
from zkatom.errors import (
    ConnectionLostError,
    NodeExistsError,
    NoNodeError,
    NotEmptyError,
    VersionConflict,
)


@pytest.mark.asyncio
async def test_create_and_get(client):
    await client.create_node('/a', b"payload")

    node = await client.get_data('/a')
    assert node.payload == b"payload"
    assert node.version == 0
    assert node.watch is None


@pytest.mark.asyncio
async def test_create_requires_parent(client):
    with pytest.raises(NoNodeError) as exc_info:
        await client.create_node('/missing/child')
    assert exc_info.value.path == '/missing'


@pytest.mark.asyncio
async def test_create_existing_node(client):
    await client.create_node('/a')
    with pytest.raises(NodeExistsError):
        await client.create_node('/a')


@pytest.mark.asyncio
async def test_set_data_increments_version(client):
    await client.create_node('/a')

    assert await client.set_data('/a', b"1", 0) == 1
    assert await client.set_data('/a', b"2", 1) == 2
    assert await client.set_data('/a', b"3", ANY_VERSION) == 3

    node = await client.get_data('/a')
    assert (node.payload, node.version) == (b"3", 3)


@pytest.mark.asyncio
async def test_set_data_version_conflict(client):
    await client.create_node('/a')
    await client.set_data('/a', b"1", 0)

    with pytest.raises(VersionConflict) as exc_info:
        await client.set_data('/a', b"stale", 0)

    assert exc_info.value.expected_version == 0
    assert exc_info.value.actual_version == 1
    assert (await client.get_data('/a')).payload == b"1"


@pytest.mark.asyncio
async def test_set_data_missing_node(client):
    with pytest.raises(NoNodeError):
        await client.set_data('/nope', b"x")


@pytest.mark.asyncio
async def test_watch_fires_once_per_registration(client, other_client):
    await client.create_node('/a')
    node = await client.get_data('/a', watch=True)

    await other_client.set_data('/a', b"1")
    event = await asyncio.wait_for(node.watch, 1.0)

    assert event.event_type == EventType.CHANGED
    assert event.path == '/a'
    assert event.version == 1

    # One-shot: write kedua tidak punya watch lagi
    await other_client.set_data('/a', b"2")
    assert '/a' not in client.store._watches


@pytest.mark.asyncio
async def test_watch_is_delivered_asynchronously(client, store):
    await client.create_node('/a')
    node = await client.get_data('/a', watch=True)

    store.set('/a', b"1", ANY_VERSION)

    # Future resolved, tapi callbacks baru jalan di iterasi loop berikutnya
    assert node.watch.done()
    assert (await node.watch).version == 1


@pytest.mark.asyncio
async def test_watch_on_delete(client, other_client):
    await client.create_node('/a')
    node = await client.get_data('/a', watch=True)

    await other_client.delete_node('/a')
    event = await asyncio.wait_for(node.watch, 1.0)

    assert event.event_type == EventType.DELETED
    with pytest.raises(NoNodeError):
        await client.get_data('/a')


@pytest.mark.asyncio
async def test_delete_with_children(client):
    await client.create_node('/a')
    await client.create_node('/a/b')

    with pytest.raises(NotEmptyError):
        await client.delete_node('/a')


@pytest.mark.asyncio
async def test_ephemeral_nodes_removed_on_close(store, make_client):
    owner = await make_client()
    observer = await make_client()
    await owner.create_node('/session', durable=False)
    await owner.create_node('/durable')

    node = await observer.get_data('/session', watch=True)
    await owner.close()

    assert '/session' not in store.nodes
    assert '/durable' in store.nodes
    assert (await node.watch).event_type == EventType.DELETED


@pytest.mark.asyncio
async def test_close_cancels_pending_watches(client):
    await client.create_node('/a')
    node = await client.get_data('/a', watch=True)

    assert client.connected
    await client.close()

    assert not client.connected
    assert node.watch.cancelled()
    with pytest.raises(ConnectionLostError):
        await client.get_data('/a')


@pytest.mark.asyncio
async def test_connect_memory_url_shares_store():
    first = await connect('memory://test-shared')
    second = await connect('memory://test-shared')
    try:
        assert isinstance(first, MemoryCoordinationClient)
        assert first.store is second.store
    finally:
        await first.close()
        await second.close()


@pytest.mark.asyncio
async def test_connect_rejects_unknown_scheme():
    with pytest.raises(ValueError):
        await connect('zk://localhost:2181')
