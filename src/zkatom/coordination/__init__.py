"""Coordination clients package initialization"""

from urllib.parse import urlparse

from .base import ANY_VERSION, CoordinationClient, EventType, NodeData, WatchEvent
from .memory import MemoryCoordinationClient, MemoryStore, named_store
from .redis_client import RedisCoordinationClient


async def connect(url: str, **kwargs) -> CoordinationClient:
    """
    Connect ke coordination service. Returns client yang sudah di-start.

    Supported URLs:
        memory://<name>          in-process store, di-share per name
        redis://host:port/db     Redis backend (kwargs: key_prefix)
    """
    scheme = urlparse(url).scheme

    if scheme == 'memory':
        name = url[len('memory://'):] or 'default'
        client = MemoryCoordinationClient(store=named_store(name), **kwargs)
    elif scheme in ('redis', 'rediss', 'unix'):
        client = RedisCoordinationClient(url=url, **kwargs)
    else:
        raise ValueError(f"Unsupported coordination URL: {url}")

    await client.start()
    return client


__all__ = [
    'ANY_VERSION',
    'CoordinationClient',
    'EventType',
    'NodeData',
    'WatchEvent',
    'MemoryCoordinationClient',
    'MemoryStore',
    'RedisCoordinationClient',
    'connect',
    'named_store',
]
