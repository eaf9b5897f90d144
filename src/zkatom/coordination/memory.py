"""
In-process coordination backend.

MemoryStore adalah tree of versioned nodes yang bisa di-share oleh
banyak MemoryCoordinationClient (simulasi banyak process di satu
event loop). Watches di-deliver asynchronous lewat event loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .base import ANY_VERSION, CoordinationClient, EventType, NodeData, WatchEvent
from ..errors import (
    ConnectionLostError,
    NodeExistsError,
    NoNodeError,
    NotEmptyError,
    VersionConflict,
)
from ..paths import parent_path, validate_path

logger = logging.getLogger(__name__)


@dataclass
class _MemoryNode:
    data: bytes
    version: int
    owner: Optional["MemoryCoordinationClient"] = None  # None = durable


class MemoryStore:
    """
    Strongly-consistent in-memory tree.
    Semua operasi synchronous; client yang menambahkan latency.
    """

    def __init__(self):
        self.nodes: Dict[str, _MemoryNode] = {'/': _MemoryNode(b'', 0)}

        # path -> list of (client, future)
        self._watches: Dict[str, List[Tuple["MemoryCoordinationClient", asyncio.Future]]] = {}

    def create(self, path: str, data: bytes, owner: Optional["MemoryCoordinationClient"]) -> str:
        validate_path(path)
        if path in self.nodes:
            raise NodeExistsError(path)

        parent = parent_path(path)
        if parent not in self.nodes:
            raise NoNodeError(parent)

        self.nodes[path] = _MemoryNode(data, 0, owner)
        return path

    def get(self, path: str) -> NodeData:
        node = self.nodes.get(path)
        if node is None:
            raise NoNodeError(path)
        return NodeData(payload=node.data, version=node.version)

    def add_watch(self, path: str, client: "MemoryCoordinationClient") -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._watches.setdefault(path, []).append((client, future))
        return future

    def set(self, path: str, data: bytes, expected_version: int) -> int:
        node = self.nodes.get(path)
        if node is None:
            raise NoNodeError(path)

        if expected_version != ANY_VERSION and expected_version != node.version:
            raise VersionConflict(path, expected_version, node.version)

        node.data = data
        node.version += 1
        self._trigger(path, EventType.CHANGED, node.version)
        return node.version

    def delete(self, path: str, expected_version: int) -> None:
        node = self.nodes.get(path)
        if node is None:
            raise NoNodeError(path)

        if expected_version != ANY_VERSION and expected_version != node.version:
            raise VersionConflict(path, expected_version, node.version)

        prefix = path + '/'
        if any(other.startswith(prefix) for other in self.nodes):
            raise NotEmptyError(path)

        del self.nodes[path]
        self._trigger(path, EventType.DELETED, node.version)

    def drop_session(self, client: "MemoryCoordinationClient") -> None:
        """Hapus ephemeral nodes dan cancel watches milik client"""
        owned = [path for path, node in self.nodes.items() if node.owner is client]
        # Deepest first supaya parent tidak punya children saat dihapus
        for path in sorted(owned, key=len, reverse=True):
            try:
                self.delete(path, ANY_VERSION)
            except NotEmptyError:
                logger.warning(f"Ephemeral node {path} still has children, keeping it")

        for path in list(self._watches):
            remaining = []
            for owner, future in self._watches[path]:
                if owner is client:
                    future.cancel()
                else:
                    remaining.append((owner, future))
            if remaining:
                self._watches[path] = remaining
            else:
                del self._watches[path]

    def _trigger(self, path: str, event_type: EventType, version: int) -> None:
        """Fire semua one-shot watches untuk path"""
        event = WatchEvent(event_type=event_type, path=path, version=version)
        for _, future in self._watches.pop(path, []):
            if not future.done():
                future.set_result(event)


# Named stores untuk URL memory://<name>
_named_stores: Dict[str, MemoryStore] = {}


def named_store(name: str) -> MemoryStore:
    if name not in _named_stores:
        _named_stores[name] = MemoryStore()
    return _named_stores[name]


class MemoryCoordinationClient(CoordinationClient):
    """
    Client untuk MemoryStore.

    Setiap call melewati satu await point (dan optional latency),
    seperti round trip ke remote service.
    """

    def __init__(self, store: Optional[MemoryStore] = None, latency: float = 0.0):
        """
        Args:
            store: Store yang di-share; default store baru
            latency: Delay per call (seconds)
        """
        self.store = store if store is not None else MemoryStore()
        self.latency = latency
        self._connected = False

    async def start(self) -> None:
        self._connected = True
        logger.debug("MemoryCoordinationClient started")

    @property
    def connected(self) -> bool:
        return self._connected

    async def close(self) -> None:
        if not self._connected:
            return
        self._connected = False
        self.store.drop_session(self)
        logger.debug("MemoryCoordinationClient closed")

    async def _round_trip(self) -> None:
        if not self._connected:
            raise ConnectionLostError("Client is not connected")
        await asyncio.sleep(self.latency)
        if not self._connected:
            raise ConnectionLostError("Client closed during request")

    async def create_node(self, path: str, data: bytes = b'', durable: bool = True) -> str:
        await self._round_trip()
        return self.store.create(path, data, None if durable else self)

    async def get_data(self, path: str, watch: bool = False) -> NodeData:
        await self._round_trip()
        node = self.store.get(path)
        if watch:
            node.watch = self.store.add_watch(path, self)
        return node

    async def set_data(self, path: str, payload: bytes, expected_version: int = ANY_VERSION) -> int:
        await self._round_trip()
        return self.store.set(path, payload, expected_version)

    async def delete_node(self, path: str, expected_version: int = ANY_VERSION) -> None:
        await self._round_trip()
        self.store.delete(path, expected_version)
