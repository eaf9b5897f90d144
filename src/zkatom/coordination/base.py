"""
Coordination client contract.

Coordination service = tree store dengan versioned nodes dan
one-shot change notifications (watches). Semua adapters di package
ini mengimplementasikan interface yang sama.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# Expected version yang berarti "write tanpa syarat"
ANY_VERSION = -1


class EventType(Enum):
    """Tipe watch events"""
    CHANGED = "changed"
    DELETED = "deleted"


@dataclass(frozen=True)
class WatchEvent:
    """Event yang di-deliver ke watch"""
    event_type: EventType
    path: str
    version: Optional[int] = None


@dataclass
class NodeData:
    """
    Hasil get_data.

    watch hanya ada jika get_data dipanggil dengan watch=True;
    future ini resolve (sekali) dengan WatchEvent saat node berubah.
    """
    payload: bytes
    version: int
    watch: Optional["asyncio.Future[WatchEvent]"] = field(default=None, compare=False, repr=False)


class CoordinationClient(ABC):
    """Base class untuk coordination service clients"""

    async def __aenter__(self) -> "CoordinationClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    @abstractmethod
    async def start(self) -> None:
        """Buka koneksi / session"""

    @abstractmethod
    async def close(self) -> None:
        """Tutup koneksi; pending watches di-cancel"""

    @property
    @abstractmethod
    def connected(self) -> bool:
        """True antara start() dan close()"""

    @abstractmethod
    async def create_node(self, path: str, data: bytes = b'', durable: bool = True) -> str:
        """
        Create node di path.

        Raises:
            NodeExistsError: node sudah ada
            NoNodeError: parent node belum ada
        """

    @abstractmethod
    async def get_data(self, path: str, watch: bool = False) -> NodeData:
        """
        Read payload dan version. Jika watch=True, watch di-register
        dalam call yang sama sehingga tidak ada change yang terlewat.

        Raises:
            NoNodeError: node tidak ada
        """

    @abstractmethod
    async def set_data(self, path: str, payload: bytes, expected_version: int = ANY_VERSION) -> int:
        """
        Conditional write. Returns version baru.

        Raises:
            VersionConflict: remote version != expected_version
            NoNodeError: node tidak ada
        """

    @abstractmethod
    async def delete_node(self, path: str, expected_version: int = ANY_VERSION) -> None:
        """
        Delete node.

        Raises:
            NoNodeError, NotEmptyError, VersionConflict
        """
