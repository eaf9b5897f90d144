"""
zkatom

Distributed atom: mutable reference yang value-nya tersimpan di satu
node coordination service, dengan:
- Local cache yang di-update lewat change notifications
- Optimistic concurrency (conditional write + retry) untuk swap/reset
- Backends: in-memory dan Redis
"""

from .atom import Atom, LocalCache, Snapshot, create_atom
from .codec import Codec, JsonCodec, LiteralCodec
from .coordination import CoordinationClient, MemoryCoordinationClient, RedisCoordinationClient, connect
from .errors import (
    ConnectionLostError,
    CoordinationError,
    DecodingError,
    EncodingError,
    InvalidPathError,
    NodeExistsError,
    NoNodeError,
    NotEmptyError,
    RetryLimitExceeded,
    VersionConflict,
    ZkAtomError,
)
from .paths import all_prefixes, ensure_path
from .retry import RetryPolicy

__version__ = "1.0.0"

__all__ = [
    'Atom', 'LocalCache', 'Snapshot', 'create_atom',
    'Codec', 'JsonCodec', 'LiteralCodec',
    'CoordinationClient', 'MemoryCoordinationClient', 'RedisCoordinationClient', 'connect',
    'ConnectionLostError', 'CoordinationError', 'DecodingError', 'EncodingError',
    'InvalidPathError', 'NodeExistsError', 'NoNodeError', 'NotEmptyError',
    'RetryLimitExceeded', 'VersionConflict', 'ZkAtomError',
    'all_prefixes', 'ensure_path',
    'RetryPolicy',
]
