"""
Error hierarchy untuk zkatom.

- EncodingError / DecodingError: payload tidak bisa dibuat / dibaca
- VersionConflict: conditional write ditolak, di-retry oleh Atom
- CoordinationError: failure lain dari coordination client (fatal)
"""

from typing import Any, Optional


class ZkAtomError(Exception):
    """Base class untuk semua errors di package ini"""


class EncodingError(ZkAtomError):
    """Value tidak bisa di-encode ke payload"""

    def __init__(self, message: str, value: Any):
        super().__init__(message)
        self.value = value


class DecodingError(ZkAtomError):
    """Payload tidak bisa di-decode kembali ke value"""

    def __init__(self, message: str, payload: Optional[bytes]):
        super().__init__(message)
        self.payload = payload


class InvalidPathError(ZkAtomError, ValueError):
    """Path bukan absolute node path yang valid"""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid path {path!r}: {reason}")
        self.path = path


class VersionConflict(ZkAtomError):
    """Remote version tidak sama dengan expected version"""

    def __init__(self, path: str, expected_version: int, actual_version: Optional[int] = None):
        super().__init__(
            f"Version conflict on {path}: expected {expected_version}, found {actual_version}"
        )
        self.path = path
        self.expected_version = expected_version
        self.actual_version = actual_version


class RetryLimitExceeded(ZkAtomError):
    """Retry loop berhenti karena max_attempts tercapai"""

    def __init__(self, attempts: int):
        super().__init__(f"Gave up after {attempts} attempts")
        self.attempts = attempts


class CoordinationError(ZkAtomError):
    """Failure dari coordination service selain version conflict"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class NoNodeError(CoordinationError):
    def __init__(self, path: str):
        super().__init__(f"Node does not exist: {path}", path)


class NodeExistsError(CoordinationError):
    def __init__(self, path: str):
        super().__init__(f"Node already exists: {path}", path)


class NotEmptyError(CoordinationError):
    def __init__(self, path: str):
        super().__init__(f"Node has children: {path}", path)


class ConnectionLostError(CoordinationError):
    """Client belum di-start, sudah di-close, atau koneksi putus"""
