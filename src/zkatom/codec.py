"""
Value codec: convert application values ke/dari byte payload.

Payload kosong (atau None) berarti "belum ada value" dan di-decode
menjadi None. Semua codec memverifikasi bahwa payload hasil encode
bisa di-decode kembali sebelum payload itu ditulis ke remote node.
"""

import ast
import json
import math
from abc import ABC, abstractmethod
from typing import Any, Optional, Set

from .errors import DecodingError, EncodingError


class Codec(ABC):
    """Base class untuk value codecs"""

    @abstractmethod
    def encode(self, value: Any) -> bytes:
        """Serialize value ke bytes. Raise EncodingError jika gagal."""

    @abstractmethod
    def decode(self, payload: Optional[bytes]) -> Any:
        """Parse bytes ke value. Raise DecodingError jika payload rusak."""


class LiteralCodec(Codec):
    """
    Codec dengan Python literal syntax (human-readable, deterministic).

    Dict keys dan set members di-sort berdasarkan encoded form-nya,
    jadi dua value yang equal selalu menghasilkan bytes yang sama.
    Payload di-parse kembali dengan ast.literal_eval, tidak pernah eval.
    """

    encoding = 'utf-8'

    def encode(self, value: Any) -> bytes:
        if value is None:
            return b''

        try:
            text = self._render(value, set(), value)
        except RecursionError as e:
            raise EncodingError("Value is nested too deeply to encode", value) from e
        payload = text.encode(self.encoding)

        # Verify payload bisa dibaca kembali
        try:
            self.decode(payload)
        except DecodingError as e:
            raise EncodingError(f"Can't encode value as literal: {e}", value) from e

        return payload

    def decode(self, payload: Optional[bytes]) -> Any:
        if not payload:
            return None

        try:
            return ast.literal_eval(payload.decode(self.encoding))
        except (ValueError, SyntaxError, TypeError, UnicodeDecodeError,
                MemoryError, RecursionError) as e:
            raise DecodingError(f"Malformed literal payload: {e}", payload) from e

    def _render(self, value: Any, seen: Set[int], root: Any) -> str:
        if value is None or isinstance(value, (bool, int, str, bytes, complex)):
            return repr(value)

        if isinstance(value, float):
            if not math.isfinite(value):
                raise EncodingError(f"Non-finite float {value!r} has no literal form", root)
            return repr(value)

        if not isinstance(value, (list, tuple, dict, set)):
            raise EncodingError(f"Unsupported type {type(value).__name__}", root)

        if id(value) in seen:
            raise EncodingError("Cyclic structure can't be encoded", root)
        seen.add(id(value))

        try:
            if isinstance(value, list):
                return '[' + ', '.join(self._render(v, seen, root) for v in value) + ']'

            if isinstance(value, tuple):
                items = [self._render(v, seen, root) for v in value]
                if len(items) == 1:
                    return '(' + items[0] + ',)'
                return '(' + ', '.join(items) + ')'

            if isinstance(value, dict):
                entries = sorted(
                    (self._render(k, seen, root), self._render(v, seen, root))
                    for k, v in value.items()
                )
                return '{' + ', '.join(f"{k}: {v}" for k, v in entries) + '}'

            # set
            if not value:
                return 'set()'
            return '{' + ', '.join(sorted(self._render(v, seen, root) for v in value)) + '}'
        finally:
            seen.discard(id(value))


class JsonCodec(Codec):
    """
    JSON codec dengan sorted keys dan compact separators.
    Value yang tidak bisa kembali utuh (tuples, non-string dict keys)
    ditolak dengan EncodingError.
    """

    encoding = 'utf-8'

    def encode(self, value: Any) -> bytes:
        if value is None:
            return b''

        try:
            text = json.dumps(value, sort_keys=True, separators=(',', ':'),
                              ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError, RecursionError) as e:
            raise EncodingError(f"Can't encode value as JSON: {e}", value) from e

        payload = text.encode(self.encoding)

        # JSON kehilangan tuples dan non-string keys; tolak value yang berubah
        try:
            same = self.decode(payload) == value
        except (DecodingError, RecursionError) as e:
            raise EncodingError(f"Can't read back JSON payload: {e}", value) from e
        if not same:
            raise EncodingError("Value does not survive a JSON round trip", value)

        return payload

    def decode(self, payload: Optional[bytes]) -> Any:
        if not payload:
            return None

        try:
            return json.loads(payload.decode(self.encoding))
        except (ValueError, UnicodeDecodeError, RecursionError) as e:
            raise DecodingError(f"Malformed JSON payload: {e}", payload) from e


# Default codec
default_codec = LiteralCodec()
