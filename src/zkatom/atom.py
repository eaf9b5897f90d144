"""
Distributed atom di atas satu coordination-service node.

Flow:
- start(): ensure_path, initial fetch (dengan watch), lalu background
  task yang terus-menerus re-fetch node setiap kali watch fire
- deref() / data_version(): baca LocalCache saja, tanpa network I/O
- swap() / reset(): optimistic concurrency, conditional write dengan
  expected version dari cache, retry saat version conflict

LocalCache hanya di-update oleh watch loop, jadi cache selalu
mencerminkan state remote yang sudah committed.
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .codec import Codec, default_codec
from .coordination.base import CoordinationClient, EventType
from .errors import (
    CoordinationError,
    DecodingError,
    NoNodeError,
    VersionConflict,
)
from .paths import all_prefixes, ensure_path
from .retry import RetryPolicy
from .utils.metrics import metrics, measure_time

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class Snapshot:
    """Pasangan (value, version) yang selalu di-replace sebagai satu object"""
    value: Any = None
    version: int = 0


class LocalCache:
    """
    Holder untuk last-known Snapshot.
    Update = satu attribute assignment, reader tidak pernah melihat
    value dan version dari dua write yang berbeda.
    """

    def __init__(self):
        self._snapshot = Snapshot()
        self._updated: Optional[asyncio.Event] = None

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def update(self, value: Any, version: int):
        self._snapshot = Snapshot(value, version)
        self.wake()

    def wake(self):
        """Bangunkan semua coroutine yang menunggu di changed()"""
        if self._updated is not None:
            self._updated.set()
            self._updated = None

    async def changed(self):
        if self._updated is None:
            self._updated = asyncio.Event()
        await self._updated.wait()


class Atom:
    """
    Mutable reference yang value-nya tersimpan di satu remote node.

    Identity = (path, client). Semua mutable state ada di LocalCache.
    """

    def __init__(self, client: CoordinationClient, path: str,
                 codec: Optional[Codec] = None, retry: Optional[RetryPolicy] = None):
        """
        Args:
            client: Coordination client yang sudah di-start
            path: Absolute node path, contoh "/apps/config"
            codec: Value codec (default LiteralCodec)
            retry: Backoff untuk retry loops (default tanpa batas attempts)
        """
        # Validate early; root tidak bisa jadi atom
        all_prefixes(path)

        self.client = client
        self.path = path
        self.codec = codec or default_codec
        self.retry = retry or RetryPolicy()

        self._cache = LocalCache()
        self._watch: Optional[asyncio.Future] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._started = False
        self._closed = False
        self._deleted = False
        self._stopped = False

    def __repr__(self):
        return f"<Atom path={self.path} version={self._cache.snapshot.version}>"

    async def __aenter__(self) -> "Atom":
        if not self._started:
            await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    @property
    def deleted(self) -> bool:
        """True jika remote node sudah dihapus; cache tidak lagi di-update"""
        return self._deleted

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> "Atom":
        """
        Buat path, populate cache, dan mulai watch loop.
        Cache sudah terisi saat method ini return.
        """
        if self._started:
            return self

        await ensure_path(self.client, self.path)

        node = await self.client.get_data(self.path, watch=True)
        try:
            value = self.codec.decode(node.payload)
        except DecodingError:
            node.watch.cancel()
            raise

        self._publish(value, node.version)
        self._watch = node.watch
        self._watch_task = asyncio.create_task(self._watch_loop())
        self._started = True

        logger.info(f"Atom {self.path} started at version {node.version}")
        return self

    async def close(self):
        """Stop watch loop dan release subscription"""
        if self._closed:
            return
        self._closed = True

        if self._watch is not None:
            self._watch.cancel()
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass

        self._cache.wake()
        logger.info(f"Atom {self.path} closed")

    def deref(self) -> Any:
        """Last-known value. Tidak pernah block atau melakukan I/O."""
        return self._cache.snapshot.value

    def data_version(self) -> int:
        """Version node menurut cache. Berguna untuk debugging."""
        return self._cache.snapshot.version

    def snapshot(self) -> Snapshot:
        """Value dan version yang konsisten satu sama lain"""
        return self._cache.snapshot

    async def init(self, value: Any) -> "Atom":
        """
        Set value hanya jika node belum pernah di-write (version 0).
        Jika process lain sudah init, call ini no-op.
        """
        with self._instrument('init'):
            try:
                await self._set_value(value, 0)
            except VersionConflict:
                logger.debug(f"{self.path} already initialized, keeping remote value")
        return self

    async def swap(self, f: Callable[..., Any], *args, **kwargs) -> Any:
        """
        Swap value dengan f(current, *args, **kwargs).

        Retry (dengan backoff dari RetryPolicy) setiap kali remote version
        berubah sejak snapshot dibaca. Returns value baru.
        """
        with self._instrument('swap'):
            return await self._swap(f, args, kwargs)

    async def reset(self, value: Any) -> Any:
        """Set value tanpa memperhatikan value sebelumnya"""
        with self._instrument('reset'):
            return await self._swap(lambda _: value, (), {})

    async def compare_and_set(self, old_value: Any, new_value: Any) -> Any:
        """
        Fetch value langsung dari remote (bypass cache); jika equal dengan
        old_value lakukan reset(new_value), jika tidak fetch ulang.

        Bukan satu atomic operation: atomicity hanya sekuat conditional
        write di dalam reset.
        """
        with self._instrument('compare_and_set'):
            attempt = 0
            while True:
                node = await self.client.get_data(self.path)
                current = self.codec.decode(node.payload)
                if current == old_value:
                    return await self.reset(new_value)

                attempt += 1
                logger.debug(f"{self.path} v{node.version} does not match expected value, retry #{attempt}")
                await self.retry.wait(attempt)

    async def wait_for_version(self, version: int, timeout: Optional[float] = None) -> Snapshot:
        """
        Tunggu sampai cache melihat version >= `version`.

        Raises:
            asyncio.TimeoutError: timeout tercapai
            CoordinationError: watch loop sudah berhenti
        """
        async def _wait() -> Snapshot:
            while self._cache.snapshot.version < version:
                if self._closed or self._deleted or self._stopped or self._watch_task is None or self._watch_task.done():
                    raise CoordinationError(f"Atom {self.path} is no longer watching", self.path)
                await self._cache.changed()
            return self._cache.snapshot

        return await asyncio.wait_for(_wait(), timeout)

    async def _swap(self, f: Callable[..., Any], args: tuple, kwargs: dict) -> Any:
        attempt = 0
        while True:
            snapshot = self._cache.snapshot
            new_value = f(snapshot.value, *args, **kwargs)
            try:
                return await self._set_value(new_value, snapshot.version)
            except VersionConflict as e:
                attempt += 1
                metrics.record_conflict(self.path)
                logger.debug(f"Caught version conflict on {self.path} "
                             f"(expected v{e.expected_version}), retry #{attempt}")
                await self.retry.wait(attempt)

    async def _set_value(self, value: Any, version: int) -> Any:
        """Conditional write; VersionConflict jika remote version != version"""
        payload = self.codec.encode(value)

        logger.debug(f"{self.path} v{version} => {value!r}")
        new_version = await self.client.set_data(self.path, payload, version)
        logger.debug(f"{self.path} written as v{new_version}")

        return value

    def _publish(self, value: Any, version: int):
        self._cache.update(value, version)
        metrics.record_notification(self.path, version)

    async def _watch_loop(self):
        """
        Subscribe-on-change loop: tunggu watch, re-fetch dengan watch baru
        (dalam call yang sama), overwrite cache. Berhenti saat close()
        atau saat node dihapus.
        """
        attempt = 0
        while not self._closed:
            try:
                event = await self._watch
            except asyncio.CancelledError:
                if self._closed or not self._watch.cancelled():
                    raise
                logger.warning(f"Watch on {self.path} was cancelled by the client, stop tracking")
                self._stopped = True
                self._cache.wake()
                return
            except CoordinationError as e:
                logger.warning(f"Watch on {self.path} failed: {e}, re-subscribing")
            else:
                logger.debug(f"Change {event.event_type.value} on {event.path} (v{event.version})")
                if event.event_type == EventType.DELETED:
                    self._mark_deleted()
                    return

            while not self._closed:
                try:
                    await self._refresh()
                    attempt = 0
                    break
                except NoNodeError:
                    self._mark_deleted()
                    return
                except CoordinationError as e:
                    if not self.client.connected:
                        logger.warning(f"Client for {self.path} is closed, stop tracking: {e}")
                        self._stopped = True
                        self._cache.wake()
                        return
                    attempt += 1
                    logger.error(f"Failed to refresh {self.path} (attempt {attempt}): {e}")
                    await asyncio.sleep(self.retry.delay(attempt))

    async def _refresh(self):
        node = await self.client.get_data(self.path, watch=True)
        self._watch = node.watch

        try:
            value = self.codec.decode(node.payload)
        except DecodingError as e:
            # Watch tetap aktif; write berikutnya mungkin valid lagi
            logger.error(f"Ignoring undecodable payload at {self.path} v{node.version}: {e}")
            return

        self._publish(value, node.version)
        logger.debug(f"ZK watch {self.path} v{node.version} => {value!r}")

    def _mark_deleted(self):
        self._deleted = True
        self._cache.wake()
        logger.warning(f"Node {self.path} was deleted, atom stops tracking remote changes")

    @contextmanager
    def _instrument(self, operation: str):
        timer = measure_time()
        outcome = 'error'
        try:
            with timer:
                yield
            outcome = 'ok'
        finally:
            metrics.record_operation(operation, outcome, timer.elapsed)


async def create_atom(client: CoordinationClient, path: str, initial_value: Any = _MISSING,
                      codec: Optional[Codec] = None, retry: Optional[RetryPolicy] = None) -> Atom:
    """
    Create dan start atom. `initial_value` hanya di-set jika node di
    `path` belum pernah di-write; value yang sudah ada tidak ditimpa.
    """
    atom = Atom(client, path, codec=codec, retry=retry)
    await atom.start()
    if initial_value is not _MISSING:
        await atom.init(initial_value)
    return atom
