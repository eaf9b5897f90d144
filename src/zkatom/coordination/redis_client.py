"""
Redis-backed coordination client.

Layout di Redis (prefix default "zkatom"):
- {prefix}:node:{path}      hash {data, version}
- {prefix}:children:{path}  set of child paths
- {prefix}:watch:{path}     pub/sub channel, message "changed:<v>" / "deleted:<v>"

Create/set/delete adalah Lua scripts sehingga parent check dan
version check atomic di server.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Tuple

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, TimeoutError as RedisTimeoutError

from .base import ANY_VERSION, CoordinationClient, EventType, NodeData, WatchEvent
from ..errors import (
    ConnectionLostError,
    CoordinationError,
    NodeExistsError,
    NoNodeError,
    NotEmptyError,
    VersionConflict,
)
from ..paths import parent_path, validate_path

logger = logging.getLogger(__name__)

# KEYS: node, own children set, parent node (optional), parent children set (optional)
# ARGV: data, path
CREATE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 1 then return 0 end
if #KEYS == 4 then
  if redis.call('EXISTS', KEYS[3]) == 0 then return -1 end
  redis.call('SADD', KEYS[4], ARGV[2])
end
redis.call('HSET', KEYS[1], 'data', ARGV[1], 'version', 0)
return 1
"""

# KEYS: node; ARGV: data, expected version, channel
SET_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then return {-1, -1} end
local version = tonumber(redis.call('HGET', KEYS[1], 'version'))
local expected = tonumber(ARGV[2])
if expected ~= -1 and expected ~= version then return {-2, version} end
version = version + 1
redis.call('HSET', KEYS[1], 'data', ARGV[1], 'version', version)
redis.call('PUBLISH', ARGV[3], 'changed:' .. version)
return {1, version}
"""

# KEYS: node, own children set, parent children set (optional)
# ARGV: expected version, channel, path
DELETE_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then return {-1, -1} end
local version = tonumber(redis.call('HGET', KEYS[1], 'version'))
local expected = tonumber(ARGV[1])
if expected ~= -1 and expected ~= version then return {-2, version} end
if redis.call('SCARD', KEYS[2]) > 0 then return {-3, version} end
redis.call('DEL', KEYS[1])
if #KEYS == 3 then redis.call('SREM', KEYS[3], ARGV[3]) end
redis.call('PUBLISH', ARGV[2], 'deleted:' .. version)
return {1, version}
"""


class RedisCoordinationClient(CoordinationClient):
    """
    Coordination client di atas Redis.

    Watches memakai satu pub/sub connection per client. Subscription
    dikonfirmasi dulu sebelum read, dan event yang datang selama read
    langsung mem-fire watch baru, jadi tidak ada change yang hilang.
    """

    def __init__(self, url: str = 'redis://localhost:6379/0', key_prefix: str = 'zkatom',
                 redis: Optional[aioredis.Redis] = None):
        """
        Args:
            url: Redis URL
            key_prefix: Prefix untuk semua keys dan channels
            redis: Optional existing Redis connection
        """
        self.url = url
        self.key_prefix = key_prefix
        self.redis: Optional[aioredis.Redis] = redis
        self._owns_redis = redis is None

        self._pubsub = None
        self._listener_task: Optional[asyncio.Task] = None
        self._connected = False

        # channel -> path, dan channel -> subscription confirmed
        self._channels: Dict[str, str] = {}
        self._subscribed: Dict[str, asyncio.Event] = {}

        # path -> list of (observed version, future)
        self._watches: Dict[str, List[Tuple[int, asyncio.Future]]] = {}

        # path -> (message count, last event); untuk deteksi event selama read
        self._events: Dict[str, Tuple[int, Optional[WatchEvent]]] = {}

        self._create = None
        self._set = None
        self._delete = None

    def _node_key(self, path: str) -> str:
        return f"{self.key_prefix}:node:{path}"

    def _children_key(self, path: str) -> str:
        return f"{self.key_prefix}:children:{path}"

    def _channel(self, path: str) -> str:
        return f"{self.key_prefix}:watch:{path}"

    async def start(self) -> None:
        if self.redis is None:
            self.redis = aioredis.Redis.from_url(self.url, decode_responses=False)

        try:
            await self.redis.ping()
        except RedisError as e:
            raise ConnectionLostError(f"Failed to connect to Redis at {self.url}: {e}") from e

        self._create = self.redis.register_script(CREATE_SCRIPT)
        self._set = self.redis.register_script(SET_SCRIPT)
        self._delete = self.redis.register_script(DELETE_SCRIPT)
        self._pubsub = self.redis.pubsub()
        self._connected = True

        logger.info(f"Connected to Redis at {self.url} (prefix={self.key_prefix})")

    @property
    def connected(self) -> bool:
        return self._connected

    async def close(self) -> None:
        if not self._connected:
            return
        self._connected = False

        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass

        for watches in self._watches.values():
            for _, future in watches:
                future.cancel()
        self._watches.clear()

        if self._pubsub is not None:
            await self._pubsub.aclose()
        if self._owns_redis and self.redis is not None:
            await self.redis.aclose()
            self.redis = None

        logger.info("Redis coordination client closed")

    @asynccontextmanager
    async def _request(self, path: str):
        """Translate Redis errors ke CoordinationError"""
        if not self._connected:
            raise ConnectionLostError("Client is not connected", path)
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as e:
            raise ConnectionLostError(f"Redis connection failed: {e}", path) from e
        except RedisError as e:
            raise CoordinationError(f"Redis error on {path}: {e}", path) from e

    async def create_node(self, path: str, data: bytes = b'', durable: bool = True) -> str:
        validate_path(path)
        if not durable:
            raise CoordinationError("Ephemeral nodes are not supported by the Redis backend", path)

        keys = [self._node_key(path), self._children_key(path)]
        parent = parent_path(path)
        if parent != '/':
            keys += [self._node_key(parent), self._children_key(parent)]

        async with self._request(path):
            result = await self._create(keys=keys, args=[data, path])

        if result == 0:
            raise NodeExistsError(path)
        if result == -1:
            raise NoNodeError(parent)
        return path

    async def get_data(self, path: str, watch: bool = False) -> NodeData:
        if watch:
            await self._subscribe(path)
        count_before, _ = self._events.get(path, (0, None))

        async with self._request(path):
            data, version = await self.redis.hmget(self._node_key(path), 'data', 'version')

        if version is None:
            raise NoNodeError(path)

        node = NodeData(payload=data or b'', version=int(version))
        if watch:
            node.watch = self._add_watch(path, node.version, count_before)
        return node

    async def set_data(self, path: str, payload: bytes, expected_version: int = ANY_VERSION) -> int:
        async with self._request(path):
            code, version = await self._set(
                keys=[self._node_key(path)],
                args=[payload, expected_version, self._channel(path)],
            )

        if code == -1:
            raise NoNodeError(path)
        if code == -2:
            raise VersionConflict(path, expected_version, version)
        return version

    async def delete_node(self, path: str, expected_version: int = ANY_VERSION) -> None:
        keys = [self._node_key(path), self._children_key(path)]
        parent = parent_path(path)
        if parent != '/':
            keys.append(self._children_key(parent))

        async with self._request(path):
            code, version = await self._delete(
                keys=keys,
                args=[expected_version, self._channel(path), path],
            )

        if code == -1:
            raise NoNodeError(path)
        if code == -2:
            raise VersionConflict(path, expected_version, version)
        if code == -3:
            raise NotEmptyError(path)

    async def _subscribe(self, path: str) -> None:
        """Subscribe ke channel path dan tunggu konfirmasi dari server"""
        channel = self._channel(path)
        confirmed = self._subscribed.get(channel)

        if confirmed is None:
            confirmed = asyncio.Event()
            self._subscribed[channel] = confirmed
            self._channels[channel] = path
            try:
                async with self._request(path):
                    await self._pubsub.subscribe(channel)
            except CoordinationError:
                del self._subscribed[channel]
                confirmed.set()
                raise
            if self._listener_task is None or self._listener_task.done():
                self._listener_task = asyncio.create_task(self._listen())

        await confirmed.wait()

    def _add_watch(self, path: str, version: int, count_before: int) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()

        # Event yang sampai selama read mungkin terjadi setelah read
        count_after, last_event = self._events.get(path, (0, None))
        if count_after != count_before and last_event is not None and self._fires(last_event, version):
            future.set_result(last_event)
            return future

        self._watches.setdefault(path, []).append((version, future))
        return future

    @staticmethod
    def _fires(event: WatchEvent, observed_version: int) -> bool:
        if event.event_type == EventType.DELETED:
            return True
        return event.version is not None and event.version > observed_version

    async def _listen(self):
        """Background task untuk dispatch pub/sub messages ke watches"""
        while self._connected:
            try:
                message = await self._pubsub.get_message(ignore_subscribe_messages=False, timeout=1.0)
            except asyncio.CancelledError:
                raise
            except RedisError as e:
                logger.error(f"Pub/sub listener failed: {e}")
                self._fail_watches(ConnectionLostError(f"Pub/sub connection failed: {e}"))
                return

            if message is not None:
                self._dispatch(message)

    def _dispatch(self, message: dict) -> None:
        channel = message.get('channel')
        if isinstance(channel, bytes):
            channel = channel.decode('utf-8')

        if message['type'] == 'subscribe':
            confirmed = self._subscribed.get(channel)
            if confirmed is not None:
                confirmed.set()
            return

        if message['type'] != 'message':
            return

        path = self._channels.get(channel)
        if path is None:
            return

        data = message['data']
        if isinstance(data, bytes):
            data = data.decode('utf-8')
        kind, _, version = data.partition(':')

        try:
            event = WatchEvent(event_type=EventType(kind), path=path, version=int(version))
        except ValueError:
            logger.warning(f"Ignoring malformed watch message on {channel}: {data!r}")
            return

        count, _ = self._events.get(path, (0, None))
        self._events[path] = (count + 1, event)
        logger.debug(f"Watch message {event.event_type.value} v{event.version} for {path}")

        pending = []
        for observed, future in self._watches.pop(path, []):
            if future.done():
                continue
            if self._fires(event, observed):
                future.set_result(event)
            else:
                pending.append((observed, future))
        if pending:
            self._watches[path] = pending

    def _fail_watches(self, error: Exception) -> None:
        """Propagate listener failure ke semua pending watches"""
        for watches in self._watches.values():
            for _, future in watches:
                if not future.done():
                    future.set_exception(error)
        self._watches.clear()

        # Paksa re-subscribe pada watch berikutnya
        self._subscribed.clear()
        self._channels.clear()
