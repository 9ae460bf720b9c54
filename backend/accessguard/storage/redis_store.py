"""Redis-backed key-value store for local account state.

Lets several processes (or devices behind one service) share the local
state records. Mutations are published on a pub/sub channel so other
stores observe them the way browser tabs observe storage events.

Data structure:
- {prefix}{key} -> raw string value
- {channel} <- JSON {key, old_value, new_value, origin}

Uses orjson for fast serialization of mutation notifications.
"""

from __future__ import annotations

import asyncio
import logging

import orjson
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from accessguard.config import Settings
from accessguard.storage.kv_store import StorageEvent, StorageListener, Unsubscribe, new_origin

logger = logging.getLogger(__name__)


def _decode(value: bytes | str | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode()
    return value


class RedisKVStore:
    """KVStore implementation on top of redis.asyncio."""

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "accessguard:",
        channel: str = "accessguard:storage-events",
        origin: str | None = None,
    ):
        self._client = client
        self._pool: ConnectionPool | None = None
        self.prefix = prefix
        self.channel = channel
        self._origin = origin or new_origin()
        self._listeners: list[StorageListener] = []
        self._listen_task: asyncio.Task | None = None

    @classmethod
    async def connect(cls, settings: Settings, origin: str | None = None) -> RedisKVStore | None:
        """Create a store from settings.

        Returns:
            The store, or None if Redis is not reachable
        """
        pool = ConnectionPool.from_url(
            settings.redis_url,
            max_connections=20,
            decode_responses=False,
        )
        client = redis.Redis(connection_pool=pool)

        try:
            await client.ping()
            logger.info(f"Redis connected: {settings.redis_url}")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}. Falling back to in-memory state.")
            await client.aclose()
            await pool.disconnect()
            return None

        store = cls(
            client,
            prefix=settings.storage_prefix,
            channel=settings.storage_channel,
            origin=origin,
        )
        store._pool = pool
        return store

    async def close(self) -> None:
        """Stop listening and close the connection pool."""
        if self._listen_task is not None:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
            self._listen_task = None

        await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None

        logger.info("Redis store closed")

    @property
    def origin(self) -> str:
        return self._origin

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    # =========================================================================
    # Basic operations
    # =========================================================================

    async def get(self, key: str) -> str | None:
        try:
            return _decode(await self._client.get(self._key(key)))
        except redis.RedisError as e:
            logger.warning(f"Redis GET error for {key}: {e}")
            return None

    async def set(self, key: str, value: str) -> bool:
        try:
            old = _decode(await self._client.set(self._key(key), value, get=True))
        except redis.RedisError as e:
            logger.warning(f"Redis SET error for {key}: {e}")
            return False

        if old != value:
            await self._publish(StorageEvent(key, old, value, self._origin))
        return True

    async def delete(self, key: str) -> bool:
        try:
            old = _decode(await self._client.getdel(self._key(key)))
        except redis.RedisError as e:
            logger.warning(f"Redis DELETE error for {key}: {e}")
            return False

        if old is not None:
            await self._publish(StorageEvent(key, old, None, self._origin))
        return True

    # =========================================================================
    # Mutation notifications
    # =========================================================================

    async def _publish(self, event: StorageEvent) -> None:
        payload = orjson.dumps({
            "key": event.key,
            "old_value": event.old_value,
            "new_value": event.new_value,
            "origin": event.origin,
        })
        try:
            await self._client.publish(self.channel, payload)
        except redis.RedisError as e:
            logger.warning(f"Redis PUBLISH error for {event.key}: {e}")

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        """Register a listener; starts the pub/sub reader on first use.

        Must be called from a running event loop.
        """
        self._listeners.append(listener)
        if self._listen_task is None or self._listen_task.done():
            self._listen_task = asyncio.get_running_loop().create_task(self._listen())

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _listen(self) -> None:
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(self.channel)
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                event = self._parse_event(message.get("data"))
                if event is not None:
                    self._dispatch(event)
        except redis.RedisError as e:
            logger.warning(f"Redis subscription on {self.channel} stopped: {e}")
        finally:
            await pubsub.aclose()

    def _parse_event(self, data: bytes | str | None) -> StorageEvent | None:
        try:
            raw = orjson.loads(data)
            return StorageEvent(
                key=raw["key"],
                old_value=raw.get("old_value"),
                new_value=raw.get("new_value"),
                origin=raw.get("origin", ""),
            )
        except (orjson.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring malformed storage event: {e}")
            return None

    def _dispatch(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Storage listener failed for {event.key}: {e}")
