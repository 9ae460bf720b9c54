"""Local state storage layer."""

from accessguard.storage.kv_store import (
    KVStore,
    MemoryKVStore,
    MemoryStorage,
    StorageEvent,
    StorageListener,
)
from accessguard.storage.local_state_cache import LocalStateCache
from accessguard.storage.redis_store import RedisKVStore

__all__ = [
    "KVStore",
    "MemoryKVStore",
    "MemoryStorage",
    "StorageEvent",
    "StorageListener",
    "LocalStateCache",
    "RedisKVStore",
]
