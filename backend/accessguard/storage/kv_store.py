"""Key-value store interface for local account state.

Models browser-style local storage: string keys, string values, and
mutation notifications delivered to *other* tabs sharing the same store.

- KVStore: Protocol every backend implements (get/set/delete/subscribe)
- StorageEvent: A mutation notification
- MemoryStorage: Shared in-process backing store, one per profile/device
- MemoryKVStore: One tab's view onto a MemoryStorage
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    """A key mutation observed through the store.

    Attributes:
        key: Mutated key (without any backend prefix).
        old_value: Value before the mutation, None if absent.
        new_value: Value after the mutation, None if deleted.
        origin: Identifier of the tab/device that made the change.
    """

    key: str
    old_value: str | None
    new_value: str | None
    origin: str


StorageListener = Callable[[StorageEvent], None]
Unsubscribe = Callable[[], None]


def new_origin() -> str:
    """Generate a tab/device identifier."""
    return uuid.uuid4().hex[:12]


@runtime_checkable
class KVStore(Protocol):
    """Protocol that local state backends must implement."""

    @property
    def origin(self) -> str:
        """Identifier stamped on mutations made through this store."""
        ...

    async def get(self, key: str) -> str | None:
        """Get a value, None if absent or unavailable."""
        ...

    async def set(self, key: str, value: str) -> bool:
        """Store a value. Returns True if persisted."""
        ...

    async def delete(self, key: str) -> bool:
        """Remove a key. Returns True if the backend accepted the call."""
        ...

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        """Register for mutation notifications. Returns an unsubscribe callable."""
        ...


class MemoryStorage:
    """In-process backing store shared by several tabs.

    Mutations are delivered synchronously to listeners of every tab except
    the one that made them, the way browsers dispatch storage events.
    """

    def __init__(self):
        self._data: dict[str, str] = {}
        self._listeners: list[tuple[str, StorageListener]] = []

    def tab(self, origin: str | None = None) -> MemoryKVStore:
        """Open a tab view onto this storage."""
        return MemoryKVStore(self, origin)

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def keys(self) -> list[str]:
        return list(self._data)

    def write(self, key: str, value: str | None, origin: str) -> None:
        """Apply a mutation and notify the other tabs."""
        old = self._data.get(key)
        if value == old:
            return
        if value is None:
            del self._data[key]
        else:
            self._data[key] = value

        event = StorageEvent(key=key, old_value=old, new_value=value, origin=origin)
        for listener_origin, listener in list(self._listeners):
            if listener_origin == origin:
                continue
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Storage listener failed for {key}: {e}")

    def add_listener(self, origin: str, listener: StorageListener) -> Unsubscribe:
        entry = (origin, listener)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe


class MemoryKVStore:
    """One tab's view onto a MemoryStorage."""

    def __init__(self, storage: MemoryStorage | None = None, origin: str | None = None):
        self.storage = storage or MemoryStorage()
        self._origin = origin or new_origin()

    @property
    def origin(self) -> str:
        return self._origin

    async def get(self, key: str) -> str | None:
        return self.storage.read(key)

    async def set(self, key: str, value: str) -> bool:
        self.storage.write(key, value, self._origin)
        return True

    async def delete(self, key: str) -> bool:
        self.storage.write(key, None, self._origin)
        return True

    def subscribe(self, listener: StorageListener) -> Unsubscribe:
        return self.storage.add_listener(self._origin, listener)
