"""Tests for key-value stores (in-memory tabs and Redis)."""

import orjson
import pytest
from unittest.mock import AsyncMock, MagicMock

import redis.asyncio as redis

from accessguard.storage import KVStore, MemoryKVStore, MemoryStorage, RedisKVStore, StorageEvent


class TestMemoryStorage:
    """Tests for tabs sharing one MemoryStorage."""

    @pytest.fixture
    def storage(self):
        return MemoryStorage()

    def test_tabs_implement_protocol(self, storage):
        assert isinstance(storage.tab("a"), KVStore)

    @pytest.mark.asyncio
    async def test_tabs_share_values(self, storage):
        tab_a, tab_b = storage.tab("a"), storage.tab("b")
        assert await tab_a.set("twitter_username_u1", "acme") is True
        assert await tab_b.get("twitter_username_u1") == "acme"

    @pytest.mark.asyncio
    async def test_events_reach_other_tabs_only(self, storage):
        tab_a, tab_b = storage.tab("a"), storage.tab("b")
        seen_a, seen_b = [], []
        tab_a.subscribe(seen_a.append)
        tab_b.subscribe(seen_b.append)

        await tab_a.set("k", "v1")

        assert seen_a == []
        assert seen_b == [StorageEvent(key="k", old_value=None, new_value="v1", origin="a")]

    @pytest.mark.asyncio
    async def test_unchanged_value_emits_nothing(self, storage):
        tab_a, tab_b = storage.tab("a"), storage.tab("b")
        await tab_a.set("k", "v1")
        seen = []
        tab_b.subscribe(seen.append)

        await tab_a.set("k", "v1")
        assert seen == []

    @pytest.mark.asyncio
    async def test_delete_emits_removal(self, storage):
        tab_a, tab_b = storage.tab("a"), storage.tab("b")
        await tab_a.set("k", "v1")
        seen = []
        tab_b.subscribe(seen.append)

        assert await tab_a.delete("k") is True
        assert await tab_b.get("k") is None
        assert seen == [StorageEvent(key="k", old_value="v1", new_value=None, origin="a")]
        assert storage.keys() == []

    @pytest.mark.asyncio
    async def test_unsubscribe(self, storage):
        tab_a, tab_b = storage.tab("a"), storage.tab("b")
        seen = []
        unsubscribe = tab_b.subscribe(seen.append)
        unsubscribe()
        unsubscribe()

        await tab_a.set("k", "v1")
        assert seen == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_writes(self, storage):
        tab_a, tab_b, tab_c = storage.tab("a"), storage.tab("b"), storage.tab("c")
        tab_b.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        seen = []
        tab_c.subscribe(seen.append)

        assert await tab_a.set("k", "v1") is True
        assert len(seen) == 1

    def test_default_store_gets_own_storage_and_origin(self):
        first, second = MemoryKVStore(), MemoryKVStore()
        assert first.storage is not second.storage
        assert first.origin != second.origin


class FakePubSub:
    """Minimal pub/sub replaying a fixed list of messages."""

    def __init__(self, messages):
        self.messages = messages
        self.channels = []
        self.closed = False

    async def subscribe(self, channel):
        self.channels.append(channel)

    async def listen(self):
        for message in self.messages:
            yield message

    async def aclose(self):
        self.closed = True


class TestRedisKVStore:
    """Tests for RedisKVStore against a mocked client."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.get = AsyncMock(return_value=None)
        client.set = AsyncMock(return_value=None)
        client.getdel = AsyncMock(return_value=None)
        client.publish = AsyncMock(return_value=1)
        client.aclose = AsyncMock()
        return client

    @pytest.fixture
    def store(self, client):
        return RedisKVStore(client, prefix="ag:", channel="ag:events", origin="tab-a")

    @pytest.mark.asyncio
    async def test_get_decodes_prefixed_key(self, store, client):
        client.get.return_value = b"acme"
        assert await store.get("twitter_username_u1") == "acme"
        client.get.assert_awaited_once_with("ag:twitter_username_u1")

    @pytest.mark.asyncio
    async def test_set_publishes_change(self, store, client):
        client.set.return_value = b"old"

        assert await store.set("k", "new") is True

        client.set.assert_awaited_once_with("ag:k", "new", get=True)
        channel, payload = client.publish.call_args[0]
        assert channel == "ag:events"
        assert orjson.loads(payload) == {
            "key": "k",
            "old_value": "old",
            "new_value": "new",
            "origin": "tab-a",
        }

    @pytest.mark.asyncio
    async def test_set_unchanged_value_is_silent(self, store, client):
        client.set.return_value = b"same"
        assert await store.set("k", "same") is True
        client.publish.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_publishes_only_existing(self, store, client):
        assert await store.delete("k") is True
        client.publish.assert_not_called()

        client.getdel.return_value = b"v"
        assert await store.delete("k") is True
        payload = orjson.loads(client.publish.call_args[0][1])
        assert payload["new_value"] is None

    @pytest.mark.asyncio
    async def test_redis_errors_degrade(self, store, client):
        client.get.side_effect = redis.ConnectionError("down")
        client.set.side_effect = redis.ConnectionError("down")
        client.getdel.side_effect = redis.ConnectionError("down")

        assert await store.get("k") is None
        assert await store.set("k", "v") is False
        assert await store.delete("k") is False

    @pytest.mark.asyncio
    async def test_subscribe_dispatches_channel_messages(self, store, client):
        pubsub = FakePubSub([
            {"type": "subscribe", "data": 1},
            {"type": "message", "data": orjson.dumps({
                "key": "twitter_processing_countdown",
                "old_value": None,
                "new_value": "123",
                "origin": "tab-b",
            })},
            {"type": "message", "data": b"not json"},
            {"type": "message", "data": orjson.dumps({"origin": "tab-b"})},
        ])
        client.pubsub = MagicMock(return_value=pubsub)
        seen = []

        store.subscribe(seen.append)
        await store._listen_task

        assert pubsub.channels == ["ag:events"]
        assert pubsub.closed
        assert seen == [
            StorageEvent("twitter_processing_countdown", None, "123", "tab-b"),
        ]

    @pytest.mark.asyncio
    async def test_close(self, store, client):
        await store.close()
        client.aclose.assert_awaited_once()
