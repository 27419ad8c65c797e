"""Fallback store implementations: memory, JSON file and Redis."""

import json

import pytest

from autocontrol.infrastructure.storage.file_store import FileFallbackStore
from autocontrol.infrastructure.storage.memory_store import InMemoryFallbackStore
from autocontrol.infrastructure.storage.redis_store import RedisFallbackStore


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)

    async def aclose(self):
        self.closed = True


@pytest.mark.asyncio
async def test_memory_store_returns_copies():
    store = InMemoryFallbackStore({"users": [{"id": "u-1"}]})

    users = await store.get_json("users")
    users.append({"id": "u-2"})

    assert await store.get_json("users") == [{"id": "u-1"}]
    assert await store.get_json("missing") is None
    await store.delete("users")
    assert store.keys() == []


@pytest.mark.asyncio
async def test_file_store_survives_new_instance(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = FileFallbackStore(path)

    await store.set_json("token", "tok-1")
    await store.set_json("incidents", [{"id": "i-1", "status": "Open"}])
    await store.delete("token")

    reopened = FileFallbackStore(path)
    assert await reopened.get_json("incidents") == [{"id": "i-1", "status": "Open"}]
    assert await reopened.get_json("token") is None
    assert json.loads(path.read_text(encoding="utf-8")) == {"incidents": [{"id": "i-1", "status": "Open"}]}
    assert not path.with_suffix(".json.tmp").exists()


@pytest.mark.asyncio
async def test_file_store_missing_or_corrupt_file_reads_empty(tmp_path):
    path = tmp_path / "store.json"
    store = FileFallbackStore(path)
    assert await store.get_json("users") is None

    path.write_text("{not json", encoding="utf-8")
    assert await store.get_json("users") is None

    await store.set_json("users", [])
    assert await store.get_json("users") == []


@pytest.mark.asyncio
async def test_redis_store_prefixes_keys():
    client = FakeRedis()
    store = RedisFallbackStore(client=client, prefix="autocontrol")

    await store.set_json("users", [{"id": "u-1"}])

    assert json.loads(client.data["autocontrol:users"]) == [{"id": "u-1"}]
    assert await store.get_json("users") == [{"id": "u-1"}]
    assert await store.get_json("costings") is None

    await store.delete("users")
    assert client.data == {}
    await store.aclose()
    assert client.closed is True


@pytest.mark.asyncio
async def test_redis_store_without_prefix():
    client = FakeRedis()
    store = RedisFallbackStore(client=client, prefix="")

    await store.set_json("token", "tok-1")

    assert client.data == {"token": json.dumps("tok-1")}
