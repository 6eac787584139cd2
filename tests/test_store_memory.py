"""Tests for the in-memory store provider."""

import asyncio

import pytest

from recordvault.errors import ConflictError
from recordvault.interfaces import Record


class TestInMemoryStore:

    async def test_put_then_get(self, store):
        record = Record(id="r1", payload={"name": "a"})
        result = await store.put(0, record)
        assert result.created

        fetched = await store.get(0, "r1")
        assert fetched.payload == {"name": "a"}

    async def test_get_missing(self, store):
        assert await store.get(0, "nope") is None
        assert store.shard_sizes() == {}

    async def test_shards_are_separate(self, store):
        await store.put(0, Record(id="r1", payload={"name": "a"}))
        assert await store.get(1, "r1") is None

    async def test_identical_put_is_not_created(self, store):
        await store.put(0, Record(id="r1", payload={"name": "a"}))
        # A retry carries a different timestamp but the same content
        result = await store.put(0, Record(id="r1", payload={"name": "a"}))
        assert not result.created
        assert await store.count() == 1

    async def test_different_content_conflicts(self, store):
        await store.put(0, Record(id="r1", payload={"name": "a"}))
        with pytest.raises(ConflictError) as exc_info:
            await store.put(0, Record(id="r1", payload={"name": "b"}))
        assert exc_info.value.record_id == "r1"
        assert (await store.get(0, "r1")).payload == {"name": "a"}

    async def test_schema_version_is_content(self, store):
        await store.put(0, Record(id="r1", payload={"name": "a"}, schema_version=1))
        with pytest.raises(ConflictError):
            await store.put(0, Record(id="r1", payload={"name": "a"}, schema_version=2))

    async def test_exists(self, store):
        await store.put(2, Record(id="r1", payload={}))
        assert await store.exists(2, "r1")
        assert not await store.exists(2, "r2")

    async def test_concurrent_puts_same_id_create_once(self, store):
        results = await asyncio.gather(*(
            store.put(0, Record(id="r1", payload={"name": "a"})) for _ in range(10)
        ))
        assert sum(1 for r in results if r.created) == 1

    async def test_count_and_shard_sizes(self, store):
        for i in range(6):
            await store.put(i % 3, Record(id=f"r{i}", payload={}))
        assert await store.count() == 6
        assert store.shard_sizes() == {0: 2, 1: 2, 2: 2}

    async def test_lifecycle(self, store):
        async with store:
            assert store.is_initialized
            assert (await store.health_check()).ok
        assert not store.is_initialized
