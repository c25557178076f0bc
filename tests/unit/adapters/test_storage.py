"""Tests for the key-value store adapters."""

from __future__ import annotations

from unittest.mock import AsyncMock

import orjson
import pytest
import redis.asyncio as redis

from fieldsales_ai.adapters.outbound.storage import (
    MemoryKeyValueStore,
    RedisKeyValueStore,
    build_store,
)
from fieldsales_ai.config import get_settings


# ═══════════════════════════════════════════════════════════════
#  In-memory store
# ═══════════════════════════════════════════════════════════════
class TestMemoryKeyValueStore:
    @pytest.mark.asyncio
    async def test_set_get_delete(self) -> None:
        store = MemoryKeyValueStore()
        await store.set("k", {"a": [1, 2]})
        assert await store.get("k") == {"a": [1, 2]}
        assert store.keys() == ["k"]

        await store.delete("k")
        assert await store.get("k") is None
        await store.delete("k")  # idempotent

    @pytest.mark.asyncio
    async def test_values_are_isolated_from_callers(self) -> None:
        store = MemoryKeyValueStore()
        doc = {"costs": [1]}
        await store.set("k", doc)
        doc["costs"].append(2)

        fetched = await store.get("k")
        fetched["costs"].append(3)

        assert await store.get("k") == {"costs": [1]}

    @pytest.mark.asyncio
    async def test_health_check(self) -> None:
        assert await MemoryKeyValueStore().health_check() is True


# ═══════════════════════════════════════════════════════════════
#  Redis store (mocked client)
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def redis_client() -> AsyncMock:
    return AsyncMock()


class TestRedisKeyValueStore:
    @pytest.mark.asyncio
    async def test_set_serialises_with_orjson(self, redis_client: AsyncMock) -> None:
        store = RedisKeyValueStore("redis://unused", client=redis_client)
        await store.set("fieldsales:cost-ledger", {"costs": [], "budget": {"daily_limit": 1.0}})
        redis_client.set.assert_awaited_once_with(
            "fieldsales:cost-ledger",
            orjson.dumps({"costs": [], "budget": {"daily_limit": 1.0}}),
        )

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, redis_client: AsyncMock) -> None:
        redis_client.get.return_value = b'{"groq": {"is_healthy": true}}'
        store = RedisKeyValueStore("redis://unused", client=redis_client)
        assert await store.get("k") == {"groq": {"is_healthy": True}}

    @pytest.mark.asyncio
    async def test_missing_key(self, redis_client: AsyncMock) -> None:
        redis_client.get.return_value = None
        store = RedisKeyValueStore("redis://unused", client=redis_client)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_corrupt_value_returns_none(self, redis_client: AsyncMock) -> None:
        redis_client.get.return_value = b"not json"
        store = RedisKeyValueStore("redis://unused", client=redis_client)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_transient_connection_error_is_retried(self, redis_client: AsyncMock) -> None:
        redis_client.get.side_effect = [redis.ConnectionError("reset"), b"[1]"]
        store = RedisKeyValueStore("redis://unused", client=redis_client)
        assert await store.get("k") == [1]
        assert redis_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_is_logged_not_raised(self, redis_client: AsyncMock) -> None:
        redis_client.set.side_effect = redis.ConnectionError("down")
        store = RedisKeyValueStore("redis://unused", client=redis_client)
        await store.set("k", {"a": 1})
        assert redis_client.set.await_count == 3

    @pytest.mark.asyncio
    async def test_health_check(self, redis_client: AsyncMock) -> None:
        redis_client.ping.return_value = True
        store = RedisKeyValueStore("redis://unused", client=redis_client)
        assert await store.health_check() is True

        redis_client.ping.side_effect = redis.ConnectionError("down")
        assert await store.health_check() is False

    @pytest.mark.asyncio
    async def test_close_closes_client(self, redis_client: AsyncMock) -> None:
        store = RedisKeyValueStore("redis://unused", client=redis_client)
        await store.close()
        redis_client.aclose.assert_awaited_once()


class TestBuildStore:
    def test_memory_backend_by_default(self) -> None:
        assert isinstance(build_store(get_settings(storage_backend="memory")), MemoryKeyValueStore)

    def test_redis_backend(self) -> None:
        store = build_store(get_settings(storage_backend="redis", redis_url="redis://localhost:6399/1"))
        assert isinstance(store, RedisKeyValueStore)
