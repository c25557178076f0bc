"""Key-value store adapters implementing KeyValueStorePort.

Values are JSON documents (serialised with orjson).  The in-memory store is
used in development and tests; Redis persists snapshots across restarts.
"""

from __future__ import annotations

import copy
from typing import Any

import orjson
import redis.asyncio as redis
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fieldsales_ai.config import Settings, StorageBackend
from fieldsales_ai.ports.outbound import KeyValueStorePort

logger = structlog.get_logger(__name__)


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        "redis_retrying",
        operation=state.fn.__name__ if state.fn else None,
        attempt=state.attempt_number,
        error=str(exc),
    )


# Shared retry policy for transient Redis connectivity failures
_redis_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type((redis.ConnectionError, redis.TimeoutError)),
    before_sleep=_log_retry,
    reraise=True,
)


class MemoryKeyValueStore(KeyValueStorePort):
    """Process-local store.  Values are deep-copied so callers cannot mutate stored state."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        logger.info("store_initialized_memory")

    async def get(self, key: str) -> Any | None:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def health_check(self) -> bool:
        return True

    def keys(self) -> list[str]:
        return list(self._data)


class RedisKeyValueStore(KeyValueStorePort):
    """Async Redis store.  Errors are logged; the in-memory state stays authoritative."""

    def __init__(
        self,
        url: str,
        max_connections: int = 20,
        *,
        client: redis.Redis | None = None,
    ) -> None:
        if client is not None:
            self._pool = None
            self._client = client
        else:
            self._pool = redis.ConnectionPool.from_url(url, max_connections=max_connections)
            self._client = redis.Redis(connection_pool=self._pool)

    @_redis_retry
    async def _get_raw(self, key: str) -> bytes | None:
        return await self._client.get(key)

    @_redis_retry
    async def _set_raw(self, key: str, payload: bytes) -> None:
        await self._client.set(key, payload)

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._get_raw(key)
        except redis.RedisError as exc:
            logger.error("redis_get_error", key=key, error=str(exc))
            return None
        if raw is None:
            return None
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.error("redis_value_not_json", key=key)
            return None

    async def set(self, key: str, value: Any) -> None:
        try:
            await self._set_raw(key, orjson.dumps(value))
        except redis.RedisError as exc:
            logger.error("redis_set_error", key=key, error=str(exc))

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except redis.RedisError as exc:
            logger.error("redis_delete_error", key=key, error=str(exc))

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
        if self._pool is not None:
            await self._pool.aclose()


def build_store(settings: Settings) -> KeyValueStorePort:
    if settings.storage_backend == StorageBackend.REDIS:
        logger.info("store_initialized_redis", url=settings.redis_url)
        return RedisKeyValueStore(settings.redis_url, settings.redis_max_connections)
    return MemoryKeyValueStore()


__all__ = ["MemoryKeyValueStore", "RedisKeyValueStore", "build_store"]
