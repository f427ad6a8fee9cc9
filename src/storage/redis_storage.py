# src/storage/redis_storage.py - v1
"""Redis-based storage backend (STORAGE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Keys are namespaced under a prefix and tracked in an index set.
"""

from __future__ import annotations

import logging

from assessflow.storage.base_storage import (
    BaseKeyValueStorage,
    check_quota,
    entry_size,
)

logger = logging.getLogger(__name__)


class RedisStorage(BaseKeyValueStorage):
    """Redis-backed key-value storage."""

    def __init__(
        self,
        redis_url: str,
        prefix: str = "assessflow",
        quota_bytes: int | None = None,
    ) -> None:
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._prefix = f"{prefix}:kv:"
        self._index_key = f"{prefix}:kv:__index__"
        self._quota_bytes = quota_bytes

    async def get(self, key: str) -> str | None:
        return self._client.get(f"{self._prefix}{key}")

    async def set(self, key: str, value: str) -> None:
        previous = await self.get(key)
        previous_size = entry_size(key, previous) if previous is not None else 0
        check_quota(
            key, value, await self.usage_bytes(), previous_size, self._quota_bytes
        )
        self._client.set(f"{self._prefix}{key}", value)
        self._client.sadd(self._index_key, key)

    async def remove(self, key: str) -> None:
        self._client.delete(f"{self._prefix}{key}")
        self._client.srem(self._index_key, key)

    async def keys(self) -> list[str]:
        return sorted(self._client.smembers(self._index_key))

    async def usage_bytes(self) -> int:
        total = 0
        for key in await self.keys():
            value = await self.get(key)
            if value is not None:
                total += entry_size(key, value)
        return total

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
