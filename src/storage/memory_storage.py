# src/storage/memory_storage.py - v1
"""In-process storage backend (STORAGE_BACKEND=memory).

Nothing survives the process. Used for tests and one-shot CLI runs.
"""

from __future__ import annotations

from assessflow.storage.base_storage import (
    BaseKeyValueStorage,
    check_quota,
    entry_size,
)


class MemoryStorage(BaseKeyValueStorage):
    """Dict-backed storage with optional quota."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota_bytes = quota_bytes

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        previous = self._data.get(key)
        previous_size = entry_size(key, previous) if previous is not None else 0
        check_quota(
            key, value, await self.usage_bytes(), previous_size, self._quota_bytes
        )
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> list[str]:
        return list(self._data)

    async def usage_bytes(self) -> int:
        return sum(entry_size(k, v) for k, v in self._data.items())
