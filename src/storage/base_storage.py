# src/storage/base_storage.py - v1
"""Abstract durable key-value storage interface.

Values are opaque strings. ``set`` raises StorageQuotaError when the write
would push total usage past the configured quota; the previous value for
the key is left untouched in that case. ``get`` raises StorageCorruptionError
when the stored bytes cannot be decoded as text.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from assessflow.core.errors import StorageQuotaError


class BaseKeyValueStorage(ABC):
    """Unified interface for durable key-value backends."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """List stored keys."""

    @abstractmethod
    async def usage_bytes(self) -> int:
        """Total bytes currently used (keys plus values)."""


def entry_size(key: str, value: str) -> int:
    """Size accounted to one stored entry."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


def check_quota(
    key: str,
    value: str,
    current_usage: int,
    previous_size: int,
    quota_bytes: int | None,
) -> None:
    """Raise StorageQuotaError if replacing ``key`` would exceed the quota."""
    if quota_bytes is None:
        return
    new_size = entry_size(key, value)
    projected = current_usage - previous_size + new_size
    if projected > quota_bytes:
        raise StorageQuotaError(key=key, size=new_size, quota=quota_bytes)
