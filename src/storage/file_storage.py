# src/storage/file_storage.py - v1
"""File-based storage backend (default STORAGE_BACKEND=json).

Stores each key as an individual file under STORAGE_ROOT. Writes go to a
temporary sibling first and are renamed into place.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from assessflow.core.errors import StorageCorruptionError
from assessflow.storage.base_storage import (
    BaseKeyValueStorage,
    check_quota,
)

logger = logging.getLogger(__name__)

_SUFFIX = ".json"


class FileStorage(BaseKeyValueStorage):
    """One file per key under a root directory."""

    def __init__(self, root: Path | str, quota_bytes: int | None = None) -> None:
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)
        self._quota_bytes = quota_bytes

    async def get(self, key: str) -> str | None:
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise StorageCorruptionError(key, f"not valid UTF-8: {e}") from e

    async def set(self, key: str, value: str) -> None:
        path = self._entry_path(key)
        previous_size = _file_entry_size(key, path) if path.exists() else 0
        check_quota(
            key, value, await self.usage_bytes(), previous_size, self._quota_bytes
        )
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(value, encoding="utf-8")
        os.replace(tmp_path, path)

    async def remove(self, key: str) -> None:
        path = self._entry_path(key)
        if path.exists():
            path.unlink()

    async def keys(self) -> list[str]:
        return [p.name[: -len(_SUFFIX)] for p in self._root.glob(f"*{_SUFFIX}")]

    async def usage_bytes(self) -> int:
        total = 0
        for path in self._root.glob(f"*{_SUFFIX}"):
            total += _file_entry_size(path.name[: -len(_SUFFIX)], path)
        return total

    def _entry_path(self, key: str) -> Path:
        safe_key = key.replace("/", "_").replace("\\", "_")
        return self._root / f"{safe_key}{_SUFFIX}"


def _file_entry_size(key: str, path: Path) -> int:
    return len(key.encode("utf-8")) + path.stat().st_size
