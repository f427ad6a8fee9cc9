# src/storage/storage_factory.py - v1
"""Factory for durable storage backend instantiation."""

from __future__ import annotations

from assessflow.config.settings import Settings
from assessflow.storage.base_storage import BaseKeyValueStorage


def create_storage(settings: Settings | None = None) -> BaseKeyValueStorage:
    """Instantiate the configured storage backend.

    Args:
        settings: Application settings. Defaults to an in-memory backend.

    Returns:
        Configured BaseKeyValueStorage implementation.
    """
    if settings is None:
        from assessflow.storage.memory_storage import MemoryStorage
        return MemoryStorage()

    backend = settings.storage_backend
    quota = settings.storage_quota_bytes

    if backend == "memory":
        from assessflow.storage.memory_storage import MemoryStorage
        return MemoryStorage(quota_bytes=quota)

    if backend == "json":
        from assessflow.storage.file_storage import FileStorage
        return FileStorage(root=settings.storage_root, quota_bytes=quota)

    if backend == "sqlite":
        from assessflow.storage.sqlite_storage import SqliteStorage
        db_path = settings.storage_root.expanduser() / "assessflow_state.db"
        return SqliteStorage(db_path=db_path, quota_bytes=quota)

    if backend == "redis":
        from assessflow.storage.redis_storage import RedisStorage
        if not settings.storage_redis_url:
            raise ValueError(
                "STORAGE_REDIS_URL must be set when STORAGE_BACKEND=redis"
            )
        return RedisStorage(
            redis_url=settings.storage_redis_url,
            prefix=settings.storage_key_prefix,
            quota_bytes=quota,
        )

    raise ValueError(f"Unsupported storage backend: {backend!r}")
