# tests/unit/storage/test_backends.py - v1
"""Tests for the memory, file and SQLite storage backends.

Every backend honours the same contract: opaque string values, upsert,
idempotent remove, and a quota that rejects a write without touching the
previous value.
"""

from __future__ import annotations

import pytest

from assessflow.core.errors import StorageCorruptionError, StorageQuotaError
from assessflow.storage.base_storage import check_quota, entry_size
from assessflow.storage.file_storage import FileStorage
from assessflow.storage.memory_storage import MemoryStorage
from assessflow.storage.sqlite_storage import SqliteStorage


@pytest.fixture(params=["memory", "file", "sqlite"])
def make_backend(request, tmp_path):
    created = []

    def _make(quota_bytes=None):
        if request.param == "memory":
            backend = MemoryStorage(quota_bytes=quota_bytes)
        elif request.param == "file":
            backend = FileStorage(root=tmp_path / f"state{len(created)}", quota_bytes=quota_bytes)
        else:
            backend = SqliteStorage(
                db_path=tmp_path / f"state{len(created)}.db", quota_bytes=quota_bytes
            )
        created.append(backend)
        return backend

    yield _make
    for backend in created:
        if isinstance(backend, SqliteStorage):
            backend.close()


class TestStorageContract:
    @pytest.mark.asyncio
    async def test_get_missing(self, make_backend):
        assert await make_backend().get("nope") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, make_backend):
        backend = make_backend()
        await backend.set("alpha", '{"a": 1}')
        assert await backend.get("alpha") == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_overwrite(self, make_backend):
        backend = make_backend()
        await backend.set("alpha", "one")
        await backend.set("alpha", "two")
        assert await backend.get("alpha") == "two"
        assert await backend.keys() == ["alpha"]

    @pytest.mark.asyncio
    async def test_remove_idempotent(self, make_backend):
        backend = make_backend()
        await backend.set("alpha", "one")
        await backend.remove("alpha")
        await backend.remove("alpha")
        assert await backend.get("alpha") is None
        assert await backend.keys() == []

    @pytest.mark.asyncio
    async def test_usage_bytes(self, make_backend):
        backend = make_backend()
        await backend.set("ab", "cde")
        await backend.set("f", "gh")
        assert await backend.usage_bytes() == 8

    @pytest.mark.asyncio
    async def test_usage_counts_utf8_bytes(self, make_backend):
        backend = make_backend()
        await backend.set("k", "é")
        assert await backend.usage_bytes() == 3

    @pytest.mark.asyncio
    async def test_quota_rejects_write(self, make_backend):
        backend = make_backend(quota_bytes=20)
        await backend.set("alpha", "x" * 10)
        with pytest.raises(StorageQuotaError):
            await backend.set("beta", "y" * 10)
        assert await backend.get("beta") is None
        assert await backend.get("alpha") == "x" * 10

    @pytest.mark.asyncio
    async def test_quota_counts_replaced_value_once(self, make_backend):
        backend = make_backend(quota_bytes=20)
        await backend.set("alpha", "x" * 14)
        await backend.set("alpha", "y" * 15)
        assert await backend.get("alpha") == "y" * 15

    @pytest.mark.asyncio
    async def test_failed_overwrite_keeps_previous(self, make_backend):
        backend = make_backend(quota_bytes=20)
        await backend.set("alpha", "keep me")
        with pytest.raises(StorageQuotaError):
            await backend.set("alpha", "z" * 30)
        assert await backend.get("alpha") == "keep me"


class TestFileStorage:
    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        await FileStorage(root=tmp_path).set("assessflow_currentCheckpoint", "{}")
        reopened = FileStorage(root=tmp_path)
        assert await reopened.get("assessflow_currentCheckpoint") == "{}"

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, tmp_path):
        backend = FileStorage(root=tmp_path)
        await backend.set("alpha", "one")
        assert [p.name for p in tmp_path.iterdir()] == ["alpha.json"]

    @pytest.mark.asyncio
    async def test_path_separators_are_neutralised(self, tmp_path):
        backend = FileStorage(root=tmp_path)
        await backend.set("a/b", "one")
        assert (tmp_path / "a_b.json").exists()

    @pytest.mark.asyncio
    async def test_undecodable_file_is_corruption(self, tmp_path):
        backend = FileStorage(root=tmp_path)
        (tmp_path / "alpha.json").write_bytes(b"\xff\xfe{garbage")
        with pytest.raises(StorageCorruptionError) as exc_info:
            await backend.get("alpha")
        assert exc_info.value.key == "alpha"

    @pytest.mark.asyncio
    async def test_undecodable_file_can_be_overwritten(self, tmp_path):
        backend = FileStorage(root=tmp_path, quota_bytes=1000)
        (tmp_path / "alpha.json").write_bytes(b"\xff\xfe{garbage")
        await backend.set("alpha", "fresh")
        assert await backend.get("alpha") == "fresh"


class TestSqliteStorage:
    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path):
        db_path = tmp_path / "state.db"
        first = SqliteStorage(db_path=db_path)
        await first.set("alpha", "one")
        first.close()
        second = SqliteStorage(db_path=db_path)
        try:
            assert await second.get("alpha") == "one"
        finally:
            second.close()


class TestQuotaHelpers:
    def test_entry_size(self):
        assert entry_size("ab", "cd") == 4

    def test_no_quota(self):
        check_quota("k", "v" * 10_000, 10**9, 0, None)

    def test_exceeds(self):
        with pytest.raises(StorageQuotaError) as exc_info:
            check_quota("k", "vvvv", current_usage=8, previous_size=0, quota_bytes=10)
        assert exc_info.value.quota == 10
        assert exc_info.value.size == 5
