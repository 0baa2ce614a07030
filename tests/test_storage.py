"""Tests for the document store adapters."""

import asyncio
import json
import os

import pytest

from jobqueue.config import Settings
from jobqueue.storage.factory import create_store
from jobqueue.storage.file_store import FileStore
from jobqueue.storage.memory import MemoryStore


@pytest.fixture(params=["memory", "file"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return FileStore(str(tmp_path / "data"))


class TestDocumentStoreContract:
    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self, any_store):
        stored = await any_store.create("jobs", {"name": "a"})

        assert stored["id"]
        assert stored["created_at"]
        assert stored["updated_at"]

    @pytest.mark.asyncio
    async def test_create_keeps_given_id_and_created_at(self, any_store):
        stored = await any_store.create(
            "jobs", {"id": "job-1", "created_at": "2026-01-01T00:00:00+00:00"}
        )

        assert stored["id"] == "job-1"
        assert stored["created_at"] == "2026-01-01T00:00:00+00:00"

    @pytest.mark.asyncio
    async def test_find_by_id(self, any_store):
        await any_store.create("jobs", {"id": "job-1", "name": "a"})

        assert (await any_store.find_by_id("jobs", "job-1"))["name"] == "a"
        assert await any_store.find_by_id("jobs", "missing") is None

    @pytest.mark.asyncio
    async def test_find_filters_by_equality(self, any_store):
        await any_store.create("jobs", {"id": "a", "status": "pending", "type": "x"})
        await any_store.create("jobs", {"id": "b", "status": "running", "type": "x"})
        await any_store.create("jobs", {"id": "c", "status": "pending", "type": "y"})

        pending = await any_store.find("jobs", {"status": "pending"})
        pending_x = await any_store.find("jobs", {"status": "pending", "type": "x"})
        everything = await any_store.find("jobs")

        assert sorted(d["id"] for d in pending) == ["a", "c"]
        assert [d["id"] for d in pending_x] == ["a"]
        assert len(everything) == 3

    @pytest.mark.asyncio
    async def test_collections_are_isolated(self, any_store):
        await any_store.create("jobs", {"id": "a"})
        await any_store.create("other", {"id": "b"})

        assert [d["id"] for d in await any_store.find("jobs")] == ["a"]

    @pytest.mark.asyncio
    async def test_update_merges(self, any_store):
        await any_store.create("jobs", {"id": "a", "status": "pending", "name": "n"})

        updated = await any_store.update_by_id("jobs", "a", {"status": "running"})

        assert updated["status"] == "running"
        assert updated["name"] == "n"
        assert (await any_store.find_by_id("jobs", "a"))["status"] == "running"

    @pytest.mark.asyncio
    async def test_update_missing_returns_none(self, any_store):
        assert await any_store.update_by_id("jobs", "nope", {"status": "x"}) is None
        assert await any_store.find_by_id("jobs", "nope") is None

    @pytest.mark.asyncio
    async def test_delete_by_id(self, any_store):
        await any_store.create("jobs", {"id": "a"})

        assert await any_store.delete_by_id("jobs", "a") is True
        assert await any_store.delete_by_id("jobs", "a") is False
        assert await any_store.find_by_id("jobs", "a") is None

    @pytest.mark.asyncio
    async def test_delete_all(self, any_store):
        for i in range(3):
            await any_store.create("jobs", {"id": f"j{i}"})

        assert await any_store.delete_all("jobs") == 3
        assert await any_store.find("jobs") == []

    @pytest.mark.asyncio
    async def test_returned_documents_are_copies(self, any_store):
        await any_store.create("jobs", {"id": "a", "payload": {"k": 1}})

        doc = await any_store.find_by_id("jobs", "a")
        doc["payload"]["k"] = 99

        assert (await any_store.find_by_id("jobs", "a"))["payload"] == {"k": 1}


class TestFileStore:
    @pytest.mark.asyncio
    async def test_layout_is_one_json_file_per_document(self, tmp_path):
        store = FileStore(str(tmp_path))
        await store.create("jobs", {"id": "abc", "name": "n"})

        path = tmp_path / "jobs" / "abc.json"
        assert path.exists()
        assert json.loads(path.read_text())["name"] == "n"

    @pytest.mark.asyncio
    async def test_survives_reopen(self, tmp_path):
        await FileStore(str(tmp_path)).create("jobs", {"id": "abc"})

        reopened = FileStore(str(tmp_path))

        assert (await reopened.find_by_id("jobs", "abc"))["id"] == "abc"

    @pytest.mark.asyncio
    async def test_unreadable_documents_are_skipped(self, tmp_path):
        store = FileStore(str(tmp_path))
        await store.create("jobs", {"id": "good"})
        (tmp_path / "jobs" / "bad.json").write_text("{not json")

        docs = await store.find("jobs")

        assert [d["id"] for d in docs] == ["good"]

    @pytest.mark.asyncio
    async def test_rejects_path_traversal(self, tmp_path):
        store = FileStore(str(tmp_path))

        with pytest.raises(ValueError):
            await store.find_by_id("jobs", "../escape")
        with pytest.raises(ValueError):
            await store.create("../jobs", {"id": "a"})

    @pytest.mark.asyncio
    async def test_no_temp_files_left_behind(self, tmp_path):
        store = FileStore(str(tmp_path))
        await store.create("jobs", {"id": "a"})
        await store.update_by_id("jobs", "a", {"status": "done"})

        assert os.listdir(tmp_path / "jobs") == ["a.json"]

    @pytest.mark.asyncio
    async def test_concurrent_updates_keep_valid_json(self, tmp_path):
        store = FileStore(str(tmp_path))
        await store.create("jobs", {"id": "a", "n": 0})

        await asyncio.gather(
            *(store.update_by_id("jobs", "a", {"n": i}) for i in range(20))
        )

        doc = await store.find_by_id("jobs", "a")
        assert doc["n"] in range(20)


class TestCreateStore:
    def test_memory(self):
        assert isinstance(create_store(Settings(storage_type="memory")), MemoryStore)

    def test_file(self, tmp_path):
        store = create_store(Settings(storage_type="FILE", storage_path=str(tmp_path)))

        assert isinstance(store, FileStore)
        assert store.base_dir == str(tmp_path)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_store(Settings(storage_type="mongodb"))
