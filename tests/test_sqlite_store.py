# tests/test_sqlite_store.py

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from tasksync.storage.sqlite_store import SqliteDocumentStore
from tasksync.tasks.task_cache import TaskCache


async def _settle() -> None:
    for _ in range(3):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_live_query_delivers_full_owner_snapshots(tmp_path: Path) -> None:
    store = SqliteDocumentStore(tmp_path / "docs.sqlite3")
    seen: list[list[dict]] = []
    errors: list[Exception] = []

    stop = store.query("tasks", "u1").listen(seen.append, errors.append)
    await _settle()
    assert seen == [[]]

    doc_id = await store.insert("tasks", {"owner_id": "u1", "name": "Buy milk"})
    await store.insert("tasks", {"owner_id": "u2", "name": "Not mine"})
    await _settle()

    assert len(seen) == 2
    assert seen[-1] == [{"id": doc_id, "owner_id": "u1", "name": "Buy milk"}]

    await store.update("tasks", doc_id, {"name": "Buy oat milk", "owner_id": "u2"})
    await _settle()
    assert seen[-1][0]["name"] == "Buy oat milk"
    assert seen[-1][0]["owner_id"] == "u1"

    await store.delete("tasks", doc_id)
    await _settle()
    assert seen[-1] == []

    stop()
    await store.insert("tasks", {"owner_id": "u1", "name": "After stop"})
    await _settle()
    assert len(seen) == 4
    assert errors == []
    assert store.count_documents("tasks") == 2


@pytest.mark.asyncio
async def test_update_missing_document_raises(tmp_path: Path) -> None:
    store = SqliteDocumentStore(tmp_path / "docs.sqlite3")
    with pytest.raises(KeyError):
        await store.update("tasks", "nope", {"name": "x"})

    # Deleting an unknown id is a no-op.
    await store.delete("tasks", "nope")


@pytest.mark.asyncio
async def test_insert_requires_owner(tmp_path: Path) -> None:
    store = SqliteDocumentStore(tmp_path / "docs.sqlite3")
    with pytest.raises(ValueError):
        await store.insert("tasks", {"name": "orphan"})


@pytest.mark.asyncio
async def test_cache_round_trip_over_sqlite(tmp_path: Path) -> None:
    store = SqliteDocumentStore(tmp_path / "docs.sqlite3")
    cache = TaskCache(store)

    sub = cache.subscribe("u1")
    assert cache.is_loading() is True
    await _settle()
    assert cache.is_loading() is False

    task_id = await cache.create({"name": "Ship report", "deadline": "2099-06-01"}, "u1")
    assert cache.find(task_id) is None
    await _settle()
    assert cache.find(task_id).name == "Ship report"
    assert cache.is_loading() is False

    await cache.toggle_status(task_id, "pending")
    await _settle()
    assert cache.find(task_id).status.value == "completed"

    sub.dispose()
    await cache.remove(task_id)
    await _settle()
    # Disposed watch: the snapshot keeps its last delivered value.
    assert cache.find(task_id) is not None
