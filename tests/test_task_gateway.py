# tests/test_task_gateway.py

from __future__ import annotations

from datetime import timedelta

import pytest

from tasksync.core.errors import SyncError, WriteError
from tasksync.session.context import Identity, SessionContext
from tasksync.tasks.task_cache import TaskCache
from tasksync.tasks.task_gateway import MutationGateway
from tasksync.tasks.task_models import TaskStatus, utc_now

from .fakes import FakeDocumentStore, FakeNotifier, make_record


@pytest.fixture()
def signed_in(session: SessionContext, u1: Identity, cache: TaskCache) -> SessionContext:
    session.set_identity(u1)
    cache.subscribe(u1.uid)
    return session


def test_single_task_visible_by_filter(
    signed_in: SessionContext, gateway: MutationGateway, store: FakeDocumentStore
) -> None:
    store.last_watch.deliver(
        [
            {
                "id": "t1",
                "name": "Buy milk",
                "status": "pending",
                "deadline": "2099-01-01",
                "owner_id": "u1",
            }
        ]
    )

    everything = gateway.get_filtered_searched("all", "")
    assert [t.id for t in everything] == ["t1"]
    assert everything[0].name == "Buy milk"
    assert gateway.get_filtered_searched("completed", "") == []


@pytest.mark.asyncio
async def test_add_task_stays_loading_until_delivery(
    signed_in: SessionContext,
    gateway: MutationGateway,
    store: FakeDocumentStore,
    notifier: FakeNotifier,
) -> None:
    store.last_watch.deliver([])

    result = await gateway.add_task({"name": "Ship report", "deadline": "2099-06-01"})

    assert result.ok
    assert notifier.successes == ["Task added successfully!"]
    assert gateway.is_loading() is True
    assert gateway.get_tasks() == []

    store.push("u1")
    assert gateway.is_loading() is False
    assert [t.name for t in gateway.get_tasks()] == ["Ship report"]


@pytest.mark.asyncio
async def test_add_task_failure_clears_loading(
    signed_in: SessionContext,
    gateway: MutationGateway,
    store: FakeDocumentStore,
    notifier: FakeNotifier,
) -> None:
    store.last_watch.deliver([])
    store.fail_next = ConnectionError("offline")

    result = await gateway.add_task({"name": "Ship report", "deadline": "2099-06-01"})

    assert not result.ok
    assert isinstance(result.error, WriteError)
    assert notifier.failures and notifier.failures[0][0] == "Failed to add task"
    assert gateway.is_loading() is False
    assert gateway.get_tasks() == []


@pytest.mark.asyncio
async def test_add_task_without_identity_fails(
    gateway: MutationGateway, store: FakeDocumentStore, notifier: FakeNotifier
) -> None:
    result = await gateway.add_task({"name": "Ship report", "deadline": "2099-06-01"})
    assert not result.ok
    assert isinstance(result.error, WriteError)
    assert not any(name == "insert" for name, _ in store.calls)
    assert len(notifier.failures) == 1


@pytest.mark.asyncio
async def test_unexpected_error_still_releases_loading(
    signed_in: SessionContext,
    gateway: MutationGateway,
    cache: TaskCache,
    store: FakeDocumentStore,
    notifier: FakeNotifier,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    store.last_watch.deliver([])

    async def boom(task_id, fields):
        raise RuntimeError("bug")

    monkeypatch.setattr(cache, "update", boom)
    result = await gateway.edit_task("t1", {"name": "x"})

    assert not result.ok
    assert isinstance(result.error, WriteError)
    assert isinstance(result.error.__cause__, RuntimeError)
    assert gateway.is_loading() is False
    assert len(notifier.failures) == 1


@pytest.mark.asyncio
async def test_toggle_and_remove_go_through_store(
    signed_in: SessionContext,
    gateway: MutationGateway,
    store: FakeDocumentStore,
    notifier: FakeNotifier,
) -> None:
    store.docs["t1"] = make_record("t1")
    store.push("u1")

    result = await gateway.toggle_status("t1", TaskStatus.PENDING)
    assert result.ok and result.value is TaskStatus.COMPLETED
    store.push("u1")
    assert gateway.get_filtered_searched("completed", "")[0].id == "t1"
    assert gateway.counts().completed == 1

    result = await gateway.remove_task("t1")
    assert result.ok
    store.push("u1")
    assert gateway.get_tasks() == []
    assert notifier.successes == ["Task updated successfully!", "Task deleted successfully!"]


@pytest.mark.asyncio
async def test_add_sample_task(
    signed_in: SessionContext, gateway: MutationGateway, store: FakeDocumentStore
) -> None:
    result = await gateway.add_sample_task()
    assert result.ok

    _, record = next(c for c in store.calls if c[0] == "insert")
    assert record["name"] == "Sample Task"
    assert record["deadline"] == (utc_now() + timedelta(days=7)).date().isoformat()


def test_sync_errors_reach_notifier(
    signed_in: SessionContext, store: FakeDocumentStore, notifier: FakeNotifier, gateway: MutationGateway
) -> None:
    store.last_watch.fail(ConnectionError("dropped"))
    assert len(notifier.failures) == 1
    assert isinstance(notifier.failures[0][1], SyncError)


def test_reads_use_snapshot_filter_by_default(
    signed_in: SessionContext, gateway: MutationGateway, cache: TaskCache, store: FakeDocumentStore
) -> None:
    store.last_watch.deliver(
        [make_record("a", name="Buy milk"), make_record("b", name="Walk dog", status="completed")]
    )
    cache.set_filter("completed")
    assert [t.id for t in gateway.get_filtered_searched()] == ["b"]

    cache.set_filter("all")
    cache.set_search_term("milk")
    assert [t.id for t in gateway.get_filtered_searched()] == ["a"]
