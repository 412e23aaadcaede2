# src/tasksync/tasks/task_cache.py

from __future__ import annotations

"""
Task cache.

Owns the in-memory snapshot of one identity's tasks and keeps it in step
with the document store through a live, owner-scoped subscription.

Consistency contract:
- every mutation is write-through: it goes to the store and the local
  snapshot is NOT touched;
- the snapshot only changes when the subscription delivers, and each
  delivery replaces it wholesale;
- so a mutation becomes visible only after the subscription round-trip.

The cache does not remember which subscription is "current". Callers must
dispose the previous subscription before subscribing for another identity
(see session_sync.SessionSync).
"""

import contextlib
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..core.errors import SyncError, WriteError
from ..core.ports import DocumentRecord, DocumentStore, Unsubscribe
from .task_models import (
    CacheSnapshot,
    Task,
    TaskFilter,
    TaskStatus,
    encode_fields,
    utc_now,
)

logger = logging.getLogger(__name__)

ErrorListener = Callable[[Exception], None]


class Subscription:
    """
    Disposer for one live watch.

    dispose() is idempotent. Once disposed, deliveries still in flight from
    the old watch are ignored by the cache.
    """

    def __init__(
        self,
        identity_id: str,
        *,
        on_dispose: Callable[[Subscription], None] | None = None,
    ) -> None:
        self.identity_id = identity_id
        self._stop: Unsubscribe | None = None
        self._on_dispose = on_dispose
        self._disposed = False

    @classmethod
    def inert(cls) -> Subscription:
        sub = cls("")
        sub._disposed = True
        return sub

    @property
    def active(self) -> bool:
        return not self._disposed

    def _attach(self, stop: Unsubscribe) -> None:
        self._stop = stop

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True

        stop, self._stop = self._stop, None
        if stop is not None:
            try:
                stop()
            except Exception:
                logger.exception("Failed to stop live query for %s", self.identity_id)

        if self._on_dispose is not None:
            self._on_dispose(self)
        logger.debug("Subscription disposed identity=%s", self.identity_id)


@dataclass(slots=True, frozen=True)
class _Echo:
    # present=True: wait for the id with updated_at >= since; False: wait for the id to vanish.
    # An update (since set) also settles once the id is gone: a concurrent delete won.
    present: bool
    since: datetime | None = None

    def seen_in(self, by_id: dict[str, Task], task_id: str) -> bool:
        task = by_id.get(task_id)
        if not self.present:
            return task is None
        if task is None:
            return self.since is not None
        return self.since is None or task.updated_at >= self.since


class TaskCache:
    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str = "tasks",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._collection = collection
        self._clock = clock

        self._tasks: tuple[Task, ...] = ()
        self._filter = TaskFilter.ALL
        self._search_term: str | None = None

        self._live: set[Subscription] = set()
        self._awaiting_first: set[Subscription] = set()
        self._inflight = 0
        self._echoes: dict[str, _Echo] = {}

        self._error_listeners: list[ErrorListener] = []
        self.last_error: Exception | None = None

    # ---- read side ----

    def tasks(self) -> tuple[Task, ...]:
        return self._tasks

    def is_loading(self) -> bool:
        return bool(self._awaiting_first or self._inflight or self._echoes)

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(
            tasks=self._tasks,
            loading=self.is_loading(),
            filter=self._filter,
            search_term=self._search_term,
        )

    def find(self, task_id: str) -> Task | None:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def set_filter(self, value: TaskFilter | str) -> None:
        self._filter = TaskFilter(value)

    def set_search_term(self, term: str | None) -> None:
        term = (term or "").strip()
        self._search_term = term or None

    def clear(self) -> None:
        """Drop local state for the identity (the remote records are untouched)."""
        self._tasks = ()
        self._echoes.clear()
        self._search_term = None
        logger.debug("Task cache cleared")

    # ---- errors ----

    def add_error_listener(self, listener: ErrorListener) -> Callable[[], None]:
        self._error_listeners.append(listener)

        def _remove() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return _remove

    def _report(self, error: Exception) -> None:
        self.last_error = error
        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception:
                logger.exception("Error listener failed")

    # ---- subscription ----

    def subscribe(self, identity_id: str | None) -> Subscription:
        """
        Start a live watch over the identity's tasks.

        Called before authentication resolves (empty id) it does nothing and
        returns an inert handle.
        """
        if not identity_id:
            logger.debug("subscribe() without identity; returning inert handle")
            return Subscription.inert()

        sub = Subscription(identity_id, on_dispose=self._forget)
        self._live.add(sub)
        self._awaiting_first.add(sub)

        def on_snapshot(records: list[DocumentRecord]) -> None:
            if not sub.active:
                logger.debug("Ignoring late delivery for disposed watch identity=%s", identity_id)
                return
            self._apply_delivery(sub, records)

        def on_error(exc: Exception) -> None:
            if not sub.active:
                return
            self._awaiting_first.discard(sub)
            # A failed watch never delivers again, so acknowledged writes cannot echo.
            self._echoes.clear()
            logger.warning("Task subscription failed identity=%s: %r", identity_id, exc)
            err = SyncError("Failed to fetch tasks", identity_id=identity_id)
            err.__cause__ = exc
            self._report(err)

        try:
            stop = self._store.query(self._collection, identity_id).listen(on_snapshot, on_error)
        except Exception as exc:
            logger.warning("Could not start task subscription identity=%s: %r", identity_id, exc)
            sub.dispose()
            err = SyncError("Failed to fetch tasks", identity_id=identity_id)
            err.__cause__ = exc
            self._report(err)
            return sub

        if sub.active:
            sub._attach(stop)
        else:
            # Disposed from inside a synchronous first delivery.
            stop()
        logger.info("Task subscription started identity=%s", identity_id)
        return sub

    def _forget(self, sub: Subscription) -> None:
        self._live.discard(sub)
        self._awaiting_first.discard(sub)
        if not self._live:
            # Nothing left that could deliver the echo.
            self._echoes.clear()

    def _apply_delivery(self, sub: Subscription, records: list[DocumentRecord]) -> None:
        tasks: list[Task] = []
        for record in records:
            try:
                task = Task.from_record(record)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed task record id=%s", record.get("id"))
                continue
            if task.owner_id != sub.identity_id:
                logger.warning(
                    "Dropping task %s owned by %s from watch for %s",
                    task.id,
                    task.owner_id,
                    sub.identity_id,
                )
                continue
            tasks.append(task)

        self._tasks = tuple(tasks)
        self._awaiting_first.discard(sub)
        self._settle_echoes()
        logger.debug("Snapshot replaced identity=%s tasks=%d", sub.identity_id, len(tasks))

    def _settle_echoes(self) -> None:
        if not self._echoes:
            return
        by_id = {t.id: t for t in self._tasks}
        for task_id, echo in list(self._echoes.items()):
            if echo.seen_in(by_id, task_id):
                del self._echoes[task_id]

    def _expect(self, task_id: str, echo: _Echo) -> None:
        """Keep loading until a delivery reflects the acknowledged write."""
        if not self._live:
            return
        self._echoes[task_id] = echo
        self._settle_echoes()

    # ---- write side ----

    @contextlib.contextmanager
    def loading_scope(self) -> Iterator[None]:
        """Mark a write as in flight; released on every exit path."""
        self._inflight += 1
        try:
            yield
        finally:
            self._inflight -= 1

    async def create(self, fields: dict[str, Any], identity_id: str | None) -> str:
        if not identity_id:
            raise WriteError("Cannot add a task without a signed-in user")

        try:
            record = encode_fields(fields)
        except ValueError as exc:
            raise WriteError(f"Failed to add task: {exc}") from exc

        now = self._clock()
        record.setdefault("description", "")
        record.update(
            owner_id=identity_id,
            status=TaskStatus.PENDING.value,
            created_at=now.isoformat(),
            updated_at=now.isoformat(),
        )

        with self.loading_scope():
            try:
                task_id = str(await self._store.insert(self._collection, record))
            except Exception as exc:
                logger.warning("Task insert failed owner=%s: %r", identity_id, exc)
                raise WriteError("Failed to add task") from exc

        logger.info("Task created id=%s owner=%s", task_id, identity_id)
        self._expect(task_id, _Echo(present=True))
        return task_id

    async def update(self, task_id: str, fields: dict[str, Any]) -> None:
        if not task_id:
            raise WriteError("Task id is required")

        try:
            partial = encode_fields(fields)
        except ValueError as exc:
            raise WriteError(f"Failed to update task: {exc}", task_id=task_id) from exc

        now = self._clock()
        partial["updated_at"] = now.isoformat()

        with self.loading_scope():
            try:
                await self._store.update(self._collection, task_id, partial)
            except Exception as exc:
                logger.warning("Task update failed id=%s: %r", task_id, exc)
                raise WriteError("Failed to update task", task_id=task_id) from exc

        logger.info("Task updated id=%s fields=%s", task_id, sorted(partial))
        self._expect(task_id, _Echo(present=True, since=now))

    async def remove(self, task_id: str) -> None:
        if not task_id:
            raise WriteError("Task id is required")

        with self.loading_scope():
            try:
                await self._store.delete(self._collection, task_id)
            except Exception as exc:
                logger.warning("Task delete failed id=%s: %r", task_id, exc)
                raise WriteError("Failed to delete task", task_id=task_id) from exc

        logger.info("Task deleted id=%s", task_id)
        self._expect(task_id, _Echo(present=False))

    async def toggle_status(self, task_id: str, current_status: TaskStatus | str) -> TaskStatus:
        """pending <-> completed; the only place status transitions are decided."""
        new_status = TaskStatus(current_status).toggled()
        await self.update(task_id, {"status": new_status})
        return new_status
