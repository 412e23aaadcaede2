# src/tasksync/tasks/task_gateway.py

from __future__ import annotations

"""
Mutation gateway: the presentation-facing API of the task layer.

Each write is one externally observable operation:
- the cache's loading scope is held for the whole call and released on every
  exit path (success or failure);
- the outcome goes to the Notifier and comes back as a MutationResult;
- nothing raises past this layer.

Writes are write-through. A successful result means the store accepted the
write, not that the snapshot already shows it: the change appears once the
subscription delivers it.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from ..core.errors import SyncError, TaskSyncError, WriteError
from ..core.ports import Notifier
from ..session.context import SessionContext
from .task_cache import TaskCache
from .task_models import Task, TaskCounts, TaskFilter, TaskStatus, utc_now
from .task_view import count_tasks, display_order, filtered_searched

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class MutationResult:
    ok: bool
    value: Any = None
    error: Exception | None = None


class MutationGateway:
    def __init__(self, cache: TaskCache, session: SessionContext, notifier: Notifier) -> None:
        self.cache = cache
        self.session = session
        self.notifier = notifier
        self._remove_error_listener = cache.add_error_listener(self._on_cache_error)

    def close(self) -> None:
        self._remove_error_listener()

    def _on_cache_error(self, error: Exception) -> None:
        if isinstance(error, SyncError):
            self.notifier.failure(str(error), error)

    # ---- reads ----

    def get_tasks(self) -> list[Task]:
        return display_order(self.cache.tasks())

    def get_filtered_searched(
        self, task_filter: TaskFilter | str | None = None, term: str | None = None
    ) -> list[Task]:
        snap = self.cache.snapshot()
        return filtered_searched(
            snap.tasks,
            snap.filter if task_filter is None else task_filter,
            snap.search_term if term is None else term,
        )

    def is_loading(self) -> bool:
        return self.cache.is_loading()

    def counts(self) -> TaskCounts:
        return count_tasks(self.cache.tasks())

    # ---- writes ----

    async def _run(
        self,
        action: str,
        op: Callable[[], Awaitable[Any]],
        success_message: str,
    ) -> MutationResult:
        with self.cache.loading_scope():
            try:
                value = await op()
            except TaskSyncError as exc:
                logger.info("%s failed: %s", action, exc)
                self.notifier.failure(str(exc), exc)
                return MutationResult(ok=False, error=exc)
            except Exception as exc:
                logger.exception("%s crashed", action)
                err = WriteError(f"{action} failed")
                err.__cause__ = exc
                self.notifier.failure(str(err), err)
                return MutationResult(ok=False, error=err)
        self.notifier.success(success_message)
        return MutationResult(ok=True, value=value)

    async def add_task(self, fields: dict[str, Any]) -> MutationResult:
        identity_id = self.session.identity_id
        return await self._run(
            "add_task",
            lambda: self.cache.create(fields, identity_id),
            "Task added successfully!",
        )

    async def edit_task(self, task_id: str, fields: dict[str, Any]) -> MutationResult:
        return await self._run(
            "edit_task",
            lambda: self.cache.update(task_id, fields),
            "Task updated successfully!",
        )

    async def remove_task(self, task_id: str) -> MutationResult:
        return await self._run(
            "remove_task",
            lambda: self.cache.remove(task_id),
            "Task deleted successfully!",
        )

    async def toggle_status(self, task_id: str, current_status: TaskStatus | str) -> MutationResult:
        return await self._run(
            "toggle_status",
            lambda: self.cache.toggle_status(task_id, current_status),
            "Task updated successfully!",
        )

    async def add_sample_task(self) -> MutationResult:
        """Create a demo task due in seven days."""
        deadline = (utc_now() + timedelta(days=7)).date()
        return await self.add_task(
            {
                "name": "Sample Task",
                "description": "This is a sample task to test the system",
                "deadline": deadline,
            }
        )
