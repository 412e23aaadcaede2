# src/tasksync/tasks/task_view.py

from __future__ import annotations

"""
View projection over a cache snapshot.

Everything here is pure: inputs are never mutated and every call returns a
fresh list. Overdue is derived at read time and never stored.
"""

from collections.abc import Iterable
from datetime import datetime, time, timezone

from .task_models import CacheSnapshot, Task, TaskCounts, TaskFilter, TaskStatus, utc_now


def display_order(tasks: Iterable[Task]) -> list[Task]:
    """Newest first; id breaks ties so the order is deterministic."""
    return sorted(tasks, key=lambda t: (t.created_at, t.id), reverse=True)


def filtered(tasks: Iterable[Task], task_filter: TaskFilter | str = TaskFilter.ALL) -> list[Task]:
    task_filter = TaskFilter(task_filter)
    if task_filter is TaskFilter.ALL:
        return display_order(tasks)
    wanted = TaskStatus(task_filter.value)
    return display_order(t for t in tasks if t.status is wanted)


def _matches(task: Task, needle: str) -> bool:
    return needle in task.name.casefold() or needle in (task.description or "").casefold()


def searched(tasks: Iterable[Task], term: str | None) -> list[Task]:
    """Case-insensitive substring match on name or description; blank term matches all."""
    needle = (term or "").strip().casefold()
    if not needle:
        return list(tasks)
    return [t for t in tasks if _matches(t, needle)]


def filtered_searched(
    tasks: Iterable[Task],
    task_filter: TaskFilter | str = TaskFilter.ALL,
    term: str | None = None,
) -> list[Task]:
    return searched(filtered(tasks, task_filter), term)


def project(snapshot: CacheSnapshot) -> list[Task]:
    """Apply the snapshot's own filter and search term."""
    return filtered_searched(snapshot.tasks, snapshot.filter, snapshot.search_term)


def deadline_instant(task: Task) -> datetime:
    # A bare date means the start of that day, UTC.
    return datetime.combine(task.deadline, time.min, tzinfo=timezone.utc)


def is_overdue(task: Task, now: datetime | None = None) -> bool:
    if task.status is TaskStatus.COMPLETED:
        return False
    now = now or utc_now()
    return deadline_instant(task) < now


def count_tasks(tasks: Iterable[Task], now: datetime | None = None) -> TaskCounts:
    now = now or utc_now()
    total = pending = completed = overdue = 0
    for task in tasks:
        total += 1
        if task.status is TaskStatus.COMPLETED:
            completed += 1
        else:
            pending += 1
        if is_overdue(task, now):
            overdue += 1
    return TaskCounts(total=total, pending=pending, completed=completed, overdue=overdue)
