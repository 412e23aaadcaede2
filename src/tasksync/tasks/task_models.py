# src/tasksync/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Any

TaskRecord = dict[str, Any]
# Plain document as stored/delivered by the document store.


class TaskStatus(StrEnum):
    """Task completion status. Only these two states are reachable."""

    PENDING = "pending"
    COMPLETED = "completed"

    @classmethod
    def from_record(cls, raw: Any) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(str(raw))
        except ValueError:
            return cls.PENDING

    def toggled(self) -> TaskStatus:
        return TaskStatus.COMPLETED if self is TaskStatus.PENDING else TaskStatus.PENDING


class TaskFilter(StrEnum):
    ALL = "all"
    PENDING = "pending"
    COMPLETED = "completed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_deadline(raw: Any) -> date:
    """
    Accept a date, a datetime, an ISO date ("2099-01-01") or an ISO datetime
    ("2099-01-01T10:00:00.000Z"); the time part is dropped.
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw or "").strip()
    if not s:
        raise ValueError("deadline is required")
    return date.fromisoformat(s[:10])


def parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        ts = raw
    elif isinstance(raw, (int, float)):
        ts = datetime.fromtimestamp(float(raw), timezone.utc)
    elif raw:
        ts = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    else:
        return datetime.fromtimestamp(0, timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    owner_id: str
    name: str
    deadline: date
    status: TaskStatus
    created_at: datetime
    updated_at: datetime
    description: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    @classmethod
    def from_record(cls, record: TaskRecord) -> Task:
        return cls(
            id=str(record["id"]),
            owner_id=str(record.get("owner_id") or ""),
            name=str(record.get("name") or ""),
            description=str(record.get("description") or ""),
            deadline=parse_deadline(record.get("deadline")),
            status=TaskStatus.from_record(record.get("status")),
            created_at=parse_timestamp(record.get("created_at")),
            updated_at=parse_timestamp(record.get("updated_at")),
        )

    def to_record(self) -> TaskRecord:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "deadline": self.deadline.isoformat(),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


# Fields a caller may set through create/update; the rest are owned by the cache.
EDITABLE_FIELDS = frozenset({"name", "description", "deadline", "status"})


def encode_fields(fields: dict[str, Any]) -> TaskRecord:
    """Normalize editable fields into their wire representation."""
    out: TaskRecord = {}
    for key, value in fields.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key == "deadline":
            out[key] = parse_deadline(value).isoformat()
        elif key == "status":
            out[key] = TaskStatus(value).value
        elif key == "description":
            out[key] = str(value or "")
        else:
            out[key] = str(value)
    return out


@dataclass(slots=True, frozen=True)
class CacheSnapshot:
    """
    The single source of truth consumed by the view layer.

    Replaced wholesale on every remote delivery; never patched in place.
    """

    tasks: tuple[Task, ...] = ()
    loading: bool = False
    filter: TaskFilter = TaskFilter.ALL
    search_term: str | None = None


@dataclass(slots=True, frozen=True)
class TaskCounts:
    total: int
    pending: int
    completed: int
    overdue: int
