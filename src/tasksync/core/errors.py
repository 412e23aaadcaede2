# src/tasksync/core/errors.py

from __future__ import annotations

"""
Error taxonomy.

Every error is scoped to the operation that raised it; none of them is fatal
to the process. Transport/service exceptions from the ports are chained as
__cause__ so logs keep the original traceback.
"""


class TaskSyncError(Exception):
    """Base class for all tasksync errors."""


class AuthError(TaskSyncError):
    """Identity provider rejected the credentials or the session."""


class SyncError(TaskSyncError):
    """A live subscription failed to deliver (transport drop, permission revoked)."""

    def __init__(self, message: str, *, identity_id: str | None = None) -> None:
        super().__init__(message)
        self.identity_id = identity_id


class WriteError(TaskSyncError):
    """A create/update/delete was rejected by the document store."""

    def __init__(self, message: str, *, task_id: str | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class ValidationError(TaskSyncError):
    """Form-level field validation failed (raised before the core is called)."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(detail or "invalid input")
