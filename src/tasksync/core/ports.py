# src/tasksync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the identity provider and the document store swappable
(local SQLite adapters, hosted services, test fakes).
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Protocol

if TYPE_CHECKING:
    from ..session.context import Identity

DocumentRecord = dict[str, Any]
# A stored document; "id" is assigned by the store.

SnapshotCallback = Callable[[list[DocumentRecord]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@dataclass(slots=True, frozen=True)
class Credentials:
    email: str
    password: str


class LiveQuery(Protocol):
    """
    Live, owner-scoped view over a collection.

    listen() starts the watch. The store then pushes the full matching
    record set (never a diff) on start and after every change. The returned
    callable stops the watch.
    """

    def listen(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe: ...


class DocumentStore(Protocol):
    def query(self, collection: str, owner_id: str) -> LiveQuery: ...
    def insert(self, collection: str, record: DocumentRecord) -> Awaitable[str]: ...
    def update(self, collection: str, doc_id: str, partial: DocumentRecord) -> Awaitable[None]: ...
    def delete(self, collection: str, doc_id: str) -> Awaitable[None]: ...


class IdentityProvider(Protocol):
    """
    Authentication service.

    on_auth_state_changed fires on sign-in, sign-out and whenever the
    identity's verification flag changes.
    """

    def authenticate(self, credentials: Credentials) -> Awaitable[Identity]: ...
    def sign_up(self, credentials: Credentials) -> Awaitable[Identity]: ...
    def current_identity(self) -> Identity | None: ...
    def on_auth_state_changed(self, callback: Callable[[Identity | None], None]) -> Unsubscribe: ...
    def verify_email(self) -> Awaitable[Identity]: ...
    def sign_out(self) -> Awaitable[None]: ...


class Notifier(Protocol):
    """Uniform success/failure channel consumed by presentation."""

    def success(self, message: str) -> None: ...
    def failure(self, message: str, error: Exception | None = None) -> None: ...
