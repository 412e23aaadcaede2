# tests/fakes.py

from __future__ import annotations

import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from tasksync.core.errors import AuthError
from tasksync.core.ports import Credentials, DocumentRecord, ErrorCallback, SnapshotCallback
from tasksync.session.context import Identity


@dataclass(slots=True)
class FakeWatch:
    collection: str
    owner_id: str
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    stopped: bool = False

    def deliver(self, records: list[DocumentRecord]) -> None:
        """Push a snapshot even if the watch was stopped (simulates a late delivery)."""
        self.on_snapshot([dict(r) for r in records])

    def fail(self, exc: Exception) -> None:
        self.on_error(exc)


class _FakeLiveQuery:
    def __init__(self, store: FakeDocumentStore, collection: str, owner_id: str) -> None:
        self._store = store
        self._collection = collection
        self._owner_id = owner_id

    def listen(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Callable[[], None]:
        watch = FakeWatch(self._collection, self._owner_id, on_snapshot, on_error)
        self._store.watches.append(watch)

        def _stop() -> None:
            watch.stopped = True
            self._store.stop_calls += 1

        return _stop


class FakeDocumentStore:
    """
    Document store whose change feed is driven by the test.

    Writes are recorded but never delivered automatically: tests call
    watch.deliver(...) to simulate the remote round-trip.
    """

    def __init__(self) -> None:
        self.docs: dict[str, DocumentRecord] = {}
        self.watches: list[FakeWatch] = []
        self.calls: list[tuple[str, Any]] = []
        self.stop_calls = 0
        self.fail_next: Exception | None = None
        self._ids = itertools.count(1)

    def _maybe_fail(self) -> None:
        if self.fail_next is not None:
            exc, self.fail_next = self.fail_next, None
            raise exc

    @property
    def last_watch(self) -> FakeWatch:
        return self.watches[-1]

    def active_watches(self) -> list[FakeWatch]:
        return [w for w in self.watches if not w.stopped]

    def records_for(self, owner_id: str) -> list[DocumentRecord]:
        return [dict(r) for r in self.docs.values() if r.get("owner_id") == owner_id]

    def push(self, owner_id: str) -> None:
        """Deliver the current records to every live watch for owner_id."""
        for w in self.active_watches():
            if w.owner_id == owner_id:
                w.deliver(self.records_for(owner_id))

    def query(self, collection: str, owner_id: str) -> _FakeLiveQuery:
        self.calls.append(("query", (collection, owner_id)))
        return _FakeLiveQuery(self, collection, owner_id)

    async def insert(self, collection: str, record: DocumentRecord) -> str:
        self.calls.append(("insert", dict(record)))
        self._maybe_fail()
        doc_id = f"t{next(self._ids)}"
        self.docs[doc_id] = {**record, "id": doc_id}
        return doc_id

    async def update(self, collection: str, doc_id: str, partial: DocumentRecord) -> None:
        self.calls.append(("update", (doc_id, dict(partial))))
        self._maybe_fail()
        if doc_id not in self.docs:
            raise KeyError(doc_id)
        self.docs[doc_id].update(partial)

    async def delete(self, collection: str, doc_id: str) -> None:
        self.calls.append(("delete", doc_id))
        self._maybe_fail()
        self.docs.pop(doc_id, None)


@dataclass(slots=True)
class FakeNotifier:
    successes: list[str] = field(default_factory=list)
    failures: list[tuple[str, Exception | None]] = field(default_factory=list)

    def success(self, message: str) -> None:
        self.successes.append(message)

    def failure(self, message: str, error: Exception | None = None) -> None:
        self.failures.append((message, error))


class FakeIdentityProvider:
    """In-memory identity provider with a fixed user table: {email: (password, Identity)}."""

    def __init__(self, users: dict[str, tuple[str, Identity]] | None = None) -> None:
        self.users = dict(users or {})
        self.current: Identity | None = None
        self._listeners: list[Callable[[Identity | None], None]] = []

    def _set(self, identity: Identity | None) -> None:
        self.current = identity
        for cb in list(self._listeners):
            cb(identity)

    def current_identity(self) -> Identity | None:
        return self.current

    def on_auth_state_changed(self, callback):
        self._listeners.append(callback)
        callback(self.current)
        return lambda: self._listeners.remove(callback)

    async def sign_up(self, credentials: Credentials) -> Identity:
        if credentials.email in self.users:
            raise AuthError("Email already in use")
        identity = Identity(uid=f"u-{credentials.email}", email=credentials.email)
        self.users[credentials.email] = (credentials.password, identity)
        self._set(identity)
        return identity

    async def authenticate(self, credentials: Credentials) -> Identity:
        entry = self.users.get(credentials.email)
        if entry is None or entry[0] != credentials.password:
            raise AuthError("Invalid email or password")
        self._set(entry[1])
        return entry[1]

    async def verify_email(self) -> Identity:
        if self.current is None:
            raise AuthError("Not signed in")
        identity = Identity(self.current.uid, self.current.email, True)
        self.users[identity.email] = (self.users[identity.email][0], identity)
        self._set(identity)
        return identity

    async def sign_out(self) -> None:
        self._set(None)


def make_record(
    task_id: str,
    *,
    owner_id: str = "u1",
    name: str = "Task",
    description: str = "",
    deadline: str = "2099-01-01",
    status: str = "pending",
    created_at: str = "2024-01-01T00:00:00+00:00",
    updated_at: str | None = None,
) -> DocumentRecord:
    return {
        "id": task_id,
        "owner_id": owner_id,
        "name": name,
        "description": description,
        "deadline": deadline,
        "status": status,
        "created_at": created_at,
        "updated_at": updated_at or created_at,
    }
