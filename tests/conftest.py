# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasksync.cli.bootstrap import create_initial_state
from tasksync.core.state import AppState
from tasksync.session.context import Identity, SessionContext
from tasksync.tasks.task_cache import TaskCache
from tasksync.tasks.task_gateway import MutationGateway

from .fakes import FakeDocumentStore, FakeIdentityProvider, FakeNotifier


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="tasksync-test",
        log_level="DEBUG",
        collection="tasks",
        require_verified_email=True,
        data_dir=tmp_path,
        store_db_path=tmp_path / "tasksync.sqlite3",
        session_path=tmp_path / "session.json",
    )


@pytest.fixture()
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture()
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture()
def cache(store: FakeDocumentStore) -> TaskCache:
    return TaskCache(store)


@pytest.fixture()
def session() -> SessionContext:
    return SessionContext()


@pytest.fixture()
def u1() -> Identity:
    return Identity(uid="u1", email="u1@example.com", email_verified=True)


@pytest.fixture()
def gateway(cache: TaskCache, session: SessionContext, notifier: FakeNotifier) -> MutationGateway:
    return MutationGateway(cache, session, notifier)


@pytest.fixture()
def identity(u1: Identity) -> FakeIdentityProvider:
    return FakeIdentityProvider({u1.email: ("secret1", u1)})


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    store: FakeDocumentStore,
    identity: FakeIdentityProvider,
    notifier: FakeNotifier,
) -> AppState:
    """AppState wired with deterministic fakes; nobody is signed in yet."""
    app = create_initial_state(settings=settings, notifier=notifier, store=store, identity=identity)
    yield app
    app.close()
