# src/tasksync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete adapters (SQLite store, local identity provider) into AppState,
- connects identity provider -> session context -> task subscription.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.console_connector import ConsoleNotifier
from ..core.ports import DocumentStore, IdentityProvider, Notifier
from ..core.state import AppState
from ..session.context import SessionContext
from ..storage.local_identity import LocalIdentityProvider
from ..storage.sqlite_store import SqliteDocumentStore
from ..tasks.session_sync import SessionSync
from ..tasks.task_cache import TaskCache
from ..tasks.task_gateway import MutationGateway

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    notifier: Notifier | None = None,
    store: DocumentStore | None = None,
    identity: IdentityProvider | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Settings and adapters are injectable so tests can wire fakes; when
    omitted, the local SQLite adapters are used.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if store is None:
        store = SqliteDocumentStore(settings.store_db_path)
    if identity is None:
        identity = LocalIdentityProvider(settings.store_db_path, settings.session_path)

    session = SessionContext()
    cache = TaskCache(store, collection=getattr(settings, "collection", "tasks"))
    session_sync = SessionSync(session, cache)
    gateway = MutationGateway(cache, session, notifier or ConsoleNotifier())

    state = AppState(
        settings=settings,
        identity=identity,
        store=store,
        session=session,
        cache=cache,
        session_sync=session_sync,
        gateway=gateway,
    )

    # Subscription follows the session; the session follows the provider.
    session_sync.start()
    state.disposers.append(identity.on_auth_state_changed(session.set_identity))

    logger.info("State ready (identity=%s)", session.identity_id or "none")
    return state
