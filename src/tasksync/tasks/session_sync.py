# src/tasksync/tasks/session_sync.py

from __future__ import annotations

import logging

from ..session.context import Identity, SessionContext
from .task_cache import Subscription, TaskCache

logger = logging.getLogger(__name__)


class SessionSync:
    """
    Keeps exactly one task subscription alive for the active identity.

    On every identity change the previous watch is disposed BEFORE the new
    one starts, so a stale watch can never overwrite the snapshot of the
    newly active identity. Signing out clears the cache (not the remote
    records).
    """

    def __init__(self, session: SessionContext, cache: TaskCache) -> None:
        self.session = session
        self.cache = cache
        self._subscription: Subscription | None = None
        self._subscribed_for: str | None = None
        self._remove_listener = None

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    def start(self) -> None:
        if self._remove_listener is None:
            self._remove_listener = self.session.add_listener(self._on_identity)
        self._on_identity(self.session.current())

    def stop(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        self._dispose()

    def resubscribe(self) -> None:
        """Restart the watch after a SyncError (there is no automatic retry)."""
        identity = self.session.current()
        self._dispose()
        if identity is not None:
            self._subscribe(identity.uid)

    def _dispose(self) -> None:
        sub, self._subscription = self._subscription, None
        self._subscribed_for = None
        if sub is not None:
            sub.dispose()

    def _subscribe(self, uid: str) -> None:
        self._subscription = self.cache.subscribe(uid)
        self._subscribed_for = uid

    def _on_identity(self, identity: Identity | None) -> None:
        uid = identity.uid if identity else None
        if uid == self._subscribed_for and self._subscription is not None:
            # Same user, e.g. only the verification flag changed.
            return

        self._dispose()
        self.cache.clear()

        if uid:
            logger.info("Subscribing tasks for %s", uid)
            self._subscribe(uid)
        else:
            logger.info("No active identity; task cache cleared")
