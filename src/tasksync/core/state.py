# src/tasksync/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..session.context import SessionContext
from ..tasks.session_sync import SessionSync
from ..tasks.task_cache import TaskCache
from ..tasks.task_gateway import MutationGateway
from .ports import DocumentStore, IdentityProvider


@dataclass
class AppState:
    """
    Explicitly owned container for one running session.

    Nothing here is a process-wide singleton: tests build as many
    independent states as they need.
    """

    settings: Any

    identity: IdentityProvider
    store: DocumentStore
    session: SessionContext
    cache: TaskCache
    session_sync: SessionSync
    gateway: MutationGateway

    # Cleanup callbacks registered during wiring (auth listeners etc.).
    disposers: list[Any] = field(default_factory=list)

    def close(self) -> None:
        self.session_sync.stop()
        self.gateway.close()
        while self.disposers:
            self.disposers.pop()()
