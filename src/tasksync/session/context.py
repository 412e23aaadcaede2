# src/tasksync/session/context.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Identity:
    uid: str
    email: str
    email_verified: bool = False


IdentityListener = Callable[[Identity | None], None]


class SessionContext:
    """
    Holds the active identity. State only, no I/O.

    Written by the identity-provider callback; read by the task layer to
    decide subscription scope. Listeners run synchronously, in registration
    order, and only when the identity actually changes.
    """

    def __init__(self) -> None:
        self._identity: Identity | None = None
        self._listeners: list[IdentityListener] = []

    def current(self) -> Identity | None:
        return self._identity

    @property
    def identity_id(self) -> str | None:
        return self._identity.uid if self._identity else None

    def set_identity(self, identity: Identity | None) -> None:
        if identity == self._identity:
            return
        self._identity = identity
        logger.info(
            "Session identity -> %s",
            f"{identity.uid} verified={identity.email_verified}" if identity else "none",
        )
        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception:
                logger.exception("Session listener failed")

    def add_listener(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove
