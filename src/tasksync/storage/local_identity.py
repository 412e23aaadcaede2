# src/tasksync/storage/local_identity.py

from __future__ import annotations

import contextlib
import hashlib
import hmac
import json
import logging
import os
import secrets
import sqlite3
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..core.errors import AuthError
from ..core.ports import Credentials, Unsubscribe
from ..session.context import Identity

logger = logging.getLogger(__name__)

AuthListener = Callable[[Identity | None], None]

PBKDF2_ITERATIONS = 200_000
MIN_PASSWORD_LENGTH = 6


def _hash_password(password: str, salt: str) -> str:
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), PBKDF2_ITERATIONS)
    return digest.hex()


def _load_json(path: Path) -> dict[str, Any]:
    val = json.loads(path.read_text("utf-8"))
    if isinstance(val, dict):
        return val
    raise ValueError("Expected JSON object")


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        # Not critical on Windows or restricted FS.
        os.chmod(path, 0o600)


class LocalIdentityProvider:
    """
    Email/password identity provider backed by SQLite.

    The signed-in user is persisted to session.json so a restart keeps the
    session. Email verification is a local flag flipped by verify_email();
    there is no mail delivery.
    """

    def __init__(self, db_path: str | Path, session_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._session_path = Path(session_path)
        self._current: Identity | None = None
        self._listeners: list[AuthListener] = []
        self._ensure_schema()
        self._restore_session()

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    uid TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    salt TEXT NOT NULL,
                    email_verified INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_identity(row: sqlite3.Row) -> Identity:
        return Identity(
            uid=str(row["uid"]),
            email=str(row["email"]),
            email_verified=bool(row["email_verified"]),
        )

    def _get_user(self, *, uid: str | None = None, email: str | None = None) -> sqlite3.Row | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if uid is not None:
                cur.execute("SELECT * FROM users WHERE uid = ?", (uid,))
            else:
                cur.execute("SELECT * FROM users WHERE email = ?", (email,))
            return cur.fetchone()
        finally:
            conn.close()

    def _restore_session(self) -> None:
        if not self._session_path.exists():
            return
        try:
            data = _load_json(self._session_path)
            uid = data.get("uid")
            if not uid:
                raise ValueError("session.json is missing uid")
            row = self._get_user(uid=str(uid))
            if row is None:
                raise ValueError(f"unknown user {uid}")
        except (OSError, ValueError) as e:
            logger.warning("Failed to restore session from %s: %r", self._session_path, e)
            return
        self._current = self._row_to_identity(row)
        logger.info("Session restored for %s", self._current.email)

    def _set_current(self, identity: Identity | None) -> None:
        self._current = identity
        if identity is None:
            with contextlib.suppress(FileNotFoundError):
                self._session_path.unlink()
        else:
            try:
                _atomic_write_json(self._session_path, {"uid": identity.uid, "email": identity.email})
            except OSError as e:
                logger.warning("Failed to persist session to %s: %r", self._session_path, e)

        for listener in list(self._listeners):
            try:
                listener(identity)
            except Exception:
                logger.exception("Auth state listener failed")

    @staticmethod
    def _normalize(credentials: Credentials) -> tuple[str, str]:
        email = (credentials.email or "").strip().lower()
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            raise AuthError("Invalid email address")
        return email, credentials.password or ""

    # ---- public API ----

    def current_identity(self) -> Identity | None:
        return self._current

    def on_auth_state_changed(self, callback: AuthListener) -> Unsubscribe:
        """Register a listener; it is called right away with the current state."""
        self._listeners.append(callback)
        callback(self._current)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    async def sign_up(self, credentials: Credentials) -> Identity:
        email, password = self._normalize(credentials)
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")

        salt = secrets.token_hex(16)
        uid = uuid.uuid4().hex
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO users(uid, email, password_hash, salt, email_verified, created_at)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (uid, email, _hash_password(password, salt), salt, time.time()),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            raise AuthError("Email already in use") from exc
        finally:
            conn.close()

        identity = Identity(uid=uid, email=email, email_verified=False)
        logger.info("User signed up uid=%s", uid)
        self._set_current(identity)
        return identity

    async def authenticate(self, credentials: Credentials) -> Identity:
        email, password = self._normalize(credentials)
        row = self._get_user(email=email)
        if row is None or not hmac.compare_digest(
            _hash_password(password, str(row["salt"])), str(row["password_hash"])
        ):
            logger.info("Authentication failed for %s", email)
            raise AuthError("Invalid email or password")

        identity = self._row_to_identity(row)
        logger.info("User signed in uid=%s", identity.uid)
        self._set_current(identity)
        return identity

    async def verify_email(self) -> Identity:
        if self._current is None:
            raise AuthError("Not signed in")

        conn = self._get_conn()
        try:
            conn.execute("UPDATE users SET email_verified = 1 WHERE uid = ?", (self._current.uid,))
            conn.commit()
        finally:
            conn.close()

        identity = Identity(uid=self._current.uid, email=self._current.email, email_verified=True)
        logger.info("Email verified uid=%s", identity.uid)
        self._set_current(identity)
        return identity

    async def sign_out(self) -> None:
        if self._current is None:
            return
        logger.info("User signed out uid=%s", self._current.uid)
        self._set_current(None)
