# src/tasksync/storage/sqlite_store.py

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..core.ports import DocumentRecord, ErrorCallback, SnapshotCallback, Unsubscribe

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Watch:
    collection: str
    owner_id: str
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback


class _SqliteLiveQuery:
    def __init__(self, store: SqliteDocumentStore, collection: str, owner_id: str) -> None:
        self._store = store
        self._collection = collection
        self._owner_id = owner_id

    def listen(self, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> Unsubscribe:
        return self._store._add_watch(
            _Watch(self._collection, self._owner_id, on_snapshot, on_error)
        )


class SqliteDocumentStore:
    """
    SQLite document store with an in-process change feed.

    Documents are JSON objects grouped by collection and owner. A live query
    receives the full matching record set once when it starts listening and
    again after every committed write that touches its owner. Deliveries are
    scheduled on the running event loop, so they always arrive after the
    write call returns.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasksync.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._watches: dict[int, _Watch] = {}
        self._watch_ids = itertools.count(1)
        self._ensure_schema()
        try:
            total = self.count_documents()
        except sqlite3.Error:
            total = -1
        logger.info("SqliteDocumentStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id TEXT PRIMARY KEY,
                    collection TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    data TEXT NOT NULL DEFAULT '{}',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(collection, owner_id)"
            )
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> DocumentRecord:
        try:
            data = json.loads(row["data"] or "{}")
        except json.JSONDecodeError:
            logger.warning("Corrupt document data id=%s", row["id"])
            data = {}
        if not isinstance(data, dict):
            data = {}
        data["id"] = str(row["id"])
        data["owner_id"] = str(row["owner_id"])
        return data

    def _fetch_owner(self, collection: str, owner_id: str) -> list[DocumentRecord]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM documents
                WHERE collection = ? AND owner_id = ?
                ORDER BY created_at ASC, id ASC
                """,
                (collection, owner_id),
            )
            return [self._row_to_record(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def _owner_of(self, collection: str, doc_id: str) -> str | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT owner_id FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            row = cur.fetchone()
            return str(row["owner_id"]) if row else None
        finally:
            conn.close()

    # ---- change feed ----

    @staticmethod
    def _schedule(fn: Callable[..., None], *args: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            fn(*args)
            return
        loop.call_soon(fn, *args)

    def _deliver(self, watch_id: int, watch: _Watch) -> None:
        try:
            records = self._fetch_owner(watch.collection, watch.owner_id)
        except sqlite3.Error as exc:
            logger.warning("Live query fetch failed owner=%s: %r", watch.owner_id, exc)
            self._schedule(self._fire_error, watch_id, exc)
            return
        self._schedule(self._fire_snapshot, watch_id, records)

    def _fire_snapshot(self, watch_id: int, records: list[DocumentRecord]) -> None:
        watch = self._watches.get(watch_id)
        if watch is None:
            return
        watch.on_snapshot(records)

    def _fire_error(self, watch_id: int, exc: Exception) -> None:
        watch = self._watches.get(watch_id)
        if watch is None:
            return
        watch.on_error(exc)

    def _add_watch(self, watch: _Watch) -> Unsubscribe:
        watch_id = next(self._watch_ids)
        self._watches[watch_id] = watch
        logger.debug("Watch %s started %s/%s", watch_id, watch.collection, watch.owner_id)
        self._deliver(watch_id, watch)

        def _stop() -> None:
            if self._watches.pop(watch_id, None) is not None:
                logger.debug("Watch %s stopped", watch_id)

        return _stop

    def _publish(self, collection: str, owner_id: str) -> None:
        for watch_id, watch in list(self._watches.items()):
            if watch.collection == collection and watch.owner_id == owner_id:
                self._deliver(watch_id, watch)

    # ---- public API ----

    def count_documents(self, collection: str | None = None) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if collection is None:
                cur.execute("SELECT COUNT(*) FROM documents")
            else:
                cur.execute("SELECT COUNT(*) FROM documents WHERE collection = ?", (collection,))
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def query(self, collection: str, owner_id: str) -> _SqliteLiveQuery:
        return _SqliteLiveQuery(self, collection, owner_id)

    async def insert(self, collection: str, record: DocumentRecord) -> str:
        owner_id = str(record.get("owner_id") or "")
        if not owner_id:
            raise ValueError("owner_id is required")

        doc_id = uuid.uuid4().hex
        data = {k: v for k, v in record.items() if k not in ("id", "owner_id")}
        now = time.time()

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO documents(id, collection, owner_id, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (doc_id, collection, owner_id, json.dumps(data, ensure_ascii=False), now, now),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Document inserted %s/%s owner=%s", collection, doc_id, owner_id)
        self._publish(collection, owner_id)
        return doc_id

    async def update(self, collection: str, doc_id: str, partial: DocumentRecord) -> None:
        changes = {k: v for k, v in partial.items() if k not in ("id", "owner_id")}

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT owner_id, data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
            row = cur.fetchone()
            if row is None:
                raise KeyError(f"No document {collection}/{doc_id}")

            data = json.loads(row["data"] or "{}")
            data.update(changes)
            cur.execute(
                "UPDATE documents SET data = ?, updated_at = ? WHERE id = ?",
                (json.dumps(data, ensure_ascii=False), time.time(), doc_id),
            )
            conn.commit()
            owner_id = str(row["owner_id"])
        finally:
            conn.close()

        logger.debug("Document updated %s/%s fields=%s", collection, doc_id, sorted(changes))
        self._publish(collection, owner_id)

    async def delete(self, collection: str, doc_id: str) -> None:
        owner_id = self._owner_of(collection, doc_id)
        if owner_id is None:
            return

        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id))
            conn.commit()
        finally:
            conn.close()

        logger.debug("Document deleted %s/%s", collection, doc_id)
        self._publish(collection, owner_id)
