# file: directory_runtime/document_store.py
"""
Document Store — one JSON document per path, with change notification.

Interface shared by every store:
  read()                          -> current document (None when absent)
  write(document)                 -> whole-document replace, last writer wins
  subscribe(callback, on_error)   -> unsubscribe callable

subscribe() delivers the current value first, then every later change.
Writes made through this store object are announced synchronously after
they commit. Writes made by other processes are picked up by a daemon
thread that compares the stored revision counter every ``poll_interval``
seconds (0 disables polling).

Every document handed to a subscriber is a private deep copy. A write
made from inside a callback supersedes the notification being delivered:
subscribers not yet reached get only the newer document, so every
subscriber ends on the value the store actually holds.
"""

from __future__ import annotations

import copy
import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from directory_kernel.constants import COLLECTION_PATH

LOGGER = logging.getLogger(__name__)

Document = Optional[dict]
ChangeCallback = Callable[[Document], None]
ErrorCallback = Callable[[Exception], None]


class DirectoryStoreError(Exception):
    """Raised when the document store cannot be read or written."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store {operation} failed: {detail}")


class _Subscription:
    __slots__ = ("callback", "on_error")

    def __init__(self, callback: ChangeCallback, on_error: Optional[ErrorCallback]) -> None:
        self.callback = callback
        self.on_error = on_error


class DocumentStore:
    """
    Base class: subscriber bookkeeping and revision polling.

    Subclasses implement ``_fetch() -> (document, revision)``,
    ``_store(document) -> revision`` and ``_revision() -> revision``.
    """

    def __init__(self, path: str = COLLECTION_PATH, poll_interval: float = 0.0) -> None:
        self._path = path
        self._poll_interval = poll_interval
        self._subscriptions: List[_Subscription] = []
        self._lock = threading.RLock()
        self._last_revision: Optional[int] = None
        self._sequence = 0
        self._stop = threading.Event()
        self._poller: Optional[threading.Thread] = None

    @property
    def path(self) -> str:
        return self._path

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    def _fetch(self) -> Tuple[Document, int]:
        raise NotImplementedError

    def _store(self, document: Document) -> int:
        raise NotImplementedError

    def _revision(self) -> int:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(self) -> Document:
        document, _ = self._fetch()
        return document

    def write(self, document: Document) -> None:
        with self._lock:
            self._last_revision = self._store(document)
            self._sequence += 1
            sequence = self._sequence
        self._notify(document, sequence)

    def subscribe(
        self, callback: ChangeCallback, on_error: Optional[ErrorCallback] = None,
    ) -> Callable[[], None]:
        """
        Register *callback*. The current value is delivered before this
        returns; a failed first read goes to *on_error* (or is raised
        when no error callback is given).
        """
        subscription = _Subscription(callback, on_error)
        with self._lock:
            self._subscriptions.append(subscription)
            try:
                document, revision = self._fetch()
            except DirectoryStoreError as exc:
                if on_error is None:
                    self._subscriptions.remove(subscription)
                    raise
                on_error(exc)
            else:
                if self._last_revision is None:
                    self._last_revision = revision
                callback(copy.deepcopy(document))
        self._ensure_poller()

        def _unsubscribe() -> None:
            with self._lock:
                if subscription in self._subscriptions:
                    self._subscriptions.remove(subscription)

        return _unsubscribe

    def close(self) -> None:
        self._stop.set()
        if self._poller is not None and self._poller is not threading.current_thread():
            self._poller.join(timeout=max(self._poll_interval, 0.1) * 2)
        self._poller = None

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _notify(self, document: Document, sequence: int) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            if sequence != self._sequence:
                break  # superseded by a write made during delivery
            subscription.callback(copy.deepcopy(document))

    def _notify_error(self, exc: Exception) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        handled = False
        for subscription in subscriptions:
            if subscription.on_error is not None:
                subscription.on_error(exc)
                handled = True
        if not handled:
            LOGGER.warning("Store poll failed for %r: %s", self._path, exc)

    def _ensure_poller(self) -> None:
        if self._poll_interval <= 0 or self._poller is not None:
            return
        self._stop.clear()
        self._poller = threading.Thread(
            target=self._poll_loop, name=f"store-poll-{self._path}", daemon=True,
        )
        self._poller.start()

    def _poll_loop(self) -> None:
        while not self._stop.wait(self._poll_interval):
            try:
                with self._lock:
                    if self._revision() == self._last_revision:
                        continue
                    document, revision = self._fetch()
                    self._last_revision = revision
                    self._sequence += 1
                    sequence = self._sequence
            except DirectoryStoreError as exc:
                self._notify_error(exc)
                continue
            LOGGER.debug("Remote change on %r (revision %s)", self._path, revision)
            self._notify(document, sequence)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS documents (
    path      TEXT PRIMARY KEY,
    document  TEXT NOT NULL,
    revision  INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""


class SqliteDocumentStore(DocumentStore):
    """
    sqlite3-backed store. One row per path, JSON text plus a revision
    counter. Connection-per-operation so the poller thread and request
    threads never share a connection.
    """

    def __init__(
        self,
        db_path: str | Path,
        path: str = COLLECTION_PATH,
        poll_interval: float = 0.0,
    ) -> None:
        super().__init__(path=path, poll_interval=poll_interval)
        self._db_path = str(db_path)
        self._run(lambda conn: conn.executescript(_SCHEMA_SQL), "schema")

    def _run(self, fn: Callable[[sqlite3.Connection], Any], operation: str) -> Any:
        try:
            conn = sqlite3.connect(self._db_path, timeout=10.0)
        except sqlite3.Error as exc:
            raise DirectoryStoreError(operation, str(exc)) from exc
        try:
            with conn:
                return fn(conn)
        except sqlite3.Error as exc:
            raise DirectoryStoreError(operation, str(exc)) from exc
        finally:
            conn.close()

    def _fetch(self) -> Tuple[Document, int]:
        row = self._run(
            lambda conn: conn.execute(
                "SELECT document, revision FROM documents WHERE path = ?", (self._path,)
            ).fetchone(),
            "read",
        )
        if row is None:
            return None, 0
        try:
            return json.loads(row[0]), row[1]
        except json.JSONDecodeError as exc:
            raise DirectoryStoreError("read", f"corrupt document: {exc}") from exc

    def _store(self, document: Document) -> int:
        payload = json.dumps(document, ensure_ascii=False)

        def _upsert(conn: sqlite3.Connection) -> int:
            conn.execute(
                """
                INSERT INTO documents (path, document, revision)
                VALUES (?, ?, 1)
                ON CONFLICT(path) DO UPDATE SET
                    document = excluded.document,
                    revision = documents.revision + 1,
                    updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
                """,
                (self._path, payload),
            )
            return conn.execute(
                "SELECT revision FROM documents WHERE path = ?", (self._path,)
            ).fetchone()[0]

        return self._run(_upsert, "write")

    def _revision(self) -> int:
        row = self._run(
            lambda conn: conn.execute(
                "SELECT revision FROM documents WHERE path = ?", (self._path,)
            ).fetchone(),
            "poll",
        )
        return row[0] if row else 0


def open_document_store(config) -> DocumentStore:
    """Build the store named by ``config.store``."""
    if config.store == "supabase":
        if not config.database_url:
            raise DirectoryStoreError("connect", "DATABASE_URL is not set")
        from backend.supabase_document_store import SupabaseDocumentStore

        return SupabaseDocumentStore(
            config.database_url,
            path=config.collection,
            poll_interval=config.poll_interval,
        )
    return SqliteDocumentStore(
        config.db_path, path=config.collection, poll_interval=config.poll_interval,
    )
