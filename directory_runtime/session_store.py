# file: directory_runtime/session_store.py
"""
Session Store — local persistent key/value slots backed by sqlite3.

Holds the signed-in student between restarts under ``collegeConnectUser``.
Values are JSON.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Optional

from directory_kernel.constants import SESSION_USER_KEY

from .document_store import DirectoryStoreError

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS local_session (
    slot   TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);
"""


class SessionStore:
    """Tiny key/value table; one connection per call."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._execute(lambda conn: conn.executescript(_SCHEMA_SQL))

    def _execute(self, fn):
        try:
            conn = sqlite3.connect(self._db_path, timeout=10.0)
            try:
                with conn:
                    return fn(conn)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise DirectoryStoreError("session", str(exc)) from exc

    def get(self, slot: str = SESSION_USER_KEY) -> Optional[Any]:
        row = self._execute(
            lambda conn: conn.execute(
                "SELECT value FROM local_session WHERE slot = ?", (slot,)
            ).fetchone()
        )
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            # A slot that cannot be parsed is treated as signed out.
            self.delete(slot)
            return None

    def set(self, value: Any, slot: str = SESSION_USER_KEY) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        self._execute(
            lambda conn: conn.execute(
                "INSERT INTO local_session (slot, value) VALUES (?, ?) "
                "ON CONFLICT(slot) DO UPDATE SET value = excluded.value",
                (slot, payload),
            )
        )

    def delete(self, slot: str = SESSION_USER_KEY) -> None:
        self._execute(
            lambda conn: conn.execute("DELETE FROM local_session WHERE slot = ?", (slot,))
        )
