# src/meu_schedule/storage/state_repo.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from ..core.errors import PersistenceError

logger = logging.getLogger(__name__)


class SqliteStateRepo:
    """
    SQLite document store: one JSON state document per user id.

    The schema is intentionally simple:
    - create table if missing
    - whole-document upsert on save (last write wins)

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "schedule.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_documents()
        except sqlite3.Error:
            total = -1
        logger.info("SqliteStateRepo ready db=%s documents=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schedules (
                    user_id TEXT PRIMARY KEY,
                    doc TEXT NOT NULL DEFAULT '{}',
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    # ---- public API ----

    def count_documents(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM schedules").fetchone()
            return int(n)
        finally:
            conn.close()

    def load(self, user_id: str) -> dict[str, Any] | None:
        if not user_id:
            raise PersistenceError("user_id is required")
        try:
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT doc FROM schedules WHERE user_id = ?", (user_id,)
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"load failed for user {user_id}: {e}") from e

        if row is None:
            logger.info("No stored schedule for user=%s", user_id)
            return None

        try:
            val = json.loads(row["doc"] or "{}")
        except json.JSONDecodeError as e:
            raise PersistenceError(f"stored document for user {user_id} is not valid JSON") from e
        # Non-object documents are passed through; the store's Load command rejects them.
        return val

    def save(self, user_id: str, doc: dict[str, Any]) -> None:
        if not user_id:
            raise PersistenceError("user_id is required")
        try:
            payload = json.dumps(doc, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"state document is not JSON-serializable: {e}") from e

        try:
            conn = self._get_conn()
            try:
                conn.execute(
                    """
                    INSERT INTO schedules(user_id, doc, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(user_id) DO UPDATE SET
                        doc = excluded.doc,
                        updated_at = excluded.updated_at
                    """,
                    (user_id, payload, time.time()),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(f"save failed for user {user_id}: {e}") from e

        logger.debug("Saved schedule user=%s bytes=%d", user_id, len(payload))

