"""SQLite persistence for drafted file attachments.

One database per origin (data/regDraftDB.db), one table ``files`` keyed by the
file input's field name. Only the latest file per field is kept.

Every method is synchronous and safe to hand to ``asyncio.to_thread``. None of
them raise: when the database cannot be opened the store runs degraded, every
call becomes a no-op and a single warning is logged.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

from app.page import DraftFile
from app.schema import FileDraftRecord

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024


class BlobDraftStore:
    """Key/blob store for file drafts."""

    def __init__(self, db_path: Path, max_file_size: int = MAX_FILE_SIZE) -> None:
        self.db_path = Path(db_path)
        self.max_file_size = max_file_size
        self.available = False
        self._opened = False
        self._warned = False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _degrade(self, reason: object) -> None:
        self.available = False
        if not self._warned:
            self._warned = True
            logger.warning("File drafts disabled, blob store unavailable: %s", reason)

    def open(self) -> bool:
        """Create the table if needed. Returns whether the store is usable."""
        self._opened = True
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS files (
                        key TEXT PRIMARY KEY,
                        blob BLOB NOT NULL,
                        name TEXT NOT NULL DEFAULT '',
                        mime_type TEXT NOT NULL DEFAULT '',
                        last_modified INTEGER NOT NULL DEFAULT 0,
                        size INTEGER NOT NULL DEFAULT 0
                    )
                """)
                conn.commit()
            finally:
                conn.close()
        except (OSError, sqlite3.Error) as e:
            self._degrade(e)
            return False
        self.available = True
        return True

    def _ready(self) -> bool:
        if not self._opened:
            self.open()
        return self.available

    def rejects(self, file: DraftFile) -> bool:
        """True when *file* is too large to be drafted."""
        return file.size > self.max_file_size

    # ── CRUD ─────────────────────────────────────────────────────────────

    def put(self, key: str, file: DraftFile) -> bool:
        if self.rejects(file):
            logger.warning(
                "Not drafting %s for %s: %d bytes exceeds %d",
                file.name, key, file.size, self.max_file_size,
            )
            return False
        if not self._ready():
            return False

        record = FileDraftRecord.from_file(key, file)
        try:
            conn = self._connect()
            try:
                conn.execute(
                    """INSERT OR REPLACE INTO files
                       (key, blob, name, mime_type, last_modified, size)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (record.key, sqlite3.Binary(record.blob), record.name,
                     record.mime_type, record.last_modified, record.size),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning("Could not store file draft for %s: %s", key, e)
            return False
        return True

    def get(self, key: str) -> FileDraftRecord | None:
        if not self._ready():
            return None
        try:
            conn = self._connect()
            try:
                row = conn.execute("SELECT * FROM files WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning("Could not read file draft for %s: %s", key, e)
            return None
        if row is None:
            return None
        d = dict(row)
        d["blob"] = bytes(d["blob"])
        return FileDraftRecord.from_dict(d)

    def keys(self) -> list[str]:
        if not self._ready():
            return []
        try:
            conn = self._connect()
            try:
                rows = conn.execute("SELECT key FROM files ORDER BY key").fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning("Could not list file drafts: %s", e)
            return []
        return [r["key"] for r in rows]

    def delete(self, key: str) -> None:
        self._execute("DELETE FROM files WHERE key = ?", (key,))

    def clear(self) -> None:
        self._execute("DELETE FROM files", ())

    def _execute(self, sql: str, params: tuple) -> None:
        if not self._ready():
            return
        try:
            conn = self._connect()
            try:
                conn.execute(sql, params)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.warning("File draft store write failed: %s", e)
