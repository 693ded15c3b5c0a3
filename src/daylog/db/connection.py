"""SQLite connection for the journal database.

The journal file holds entries, their per-model embeddings and the rebuildable
chunk index (vec0 tables from sqlite-vec). One process owns one connection:
WAL lets that single writer run alongside readers, and busy_timeout makes a
second process wait for the write lock instead of failing with
"database is locked".
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import sqlite_vec

from daylog.db.schema import initialize

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000


class Database:
    """Opens connections to one journal file.

    Args:
        db_path: SQLite file; it and its parent directories are created on
            first connect.
        busy_timeout_ms: How long a connection waits for another writer's
            lock before raising ``sqlite3.OperationalError``.
    """

    def __init__(self, db_path: Path | str, *, busy_timeout_ms: int = BUSY_TIMEOUT_MS) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        """Open a raw connection with sqlite-vec loaded; no schema changes."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout_ms / 1000)
        conn.row_factory = sqlite3.Row
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
        mode = conn.execute("PRAGMA journal_mode = WAL").fetchone()[0]
        if str(mode).lower() != "wal":
            logger.warning("journal %s runs in %s mode; WAL is unavailable", self.db_path, mode)
        else:
            # Durable at checkpoints; a crash can lose only the last commits.
            conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    def open(self) -> sqlite3.Connection:
        """Connect and migrate the journal schema to the current version."""
        conn = self.connect()
        initialize(conn)
        logger.debug("opened journal database %s", self.db_path)
        return conn

    def __enter__(self) -> sqlite3.Connection:
        self._conn = self.open()
        return self._conn

    def __exit__(self, *args: object) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
