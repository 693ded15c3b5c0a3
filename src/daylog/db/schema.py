"""Database schema DDL and initialization."""

from __future__ import annotations

import sqlite3

_CREATE_ENTRIES = """
CREATE TABLE IF NOT EXISTS entries (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    date        TEXT NOT NULL,
    title       TEXT NOT NULL,
    content     TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_entries_date ON entries(date);
"""

# One vector per entry per embedding-model identity.
_CREATE_EMBEDDINGS = """
CREATE TABLE IF NOT EXISTS embeddings (
    entry_id    INTEGER NOT NULL REFERENCES entries(id) ON DELETE CASCADE,
    model       TEXT NOT NULL,
    vector_json TEXT NOT NULL,
    dimensions  INTEGER NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (entry_id, model)
);
"""

# Rebuildable projection of catalog item chunks. rowid is shared with the
# vec_index_* table that holds the chunk vectors.
_CREATE_INDEX_CHUNKS = """
CREATE TABLE IF NOT EXISTS index_chunks (
    rowid       INTEGER PRIMARY KEY,
    chunk_id    TEXT NOT NULL UNIQUE,
    item_id     TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    text        TEXT NOT NULL,
    metadata    TEXT NOT NULL DEFAULT '{}',
    model_key   TEXT NOT NULL,
    indexed_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

CURRENT_VERSION = 1


def initialize(conn: sqlite3.Connection) -> None:
    """Initialize the database schema via the migration runner (idempotent)."""
    from daylog.db.migrations import run_migrations

    run_migrations(conn)
