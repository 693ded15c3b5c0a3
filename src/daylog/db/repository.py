"""Repository for dated entries and their per-model embeddings.

Entry insertion is a single INSERT + commit; embedding insertion is an
idempotent upsert keyed by (entry_id, model). SQLite's own locking (WAL, one
writer, many readers) serializes writers.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence

from daylog.db.models import DatedEntry
from daylog.db.vectors import serialize_vector
from daylog.errors import DimensionMismatchError, ValidationError


class EntryRepository:
    """Data access layer for entries and entry embeddings.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with the schema initialised
                (see daylog.db.schema.initialize).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def add_entry(self, date: str, title: str, content: str) -> DatedEntry:
        """Insert a new entry and return it with its assigned id.

        Title and content are trimmed; both must be non-empty.

        Raises:
            ValidationError: If date, title or content is empty after trimming.
        """
        date = (date or "").strip()
        title = (title or "").strip()
        content = (content or "").strip()
        for name, value in (("date", date), ("title", title), ("content", content)):
            if not value:
                raise ValidationError(f"{name} is required")

        cur = self._conn.execute(
            "INSERT INTO entries (date, title, content) VALUES (?, ?, ?)",
            (date, title, content),
        )
        self._conn.commit()
        entry = self.get_entry(int(cur.lastrowid))
        if entry is None:
            raise RuntimeError(f"entry {cur.lastrowid} missing right after insert")
        return entry

    def get_entry(self, entry_id: int) -> DatedEntry | None:
        """Return an entry by id, or None if not found."""
        row = self._conn.execute(
            "SELECT id, date, title, content, created_at FROM entries WHERE id = ?",
            (entry_id,),
        ).fetchone()
        return _row_to_entry(row) if row else None

    def list_entries(self) -> list[DatedEntry]:
        """Return all entries, newest (highest id) first."""
        rows = self._conn.execute(
            "SELECT id, date, title, content, created_at FROM entries ORDER BY id DESC"
        ).fetchall()
        return [_row_to_entry(r) for r in rows]

    def count_entries(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def upsert_embedding(
        self, entry_id: int, model_key: str, vector: Sequence[float]
    ) -> None:
        """Insert or replace the vector for (*entry_id*, *model_key*).

        Raises:
            ValueError: If *vector* is empty.
            DimensionMismatchError: If other vectors stored under *model_key*
                have a different length.
        """
        if not vector:
            raise ValueError("vector must not be empty")
        expected = self.embedding_dimensions(model_key, exclude_entry=entry_id)
        if expected is not None and expected != len(vector):
            raise DimensionMismatchError(model_key, expected, len(vector))

        self._conn.execute(
            """
            INSERT INTO embeddings (entry_id, model, vector_json, dimensions)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(entry_id, model) DO UPDATE SET
                vector_json = excluded.vector_json,
                dimensions = excluded.dimensions,
                created_at = datetime('now')
            """,
            (entry_id, model_key, serialize_vector(vector), len(vector)),
        )
        self._conn.commit()

    def get_embedding_json(self, entry_id: int, model_key: str) -> str | None:
        """Return the raw stored vector JSON, or None if absent."""
        row = self._conn.execute(
            "SELECT vector_json FROM embeddings WHERE entry_id = ? AND model = ?",
            (entry_id, model_key),
        ).fetchone()
        return row["vector_json"] if row else None

    def embedding_dimensions(
        self, model_key: str, exclude_entry: int | None = None
    ) -> int | None:
        """Return the vector length already used under *model_key*, if any."""
        sql = "SELECT dimensions FROM embeddings WHERE model = ?"
        params: list[object] = [model_key]
        if exclude_entry is not None:
            sql += " AND entry_id != ?"
            params.append(exclude_entry)
        row = self._conn.execute(sql + " LIMIT 1", params).fetchone()
        return row["dimensions"] if row else None

    def count_embeddings(self, model_key: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM embeddings WHERE model = ?", (model_key,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Query candidates
    # ------------------------------------------------------------------

    def list_candidates(
        self, model_key: str, date: str | None = None
    ) -> list[tuple[DatedEntry, str | None]]:
        """Return (entry, raw vector JSON or None) pairs, newest id first.

        Only vectors stored under *model_key* are joined. When *date* is given
        only entries with exactly that date are returned.
        """
        sql = """
            SELECT e.id, e.date, e.title, e.content, e.created_at, em.vector_json
            FROM entries e
            LEFT JOIN embeddings em
              ON em.entry_id = e.id AND em.model = ?
        """
        params: list[object] = [model_key]
        if date is not None:
            sql += " WHERE e.date = ?"
            params.append(date)
        sql += " ORDER BY e.id DESC"

        rows = self._conn.execute(sql, params).fetchall()
        return [(_row_to_entry(r), r["vector_json"]) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_entry(row: sqlite3.Row) -> DatedEntry:
    return DatedEntry(
        id=row["id"],
        date=row["date"],
        title=row["title"],
        content=row["content"],
        created_at=row["created_at"],
    )
