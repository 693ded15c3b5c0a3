"""Rebuildable vector index for catalog item chunks.

SqliteVecIndex keeps chunk rows in ``index_chunks`` and their vectors in a
sqlite-vec ``vec_index_<model slug>`` table that shares the chunk rowid. The
index is a projection of the catalog store: reindex clears and refills it.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Sequence
from typing import Any, Protocol

from daylog.db.vectors import (
    drop_vec_table,
    ensure_vec_table,
    list_vec_tables,
    model_to_slug,
    serialize_vector,
    vec_table_name,
)
from daylog.errors import IndexClearError

logger = logging.getLogger(__name__)


class VectorIndex(Protocol):
    """Minimal vector-store surface used by the reindex pipeline."""

    def ensure(self, model_key: str, dimensions: int | None) -> None: ...

    def clear(self) -> None: ...

    def upsert(
        self,
        ids: Sequence[str],
        vectors: Sequence[Sequence[float]],
        metadatas: Sequence[dict[str, Any]],
        documents: Sequence[str],
    ) -> None: ...


class SqliteVecIndex:
    """VectorIndex backed by sqlite-vec in the journal database.

    Args:
        conn: Open connection with sqlite-vec loaded and the schema applied.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._model_key: str | None = None
        self._dimensions: int | None = None

    @property
    def table(self) -> str | None:
        if self._model_key is None:
            return None
        return vec_table_name(model_to_slug(self._model_key))

    def ensure(self, model_key: str, dimensions: int | None) -> None:
        """Select the model key new vectors are stored under.

        Creates the vec table when *dimensions* is known; with None (nothing to
        index yet) only the model key is recorded.
        """
        self._model_key = model_key
        self._dimensions = dimensions
        if dimensions is not None:
            ensure_vec_table(self._conn, model_to_slug(model_key), dimensions)

    def clear(self) -> None:
        """Delete every chunk row and drop every vec table.

        Dropping (rather than emptying) the vec tables lets the next run use a
        different vector dimension.

        Raises:
            IndexClearError: If SQLite rejects the bulk delete.
        """
        try:
            for table in list_vec_tables(self._conn):
                drop_vec_table(self._conn, table)
            self._conn.execute("DELETE FROM index_chunks")
            self._conn.commit()
        except sqlite3.Error as exc:
            self._conn.rollback()
            raise IndexClearError(f"could not clear vector index: {exc}") from exc

    def upsert(
        self,
        ids: Sequence[str],
        vectors: Sequence[Sequence[float]],
        metadatas: Sequence[dict[str, Any]],
        documents: Sequence[str],
    ) -> None:
        """Insert or replace chunks by id.

        Raises:
            RuntimeError: If ensure() was not called first.
            ValueError: If the argument lists differ in length.
        """
        if self._model_key is None:
            raise RuntimeError("SqliteVecIndex.ensure() must be called before upsert()")
        if not (len(ids) == len(vectors) == len(metadatas) == len(documents)):
            raise ValueError("ids, vectors, metadatas and documents must have equal length")
        if not ids:
            return

        table = ensure_vec_table(self._conn, model_to_slug(self._model_key), len(vectors[0]))

        for chunk_id, vector, meta, text in zip(ids, vectors, metadatas, documents):
            item_id, _, index = chunk_id.rpartition(":")
            self._conn.execute(
                """
                INSERT INTO index_chunks (chunk_id, item_id, chunk_index, text, metadata, model_key)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(chunk_id) DO UPDATE SET
                    item_id = excluded.item_id,
                    chunk_index = excluded.chunk_index,
                    text = excluded.text,
                    metadata = excluded.metadata,
                    model_key = excluded.model_key,
                    indexed_at = datetime('now')
                """,
                (
                    chunk_id,
                    str(meta.get("item_id", item_id)),
                    int(meta.get("chunk", index or 0)),
                    text,
                    json.dumps(meta, ensure_ascii=False),
                    self._model_key,
                ),
            )
            rowid = self._conn.execute(
                "SELECT rowid FROM index_chunks WHERE chunk_id = ?", (chunk_id,)
            ).fetchone()[0]
            # vec0 has no upsert; replace by delete + insert.
            self._conn.execute(f"DELETE FROM {table} WHERE rowid = ?", (rowid,))
            self._conn.execute(
                f"INSERT INTO {table}(rowid, embedding) VALUES (?, ?)",
                (rowid, serialize_vector(vector)),
            )

        self._conn.commit()
        logger.debug("indexed %d chunks into %s", len(ids), table)

    def query(self, vector: Sequence[float], k: int = 5) -> list[tuple[str, float]]:
        """Return up to *k* ``(chunk_id, distance)`` pairs, nearest first."""
        table = self.table
        if table is None or table not in list_vec_tables(self._conn):
            return []
        rows = self._conn.execute(
            f"SELECT rowid, distance FROM {table} WHERE embedding MATCH ? "
            "ORDER BY distance LIMIT ?",
            (serialize_vector(vector), k),
        ).fetchall()

        results: list[tuple[str, float]] = []
        for row in rows:
            chunk = self._conn.execute(
                "SELECT chunk_id FROM index_chunks WHERE rowid = ?", (row["rowid"],)
            ).fetchone()
            if chunk is not None:
                results.append((chunk["chunk_id"], row["distance"]))
        return results

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM index_chunks").fetchone()[0]

    def chunk_ids(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT chunk_id FROM index_chunks ORDER BY item_id, chunk_index"
        ).fetchall()
        return [r["chunk_id"] for r in rows]
