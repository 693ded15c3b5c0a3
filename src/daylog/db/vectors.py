"""Vector serialization and per-model sqlite-vec virtual table management."""

from __future__ import annotations

import json
import math
import re
import sqlite3
from collections.abc import Sequence

from daylog.errors import MalformedVectorError

# Stored vectors shorter than this are treated as corrupt.
MIN_VECTOR_LENGTH = 8


def serialize_vector(vector: Sequence[float]) -> str:
    """Return the JSON text stored in ``embeddings.vector_json``."""
    return json.dumps([float(x) for x in vector])


def decode_vector(raw: str) -> list[float]:
    """Parse a stored vector, raising MalformedVectorError if unusable.

    A usable vector is a JSON array of at least MIN_VECTOR_LENGTH finite numbers.
    """
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedVectorError(f"vector is not valid JSON: {exc}") from exc
    if not isinstance(value, list):
        raise MalformedVectorError("vector is not a JSON array")
    if len(value) < MIN_VECTOR_LENGTH:
        raise MalformedVectorError(
            f"vector has {len(value)} values, expected at least {MIN_VECTOR_LENGTH}"
        )
    try:
        floats = [float(x) for x in value]
    except (TypeError, ValueError) as exc:
        raise MalformedVectorError(f"vector contains a non-numeric value: {exc}") from exc
    if not all(math.isfinite(x) for x in floats):
        raise MalformedVectorError("vector contains a non-finite value")
    return floats


def parse_vector(raw: str | None) -> list[float] | None:
    """Return the stored vector, or None if it is absent or malformed."""
    if raw is None:
        return None
    try:
        return decode_vector(raw)
    except MalformedVectorError:
        return None


def model_to_slug(model: str) -> str:
    """Convert a model key to a valid table name suffix.

    Examples:
        "localhash:v1" -> "localhash_v1"
        "remote:gemini/text-embedding-004" -> "remote_gemini_text_embedding_004"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vec table name for a model slug."""
    return f"vec_index_{model_slug}"


def _check_slug(model_slug: str) -> None:
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}' — use model_to_slug() to sanitize."
        )


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_index_{model_slug} virtual table if it doesn't already exist.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized model identifier (use model_to_slug() to generate).
        dimensions: Embedding vector dimensions (e.g. 256 for localhash:v1).

    Returns:
        The table name (vec_index_{model_slug}).
    """
    _check_slug(model_slug)
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    existing = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0(embedding float[{dimensions}])"
        )
        conn.commit()

    return table


def list_vec_tables(conn: sqlite3.Connection) -> list[str]:
    """Return the names of all vec_index_* virtual tables."""
    return [
        r[0]
        for r in conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE 'vec_index_%' "
            "AND sql LIKE 'CREATE VIRTUAL TABLE%'"
        ).fetchall()
    ]


def drop_vec_table(conn: sqlite3.Connection, table: str) -> None:
    """Drop a vec_index_* virtual table (its shadow tables go with it)."""
    if not re.fullmatch(r"vec_index_[a-z0-9_]+", table):
        raise ValueError(f"Refusing to drop non-index table '{table}'")
    conn.execute(f"DROP TABLE IF EXISTS {table}")
    conn.commit()
