"""daylog database layer."""

from daylog.db.connection import Database
from daylog.db.migrations import MIGRATIONS, run_migrations
from daylog.db.repository import EntryRepository
from daylog.db.schema import initialize
from daylog.db.vectors import (
    ensure_vec_table,
    model_to_slug,
    parse_vector,
    serialize_vector,
    vec_table_name,
)

__all__ = [
    "Database",
    "EntryRepository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "ensure_vec_table",
    "model_to_slug",
    "parse_vector",
    "serialize_vector",
    "vec_table_name",
]
