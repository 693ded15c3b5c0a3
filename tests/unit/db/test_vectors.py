"""Tests for vector parsing and per-model sqlite-vec virtual tables."""

from __future__ import annotations

import json

import pytest

from daylog.db.vectors import (
    decode_vector,
    drop_vec_table,
    ensure_vec_table,
    list_vec_tables,
    model_to_slug,
    parse_vector,
    serialize_vector,
    vec_table_name,
)
from daylog.errors import MalformedVectorError


# --- model_to_slug ---

@pytest.mark.parametrize("model,expected", [
    ("localhash:v1", "localhash_v1"),
    ("remote:gemini/text-embedding-004", "remote_gemini_text_embedding_004"),
    ("remote:openai/text-embedding-3-small", "remote_openai_text_embedding_3_small"),
    ("remote:cohere/embed-english-v3.0", "remote_cohere_embed_english_v3_0"),
])
def test_model_to_slug(model, expected):
    assert model_to_slug(model) == expected


def test_vec_table_name():
    assert vec_table_name(model_to_slug("localhash:v1")) == "vec_index_localhash_v1"


# --- parse_vector / decode_vector ---

def test_serialize_then_parse():
    vec = [0.1 * i for i in range(8)]
    assert parse_vector(serialize_vector(vec)) == pytest.approx(vec)


def test_parse_vector_none():
    assert parse_vector(None) is None


@pytest.mark.parametrize("raw", [
    "not json",
    json.dumps({"a": 1}),
    json.dumps([0.1, 0.2, 0.3]),          # shorter than 8
    json.dumps(["x"] * 8),
    json.dumps([1, 2, 3, 4, 5, 6, 7, None]),
])
def test_parse_vector_malformed_is_none(raw):
    assert parse_vector(raw) is None


def test_decode_vector_raises_malformed():
    with pytest.raises(MalformedVectorError, match="at least 8"):
        decode_vector("[1, 2]")


def test_decode_vector_rejects_non_finite():
    with pytest.raises(MalformedVectorError, match="non-finite"):
        decode_vector("[1, 2, 3, 4, 5, 6, 7, Infinity]")


def test_decode_vector_accepts_numeric_strings():
    assert decode_vector(json.dumps(["1", 2, 3, 4, 5, 6, 7, 8]))[0] == 1.0


# --- ensure_vec_table ---

def test_ensure_vec_table_creates_table(tmp_db):
    table = ensure_vec_table(tmp_db, "localhash_v1", dimensions=256)
    assert table == "vec_index_localhash_v1"
    row = tmp_db.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    assert row is not None


def test_ensure_vec_table_idempotent(tmp_db):
    table1 = ensure_vec_table(tmp_db, "localhash_v1", dimensions=256)
    table2 = ensure_vec_table(tmp_db, "localhash_v1", dimensions=256)
    assert table1 == table2
    assert list_vec_tables(tmp_db) == [table1]


def test_ensure_vec_table_insert_and_lookup(tmp_db):
    table = ensure_vec_table(tmp_db, "localhash_v1", dimensions=4)

    embedding = "[0.1, 0.2, 0.3, 0.4]"
    tmp_db.execute(f"INSERT INTO {table}(rowid, embedding) VALUES (42, ?)", (embedding,))

    row = tmp_db.execute(
        f"SELECT rowid FROM {table} WHERE embedding MATCH ? ORDER BY distance LIMIT 1",
        (embedding,),
    ).fetchone()
    assert row[0] == 42


def test_ensure_vec_table_invalid_slug(tmp_db):
    with pytest.raises(ValueError, match="model_slug"):
        ensure_vec_table(tmp_db, "invalid/slug!", dimensions=128)


def test_ensure_vec_table_invalid_dimensions(tmp_db):
    with pytest.raises(ValueError, match="dimensions"):
        ensure_vec_table(tmp_db, "valid_slug", dimensions=0)


# --- drop_vec_table ---

def test_drop_vec_table(tmp_db):
    table = ensure_vec_table(tmp_db, "localhash_v1", dimensions=8)
    drop_vec_table(tmp_db, table)
    assert list_vec_tables(tmp_db) == []


def test_drop_vec_table_refuses_other_tables(tmp_db):
    with pytest.raises(ValueError, match="Refusing"):
        drop_vec_table(tmp_db, "entries")
