"""Tests for the reindex pipeline."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock

import pytest

from daylog.catalog.store import CatalogStore
from daylog.errors import EmbeddingError, IndexClearError
from daylog.ingest.chunker import TextChunker
from daylog.ingest.indexer import Reindexer
from daylog.ingest.vector_index import SqliteVecIndex
from daylog.providers.embeddings import EmbeddingGateway, LocalHashEmbeddings


@pytest.fixture
def store(tmp_path):
    return CatalogStore(tmp_path / "items.json")


def _reindexer(store, index, gateway=None, chunker=None):
    return Reindexer(
        store,
        gateway or EmbeddingGateway(LocalHashEmbeddings(dimensions=32)),
        index,
        chunker or TextChunker(chunk_size=100, overlap=20),
    )


def _seed(store):
    async def body():
        a = await store.create("Alpha", "word " * 60, source="notes", tags=["x"])
        b = await store.create("Beta", "short item")
        return a, b

    return asyncio.run(body())


def test_reindex_counts_items_and_chunks(store, tmp_db):
    a, b = _seed(store)
    index = SqliteVecIndex(tmp_db)
    result = asyncio.run(_reindexer(store, index).reindex_all())

    expected_chunks = len(TextChunker(100, 20).split(a.content)) + 1
    assert result.items == 2
    assert result.chunks == expected_chunks
    assert result.to_dict() == {"items": 2, "chunks": expected_chunks}
    assert index.count() == expected_chunks


def test_reindex_twice_gives_same_ids(store, tmp_db):
    a, b = _seed(store)
    index = SqliteVecIndex(tmp_db)
    reindexer = _reindexer(store, index)

    first = asyncio.run(reindexer.reindex_all())
    ids_first = index.chunk_ids()
    second = asyncio.run(reindexer.reindex_all())

    assert first == second
    assert index.chunk_ids() == ids_first
    assert f"{b.id}:0" in ids_first
    assert f"{a.id}:0" in ids_first


def test_reindex_metadata(store, tmp_db):
    a, _ = _seed(store)
    asyncio.run(_reindexer(store, SqliteVecIndex(tmp_db)).reindex_all())
    row = tmp_db.execute(
        "SELECT metadata, model_key FROM index_chunks WHERE chunk_id = ?", (f"{a.id}:0",)
    ).fetchone()
    assert json.loads(row["metadata"]) == {
        "item_id": a.id,
        "title": "Alpha",
        "source": "notes",
        "tags": ["x"],
        "chunk": 0,
    }
    assert row["model_key"] == "localhash:v1-32"


def test_reindex_drops_deleted_items(store, tmp_db):
    a, b = _seed(store)
    index = SqliteVecIndex(tmp_db)
    reindexer = _reindexer(store, index)
    asyncio.run(reindexer.reindex_all())

    asyncio.run(store.delete(a.id))
    result = asyncio.run(reindexer.reindex_all())
    assert result.items == 1
    assert index.chunk_ids() == [f"{b.id}:0"]


def test_reindex_empty_store(store, tmp_db):
    index = SqliteVecIndex(tmp_db)
    result = asyncio.run(_reindexer(store, index).reindex_all())
    assert result.to_dict() == {"items": 0, "chunks": 0}
    assert index.count() == 0


@pytest.mark.parametrize("error", [IndexClearError("no bulk delete"), NotImplementedError()])
def test_clear_failure_is_tolerated(store, error, caplog):
    _seed(store)
    index = MagicMock()
    index.clear.side_effect = error
    result = asyncio.run(_reindexer(store, index).reindex_all())

    assert result.items == 2
    index.ensure.assert_called_once()
    index.upsert.assert_called_once()
    ids = index.upsert.call_args.args[0]
    assert len(ids) == result.chunks
    assert "clear failed" in caplog.text


def test_reindex_with_embeddings_disabled_fails(store, tmp_db):
    _seed(store)
    with pytest.raises(EmbeddingError):
        asyncio.run(
            _reindexer(store, SqliteVecIndex(tmp_db), gateway=EmbeddingGateway(None)).reindex_all()
        )
