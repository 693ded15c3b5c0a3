"""Tests for the Daylog service facade."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from daylog.config import load_config
from daylog.errors import NotFoundError, ValidationError
from daylog.service import Daylog


@pytest.fixture
def app(tmp_path: Path):
    (tmp_path / "daylog.yaml").write_text(
        "embedding:\n  provider: localhash\n", encoding="utf-8"
    )
    cfg = load_config(tmp_path, global_config_path=tmp_path / "missing.yaml")
    with Daylog.open(cfg) as instance:
        yield instance


def test_open_creates_database(app, tmp_path):
    assert (tmp_path / "data" / "journal.sqlite").exists()


def test_entries_round_trip_through_query(app):
    async def body():
        created = await app.create_entry("2026/01/25", "Planning", "Designed the schema.")
        await app.create_entry("2026-01-26", "Build", "Implemented the store.")
        return created, await app.query_rag("what did I do on 2026/01/25?")

    created, result = asyncio.run(body())
    assert created["date"] == "2026-01-25"
    assert created["embedded"] is True
    assert result["date_filter"] == "2026-01-25"
    assert [h["title"] for h in result["hits"]] == ["Planning"]
    assert result["answer"] == "- Planning: Designed the schema."


def test_item_crud(app):
    async def body():
        item = await app.create_item("T", "C", source="web", tags=["a"])
        updated = await app.update_item(item["id"], title="T2")
        listed = await app.list_items()
        fetched = await app.get_item(item["id"])
        deleted = await app.delete_item(item["id"])
        again = await app.delete_item(item["id"])
        return item, updated, listed, fetched, deleted, again

    item, updated, listed, fetched, deleted, again = asyncio.run(body())
    assert updated["title"] == "T2"
    assert updated["created_at"] == item["created_at"]
    assert listed == [updated]
    assert fetched == updated
    assert deleted == {"deleted": True}
    assert again == {"deleted": False}


def test_item_errors(app):
    with pytest.raises(ValidationError):
        asyncio.run(app.create_item("", "C"))
    with pytest.raises(NotFoundError):
        asyncio.run(app.update_item("missing", title="T"))
    assert asyncio.run(app.get_item("missing")) is None


def test_items_are_written_to_data_dir(app, tmp_path):
    asyncio.run(app.create_item("T", "C"))
    assert (tmp_path / "data" / "items.json").exists()


def test_reindex_all(app):
    async def body():
        await app.create_item("T", "Some content to index.")
        return await app.reindex_all()

    assert asyncio.run(body()) == {"items": 1, "chunks": 1}
    assert app.index.count() == 1


def test_runtime_model_info(app):
    info = app.runtime_model_info()
    assert info["embeddings"] == {
        "provider": "localhash",
        "configured_provider": "localhash",
        "model": "localhash:v1",
        "model_key": "localhash:v1",
        "enabled": True,
    }
    assert info["llm"]["model"] == "gemini/gemini-1.5-flash"
    assert info["llm"]["enabled"] is False
