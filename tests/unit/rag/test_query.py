"""Tests for the query engine and entry registration."""

from __future__ import annotations

import asyncio
import json

import pytest

from daylog.db.repository import EntryRepository
from daylog.errors import (
    DimensionMismatchError,
    ProviderAuthError,
    ProviderQuotaError,
    ValidationError,
)
from daylog.providers.embeddings import EmbeddingGateway, LocalHashEmbeddings
from daylog.rag.query import (
    EMPTY_QUESTION_ANSWER,
    NOTE_EMBEDDINGS_DISABLED,
    NOTE_MISSING_VECTORS,
    NOTE_SYNTHESIS_FAILED,
    QueryEngine,
)
from daylog.rag.scoring import NO_MATCHES


class _StubSynth:
    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.calls: list[tuple] = []

    async def synthesize(self, question, date_filter, contexts):
        self.calls.append((question, date_filter, list(contexts)))
        if self.error is not None:
            raise self.error
        return self.answer


class _RaisingGateway(EmbeddingGateway):
    def __init__(self, error):
        super().__init__(LocalHashEmbeddings())
        self.error = error

    async def embed(self, text):
        raise self.error


@pytest.fixture
def repo(tmp_db):
    return EntryRepository(tmp_db)


def _engine(repo, gateway=None, synth=None, top_k=5):
    return QueryEngine(repo, gateway or EmbeddingGateway(None), synth, top_k=top_k)


# ---------------------------------------------------------------------------
# query()
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_question(repo, text):
    synth = _StubSynth("never")
    result = asyncio.run(_engine(repo, synth=synth).query(text))
    assert result.answer == EMPTY_QUESTION_ANSWER
    assert result.hits == []
    assert result.note == ""
    assert synth.calls == []


def test_dated_query_with_embeddings_disabled(repo):
    engine = _engine(repo)

    async def body():
        await engine.create_entry("2026/01/25", "Planning", "Designed the schema.")
        await engine.create_entry("2026-01-26", "Build", "Implemented the store.")
        return await engine.query("2026年1月25日に何をやった？", top_k=5)

    result = asyncio.run(body())
    assert result.date_filter == "2026-01-25"
    assert [h.title for h in result.hits] == ["Planning"]
    assert result.hits[0].score == 0.0
    assert "Planning: Designed the schema." in result.answer
    assert NOTE_EMBEDDINGS_DISABLED in result.note
    assert "Date filter: 2026-01-25" in result.note
    assert NOTE_MISSING_VECTORS in result.note


def test_identical_text_scores_one(repo):
    engine = _engine(repo, gateway=EmbeddingGateway(LocalHashEmbeddings()))

    async def body():
        await engine.create_entry("2026-01-25", "Planning", "Designed the schema.")
        await engine.create_entry("2026-01-26", "Build", "Implemented the store.")
        # Same text as the stored document, so local hashing yields cosine 1.0.
        return await engine.query("2026-01-25\nPlanning\nDesigned the schema.")

    result = asyncio.run(body())
    assert result.hits[0].title == "Planning"
    assert result.hits[0].score == pytest.approx(1.0)
    assert NOTE_MISSING_VECTORS not in result.note
    assert NOTE_EMBEDDINGS_DISABLED not in result.note


def test_undated_fallback_lists_dates(repo):
    engine = _engine(repo)

    async def body():
        await engine.create_entry("2026-01-25", "Planning", "Designed the schema.")
        await engine.create_entry("2026-01-26", "Build", "Implemented the store.")
        return await engine.query("what have I been doing?")

    result = asyncio.run(body())
    assert result.date_filter is None
    assert result.answer == "- [2026-01-26] Build\n- [2026-01-25] Planning"


def test_no_matching_date(repo):
    engine = _engine(repo)

    async def body():
        await engine.create_entry("2026-01-25", "Planning", "Designed the schema.")
        return await engine.query("what about 2025/12/31?")

    result = asyncio.run(body())
    assert result.hits == []
    assert result.answer == NO_MATCHES
    assert NOTE_MISSING_VECTORS not in result.note


def test_top_k_is_clamped(repo):
    engine = _engine(repo)

    async def body():
        for i in range(25):
            await engine.create_entry("2026-01-25", f"t{i}", "c")
        low = await engine.query("anything", top_k=0)
        high = await engine.query("anything", top_k=100)
        return low, high

    low, high = asyncio.run(body())
    assert len(low.hits) == 1
    assert len(high.hits) == 20
    # equal scores → newest id first
    assert high.hits[0].title == "t24"


def test_only_vectors_of_the_query_model_are_compared(repo):
    a = repo.add_entry("2026-01-25", "a", "x")
    repo.upsert_embedding(a.id, "remote:other", [0.1] * 256)
    engine = _engine(repo, gateway=EmbeddingGateway(LocalHashEmbeddings()))
    result = asyncio.run(engine.query("x"))
    assert result.hits[0].has_vector is False
    assert result.hits[0].score == 0.0


def test_malformed_stored_vector_scores_zero(repo):
    a = repo.add_entry("2026-01-25", "a", "x")
    repo._conn.execute(
        "INSERT INTO embeddings (entry_id, model, vector_json, dimensions) VALUES (?, ?, ?, ?)",
        (a.id, "localhash:v1", "[1, 2]", 2),
    )
    repo._conn.commit()
    engine = _engine(repo, gateway=EmbeddingGateway(LocalHashEmbeddings()))
    result = asyncio.run(engine.query("x"))
    assert result.hits[0].score == 0.0
    assert NOTE_MISSING_VECTORS in result.note


def test_query_embedding_failure_degrades(repo, caplog):
    repo.add_entry("2026-01-25", "a", "x")
    engine = _engine(repo, gateway=_RaisingGateway(RuntimeError("boom")))
    result = asyncio.run(engine.query("x"))
    assert "Query embedding failed: fatal" in result.note
    assert len(result.hits) == 1
    assert "query embedding failed" in caplog.text


def test_synthesized_answer_is_used(repo):
    synth = _StubSynth("- You designed the schema.")
    engine = _engine(repo, synth=synth)

    async def body():
        await engine.create_entry("2026-01-25", "Planning", "Designed the schema.")
        return await engine.query("2026/01/25?")

    result = asyncio.run(body())
    assert result.answer == "- You designed the schema."
    question, date_filter, contexts = synth.calls[0]
    assert date_filter == "2026-01-25"
    assert contexts[0].title == "Planning"


def test_synthesis_failure_falls_back_with_note(repo):
    engine = _engine(repo, synth=_StubSynth(error=ProviderQuotaError("quota exceeded")))

    async def body():
        await engine.create_entry("2026-01-25", "Planning", "Designed the schema.")
        return await engine.query("2026/01/25?")

    result = asyncio.run(body())
    assert result.answer == "- Planning: Designed the schema."
    assert NOTE_SYNTHESIS_FAILED in result.note


def test_blank_synthesis_uses_fallback(repo):
    engine = _engine(repo, synth=_StubSynth(None))

    async def body():
        await engine.create_entry("2026-01-25", "Planning", "Designed the schema.")
        return await engine.query("2026/01/25?")

    result = asyncio.run(body())
    assert result.answer == "- Planning: Designed the schema."
    assert NOTE_SYNTHESIS_FAILED not in result.note


def test_result_to_dict(repo):
    engine = _engine(repo)
    asyncio.run(engine.create_entry("2026-01-25", "Planning", "Designed the schema."))
    data = asyncio.run(engine.query("2026/01/25")).to_dict()
    assert set(data) == {"answer", "hits", "note", "date_filter"}
    assert set(data["hits"][0]) == {"id", "date", "title", "content", "score"}


# ---------------------------------------------------------------------------
# create_entry()
# ---------------------------------------------------------------------------


def test_create_entry_normalizes_date_and_embeds(repo):
    engine = _engine(repo, gateway=EmbeddingGateway(LocalHashEmbeddings()))
    result = asyncio.run(engine.create_entry("2026年1月5日", " Planning ", "Designed the schema."))
    assert result["date"] == "2026-01-05"
    assert result["embedded"] is True
    stored = repo.get_embedding_json(result["id"], "localhash:v1")
    assert stored is not None


def test_create_entry_embeds_date_title_content(repo):
    engine = _engine(repo, gateway=EmbeddingGateway(LocalHashEmbeddings()))
    result = asyncio.run(engine.create_entry("2026/01/25", "Planning", "Designed the schema."))
    expected = LocalHashEmbeddings().embed_sync("2026-01-25\nPlanning\nDesigned the schema.")
    assert json.loads(repo.get_embedding_json(result["id"], "localhash:v1")) == pytest.approx(expected)


def test_create_entry_keeps_unparseable_date(repo):
    engine = _engine(repo)
    result = asyncio.run(engine.create_entry(" last tuesday ", "t", "c"))
    assert result["date"] == "last tuesday"
    assert result["embedded"] is False


def test_create_entry_validation(repo):
    engine = _engine(repo)
    with pytest.raises(ValidationError):
        asyncio.run(engine.create_entry("2026-01-25", "", "c"))
    assert repo.count_entries() == 0


def test_create_entry_keeps_record_when_embedding_fails(repo, caplog):
    engine = _engine(repo, gateway=_RaisingGateway(RuntimeError("provider down")))
    result = asyncio.run(engine.create_entry("2026-01-25", "t", "c"))
    assert result["embedded"] is False
    assert repo.get_entry(result["id"]) is not None
    assert "saved without embedding" in caplog.text


def test_create_entry_surfaces_rejected_credentials(repo):
    engine = _engine(repo, gateway=_RaisingGateway(ProviderAuthError("invalid api key")))
    with pytest.raises(ProviderAuthError, match="invalid api key"):
        asyncio.run(engine.create_entry("2026-01-25", "Planning", "Designed the schema."))

    [entry] = repo.list_entries()
    assert entry.title == "Planning"
    assert repo.get_embedding_json(entry.id, "localhash:v1") is None


def test_create_entry_dimension_mismatch_is_not_embedded(repo):
    first = repo.add_entry("2026-01-24", "old", "x")
    repo.upsert_embedding(first.id, "localhash:v1", [0.5] * 8)
    engine = _engine(repo, gateway=EmbeddingGateway(LocalHashEmbeddings()))
    result = asyncio.run(engine.create_entry("2026-01-25", "t", "c"))
    assert result["embedded"] is False
    with pytest.raises(DimensionMismatchError):
        repo.upsert_embedding(result["id"], "localhash:v1", [0.1] * 256)
