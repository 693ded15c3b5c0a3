"""Query engine: date filter + vector similarity over dated entries.

Pipeline for query():
  1. Reject empty questions with a usage hint (no provider calls).
  2. Extract a date filter from the question text.
  3. Embed the question; a disabled or failing gateway degrades to score 0.
  4. Load candidates (exact date match, or all entries) with the vectors
     stored under the model key that embedded the question.
  5. Score with cosine similarity, rank by (score, id) and truncate.
  6. Synthesize an answer from the hits, or fall back to a plain listing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from daylog.db.repository import EntryRepository
from daylog.db.vectors import parse_vector
from daylog.errors import ErrorKind
from daylog.providers.embeddings import Embedding, EmbeddingGateway
from daylog.rag.dates import extract_iso_date, normalize_date_to_iso
from daylog.rag.llm_client import classify_error
from daylog.rag.scoring import ScoredHit, cosine_similarity, fallback_answer, rank_hits
from daylog.rag.synthesis import AnswerSynthesizer, Context

logger = logging.getLogger(__name__)

EMPTY_QUESTION_ANSWER = "The question is empty. Example: what did I do on 2026/01/25?"
NOTE_EMBEDDINGS_DISABLED = "Embeddings are disabled (no API key configured?)."
NOTE_MISSING_VECTORS = (
    "Some entries have no embedding and scored 0 "
    "(re-register them after configuring embeddings)."
)
NOTE_SYNTHESIS_FAILED = "Answer synthesis failed; showing matching records."


@dataclass
class QueryResult:
    answer: str
    hits: list[ScoredHit] = field(default_factory=list)
    note: str = ""
    date_filter: str | None = None

    def to_dict(self) -> dict:
        return {
            "answer": self.answer,
            "hits": [h.to_dict() for h in self.hits],
            "note": self.note,
            "date_filter": self.date_filter,
        }


class QueryEngine:
    """Answer questions from dated entries and register new entries.

    Args:
        repo: Entry repository on an open connection.
        gateway: Embedding gateway used for both questions and entries.
        synthesizer: Answer generator; None always uses the fallback listing.
        top_k: Default number of hits (clamped to 1..20 per query).
    """

    def __init__(
        self,
        repo: EntryRepository,
        gateway: EmbeddingGateway,
        synthesizer: AnswerSynthesizer | None = None,
        top_k: int = 5,
    ) -> None:
        self.repo = repo
        self.gateway = gateway
        self.synthesizer = synthesizer
        self.top_k = top_k

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    async def query(
        self, text: str, top_k: int | None = None, model_key: str | None = None
    ) -> QueryResult:
        q = (text or "").strip()
        if not q:
            return QueryResult(answer=EMPTY_QUESTION_ANSWER)

        date_filter = extract_iso_date(q)
        notes: list[str] = []

        query_vec: list[float] | None = None
        effective_key = model_key or self.gateway.model_key
        try:
            embedding = await self.gateway.embed(q)
        except Exception as exc:
            kind = classify_error(exc)
            logger.warning("query embedding failed (%s): %s", kind.value, exc)
            notes.append(f"Query embedding failed: {kind.value}")
        else:
            if embedding is None:
                notes.append(NOTE_EMBEDDINGS_DISABLED)
            else:
                query_vec = embedding.vector
                effective_key = embedding.model_key

        hits: list[ScoredHit] = []
        for entry, raw in self.repo.list_candidates(effective_key, date=date_filter):
            vec = parse_vector(raw)
            score = cosine_similarity(query_vec, vec) if query_vec and vec else 0.0
            hits.append(
                ScoredHit(
                    id=entry.id,
                    date=entry.date,
                    title=entry.title,
                    content=entry.content,
                    score=score,
                    has_vector=vec is not None,
                )
            )
        ranked = rank_hits(hits, self.top_k if top_k is None else top_k)

        if date_filter:
            notes.append(f"Date filter: {date_filter}")
        if any(not h.has_vector for h in ranked):
            notes.append(NOTE_MISSING_VECTORS)

        answer: str | None = None
        if self.synthesizer is not None:
            contexts = [Context(date=h.date, title=h.title, content=h.content) for h in ranked]
            try:
                answer = await self.synthesizer.synthesize(q, date_filter, contexts)
            except Exception as exc:
                logger.warning("answer synthesis failed: %s", exc)
                notes.append(NOTE_SYNTHESIS_FAILED)

        return QueryResult(
            answer=answer or fallback_answer(ranked, date_filter),
            hits=ranked,
            note=" ".join(notes),
            date_filter=date_filter,
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def create_entry(self, date: str, title: str, content: str) -> dict:
        """Persist a dated entry and embed it.

        The date is normalized to ``YYYY-MM-DD`` when recognisable and stored
        as given otherwise. Embedding problems after the insert are logged
        and reported as ``embedded: False``; the entry is kept. A rejected
        credential is the exception: the entry stays, the error propagates.

        Raises:
            ValidationError: If date, title or content is empty.
            ProviderAuthError: If the embedding provider rejects the API key.
        """
        iso = normalize_date_to_iso(date) or (date or "").strip()
        entry = self.repo.add_entry(iso, title, content)

        embedded = False
        doc = f"{entry.date}\n{entry.title}\n{entry.content}"
        try:
            embedding: Embedding | None = await self.gateway.embed(doc)
            if embedding is not None:
                self.repo.upsert_embedding(entry.id, embedding.model_key, embedding.vector)
                embedded = True
        except Exception as exc:
            if classify_error(exc) is ErrorKind.AUTH:
                logger.warning("entry %d saved without embedding: credentials rejected", entry.id)
                raise
            logger.warning("entry %d saved without embedding: %s", entry.id, exc)

        return {"id": entry.id, "date": entry.date, "embedded": embedded}
