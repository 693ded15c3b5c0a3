"""Cosine scoring, deterministic ranking and the no-LLM fallback answer."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

MAX_TOP_K = 20
NO_MATCHES = "No matching records were found."


@dataclass
class ScoredHit:
    """One ranked candidate entry.

    Attributes:
        id: Entry id; breaks score ties (higher id first).
        score: Cosine similarity in [-1, 1]; 0 when no vector was usable.
        has_vector: Whether a stored vector for the active model key existed.
    """

    id: int
    date: str
    title: str
    content: str
    score: float
    has_vector: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date,
            "title": self.title,
            "content": self.content,
            "score": self.score,
        }


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine of the angle between *a* and *b*.

    Returns 0.0 for vectors of different length, empty vectors, or when
    either vector has zero magnitude.
    """
    if len(a) != len(b) or not a:
        return 0.0
    dot = na = nb = 0.0
    for x, y in zip(a, b):
        dot += x * y
        na += x * x
        nb += y * y
    denom = math.sqrt(na) * math.sqrt(nb)
    return 0.0 if denom == 0 else dot / denom


def clamp_top_k(top_k: int) -> int:
    return max(1, min(MAX_TOP_K, int(top_k)))


def rank_hits(hits: list[ScoredHit], top_k: int) -> list[ScoredHit]:
    """Sort by score desc, then id desc, and keep ``clamp_top_k(top_k)`` hits."""
    ordered = sorted(hits, key=lambda h: (h.score, h.id), reverse=True)
    return ordered[: clamp_top_k(top_k)]


def first_line(text: str) -> str:
    t = (text or "").strip()
    return t.split("\n", 1)[0]


def fallback_answer(hits: Sequence[ScoredHit], date_filter: str | None) -> str:
    """Plain listing of the hits used when no synthesized answer is available."""
    if not hits:
        return NO_MATCHES
    if date_filter:
        return "\n".join(f"- {h.title}: {first_line(h.content)}" for h in hits)
    return "\n".join(f"- [{h.date}] {h.title}" for h in hits)
