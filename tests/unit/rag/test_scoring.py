"""Tests for cosine scoring, ranking and the fallback answer."""

from __future__ import annotations

import math

import pytest

from daylog.rag.scoring import (
    NO_MATCHES,
    ScoredHit,
    clamp_top_k,
    cosine_similarity,
    fallback_answer,
    first_line,
    rank_hits,
)


def _hit(id, score, date="2026-01-25", title=None, content="body", has_vector=True):
    return ScoredHit(
        id=id,
        date=date,
        title=title or f"t{id}",
        content=content,
        score=score,
        has_vector=has_vector,
    )


# ---------------------------------------------------------------------------
# cosine_similarity
# ---------------------------------------------------------------------------


def test_cosine_identical_is_one():
    assert math.isclose(cosine_similarity([1, 2, 3], [1, 2, 3]), 1.0)


def test_cosine_opposite_is_minus_one():
    assert math.isclose(cosine_similarity([1, 2, 3], [-1, -2, -3]), -1.0)


def test_cosine_orthogonal_is_zero():
    assert cosine_similarity([1, 0], [0, 1]) == 0.0


def test_cosine_is_symmetric():
    a, b = [0.3, -0.2, 0.9], [0.1, 0.4, -0.5]
    assert cosine_similarity(a, b) == cosine_similarity(b, a)


@pytest.mark.parametrize("a,b", [
    ([1, 2], [1, 2, 3]),
    ([], []),
    ([0, 0], [1, 1]),
])
def test_cosine_degenerate_is_zero(a, b):
    assert cosine_similarity(a, b) == 0.0


def test_cosine_is_bounded():
    a, b = [3.0, -7.0, 2.5, 0.1], [-1.0, 4.0, 8.0, -2.0]
    assert -1.0 <= cosine_similarity(a, b) <= 1.0


# ---------------------------------------------------------------------------
# rank_hits
# ---------------------------------------------------------------------------


def test_rank_hits_ties_break_by_id_desc():
    hits = [_hit(3, 0.9), _hit(7, 0.9), _hit(1, 0.5)]
    assert [h.id for h in rank_hits(hits, 5)] == [7, 3, 1]


def test_rank_hits_is_order_independent():
    hits = [_hit(1, 0.0), _hit(2, 0.0), _hit(3, 0.4)]
    assert [h.id for h in rank_hits(hits, 5)] == [h.id for h in rank_hits(hits[::-1], 5)]


def test_rank_hits_truncates():
    hits = [_hit(i, i / 10) for i in range(10)]
    assert [h.id for h in rank_hits(hits, 3)] == [9, 8, 7]


@pytest.mark.parametrize("top_k,expected", [(0, 1), (-5, 1), (1, 1), (5, 5), (20, 20), (100, 20)])
def test_clamp_top_k(top_k, expected):
    assert clamp_top_k(top_k) == expected


# ---------------------------------------------------------------------------
# fallback_answer
# ---------------------------------------------------------------------------


def test_fallback_answer_dated_uses_first_line():
    hits = [_hit(1, 0.0, title="Planning", content="Designed the schema.\nMore detail")]
    assert fallback_answer(hits, "2026-01-25") == "- Planning: Designed the schema."


def test_fallback_answer_undated_lists_dates():
    hits = [_hit(2, 0.5, date="2026-01-26", title="Build"), _hit(1, 0.2, title="Planning")]
    assert fallback_answer(hits, None) == "- [2026-01-26] Build\n- [2026-01-25] Planning"


def test_fallback_answer_no_hits():
    assert fallback_answer([], None) == NO_MATCHES
    assert fallback_answer([], "2026-01-25") == NO_MATCHES


def test_first_line():
    assert first_line("  one\ntwo") == "one"
    assert first_line("") == ""


def test_hit_to_dict_omits_has_vector():
    assert _hit(1, 0.5).to_dict() == {
        "id": 1,
        "date": "2026-01-25",
        "title": "t1",
        "content": "body",
        "score": 0.5,
    }
