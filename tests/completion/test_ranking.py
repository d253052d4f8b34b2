"""Tests for deduplication and composite ranking."""

from __future__ import annotations

from sqlsense.completion.learning import FrequencyTable
from sqlsense.completion.models import Candidate, CandidateKind
from sqlsense.completion.ranking import MAX_RESULTS, composite_score, dedupe, rank


def _column(name: str, **kwargs: object) -> Candidate:
    return Candidate(kind=CandidateKind.COLUMN, insert_text=name, label=name, **kwargs)


def test_dedupe_keeps_first_occurrence_per_kind_and_text() -> None:
    first = _column("id", detail="orders")
    duplicate = _column("id", detail="customers")
    keyword = Candidate(kind=CandidateKind.KEYWORD, insert_text="id", label="id")

    assert dedupe([first, duplicate, keyword]) == [first, keyword]


def test_composite_score_adds_kind_priority_and_key_bonuses() -> None:
    plain = _column("customer_id")
    primary = _column("id", is_primary_key=True)
    foreign = _column("customer_id", is_foreign_key=True)

    assert composite_score(plain, "cust") == 80 + 4 + 30
    assert composite_score(primary, "id") == 100 + 30 + 15
    assert composite_score(foreign, "cust") == 80 + 4 + 30 + 10


def test_frequency_bonus_is_capped() -> None:
    table = FrequencyTable()
    candidate = _column("email")
    for _ in range(3):
        table.record(CandidateKind.COLUMN, "email")
    assert composite_score(candidate, "em", table) == 82 + 30 + 9

    for _ in range(20):
        table.record(CandidateKind.COLUMN, "email")
    assert composite_score(candidate, "em", table) == 82 + 30 + 30


def test_rank_is_stable_for_equal_scores() -> None:
    names = ["alpha", "beta", "gamma", "delta"]
    candidates = [_column(name) for name in names]

    ranked = rank(candidates, "")

    assert [candidate.label for candidate in ranked] == names
    assert all(candidate.score == 30 for candidate in ranked)


def test_rank_orders_by_score_and_truncates() -> None:
    candidates = [_column(f"col{idx}") for idx in range(40)]
    candidates.append(Candidate(kind=CandidateKind.FK_JOIN, insert_text="JOIN x", label="x", priority=150))

    ranked = rank(candidates, "")

    assert len(ranked) == MAX_RESULTS
    assert ranked[0].kind is CandidateKind.FK_JOIN
    assert [candidate.label for candidate in ranked[1:4]] == ["col0", "col1", "col2"]


def test_rank_respects_custom_limit() -> None:
    assert len(rank([_column(f"c{idx}") for idx in range(10)], "", limit=3)) == 3
