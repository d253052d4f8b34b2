"""Merge, deduplicate and rank generator output."""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol

from .matching import match_score
from .models import Candidate, CandidateKind

MAX_RESULTS = 25

KIND_PRIORITY: Mapping[CandidateKind, int] = {
    CandidateKind.SNIPPET: 45,
    CandidateKind.FK_JOIN: 45,
    CandidateKind.FK_TABLE: 42,
    CandidateKind.JOIN_HINT: 40,
    CandidateKind.ALIAS: 35,
    CandidateKind.COLUMN: 30,
    CandidateKind.TABLE: 25,
    CandidateKind.CTE: 20,
    CandidateKind.FUNCTION: 15,
    CandidateKind.KEYWORD: 10,
    CandidateKind.DATABASE: 5,
    CandidateKind.SCHEMA: 5,
    CandidateKind.OPERATOR: 3,
}

FREQUENCY_WEIGHT = 3
FREQUENCY_CAP = 30
PRIMARY_KEY_BONUS = 15
FOREIGN_KEY_BONUS = 10


class FrequencyLookup(Protocol):
    def count(self, kind: CandidateKind, text: str) -> int: ...


def composite_score(candidate: Candidate, token: str, frequency: FrequencyLookup | None = None) -> float:
    """Match score plus static priorities and learned usage."""

    score = float(match_score(token, candidate.label or candidate.insert_text))
    score += candidate.priority
    score += KIND_PRIORITY.get(candidate.kind, 0)
    if frequency is not None:
        score += min(frequency.count(candidate.kind, candidate.insert_text) * FREQUENCY_WEIGHT, FREQUENCY_CAP)
    if candidate.is_primary_key:
        score += PRIMARY_KEY_BONUS
    if candidate.is_foreign_key:
        score += FOREIGN_KEY_BONUS
    return score


def dedupe(candidates: Iterable[Candidate]) -> list[Candidate]:
    """Drop repeated ``(kind, insert_text)`` pairs, keeping the first occurrence."""

    seen: set[tuple[CandidateKind, str]] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        if candidate.identity in seen:
            continue
        seen.add(candidate.identity)
        unique.append(candidate)
    return unique


def rank(
    candidates: Iterable[Candidate],
    token: str,
    frequency: FrequencyLookup | None = None,
    *,
    limit: int = MAX_RESULTS,
) -> list[Candidate]:
    """Return the top ``limit`` candidates by score; ties keep emission order."""

    unique = dedupe(candidates)
    for candidate in unique:
        candidate.score = composite_score(candidate, token, frequency)
    unique.sort(key=lambda item: -item.score)
    return unique[:limit]


__all__ = ["FrequencyLookup", "KIND_PRIORITY", "MAX_RESULTS", "composite_score", "dedupe", "rank"]
