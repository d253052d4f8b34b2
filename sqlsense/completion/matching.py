"""Prefix, abbreviation and subsequence matching used to filter and score candidates.

Eligibility (:func:`is_match`) is evaluated cheapest-first:

1. prefix: ``"cust"`` matches ``"customers"``;
2. abbreviation: ``"gau"`` matches ``"getActiveUsers"``, ``"uid"`` matches ``"user_id"``
   once it is long enough for the subsequence pass;
3. subsequence: ordered, not necessarily contiguous characters, only tried for tokens
   of three characters or more.

:func:`match_score` is only meaningful once a candidate is eligible.
"""

from __future__ import annotations

SEPARATORS = frozenset("_-")

EXACT_SCORE = 100
PREFIX_SCORE = 80
ABBREVIATION_SCORE = 60
FUZZY_MIN_LENGTH = 3
ADJACENT_BONUS = 5
BOUNDARY_SCORE = 3
PLAIN_SCORE = 1


def abbreviation(text: str) -> str:
    """Initials of ``text`` across snake_case, kebab-case, camelCase and PascalCase."""

    initials: list[str] = []
    for idx, char in enumerate(text):
        if char in SEPARATORS:
            continue
        if idx == 0:
            initials.append(char.lower())
            continue
        previous = text[idx - 1]
        if previous in SEPARATORS or (previous.islower() and char.isupper()):
            initials.append(char.lower())
    return "".join(initials)


def _is_boundary(text: str, idx: int) -> bool:
    if idx == 0:
        return True
    previous = text[idx - 1]
    return previous in SEPARATORS or (previous.islower() and text[idx].isupper())


def fuzzy_score(token: str, text: str) -> int | None:
    """Score ``token`` as an ordered subsequence of ``text``; None when it is not one."""

    if not token or not text:
        return None
    needle = token.lower()
    haystack = text.lower()
    score = 0
    matched = 0
    last_idx = -2
    for idx, char in enumerate(haystack):
        if matched == len(needle):
            break
        if char != needle[matched]:
            continue
        score += BOUNDARY_SCORE if _is_boundary(text, idx) else PLAIN_SCORE
        if last_idx == idx - 1:
            score += ADJACENT_BONUS
        last_idx = idx
        matched += 1
    if matched < len(needle):
        return None
    return score + len(needle)


def is_match(token: str, text: str) -> bool:
    """Return True when ``text`` is an eligible completion for ``token``.

    An empty token matches everything.
    """

    if not token:
        return True
    if not text:
        return False
    needle = token.lower()
    if text.lower().startswith(needle):
        return True
    if abbreviation(text).startswith(needle):
        return True
    if len(needle) >= FUZZY_MIN_LENGTH:
        score = fuzzy_score(needle, text)
        return score is not None and score >= len(needle) * 2
    return False


def match_score(token: str, text: str) -> int:
    """Ranking score for an eligible candidate (higher is better)."""

    if not token or not text:
        return 0
    needle = token.lower()
    lowered = text.lower()
    if lowered == needle:
        return EXACT_SCORE
    if lowered.startswith(needle):
        return PREFIX_SCORE + len(needle)
    if abbreviation(text).startswith(needle):
        return ABBREVIATION_SCORE + len(needle)
    if len(needle) >= FUZZY_MIN_LENGTH:
        return fuzzy_score(needle, text) or 0
    return 0


__all__ = ["abbreviation", "fuzzy_score", "is_match", "match_score"]
