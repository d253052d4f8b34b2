"""Tests for prefix, abbreviation and subsequence matching."""

from __future__ import annotations

import pytest

from sqlsense.completion.matching import abbreviation, fuzzy_score, is_match, match_score


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("getActiveUsers", "gau"),
        ("user_id", "ui"),
        ("created_at", "ca"),
        ("order-items", "oi"),
        ("OrderItems", "oi"),
    ],
)
def test_abbreviation_covers_naming_styles(text: str, expected: str) -> None:
    assert abbreviation(text) == expected


@pytest.mark.parametrize(
    ("token", "text"),
    [("gau", "getActiveUsers"), ("uid", "user_id"), ("cdt", "created_at")],
)
def test_abbreviation_and_subsequence_tokens_match(token: str, text: str) -> None:
    assert is_match(token, text)


@pytest.mark.parametrize("token", ["c", "cu", "CUST", "customers"])
def test_prefixes_always_match_with_high_score(token: str) -> None:
    assert is_match(token, "customers")
    assert match_score(token, "customers") >= 80


def test_exact_match_scores_highest() -> None:
    assert match_score("Orders", "orders") == 100
    assert match_score("ord", "orders") == 83
    assert match_score("ui", "user_id") == 62


def test_short_tokens_skip_subsequence_matching() -> None:
    assert not is_match("ud", "user_id")
    assert fuzzy_score("ud", "user_id") is not None


def test_out_of_order_characters_do_not_match() -> None:
    assert not is_match("tsuc", "customers")
    assert not is_match("xyz", "customers")


def test_fuzzy_score_rewards_adjacent_and_boundary_hits() -> None:
    assert fuzzy_score("cus", "customers") == 3 + (1 + 5) + (1 + 5) + 3
    assert fuzzy_score("xyz", "customers") is None


def test_empty_token_matches_everything() -> None:
    assert is_match("", "anything")
    assert match_score("", "anything") == 0
