"""Tests for the ordered context classification rules."""

from __future__ import annotations

import pytest

from sqlsense.completion.context import CONTEXT_RULES, classify
from sqlsense.completion.models import Context


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("SELECT ", Context.SELECT),
        ("SELECT DISTINCT na", Context.SELECT),
        ("SELECT * FROM ", Context.FROM),
        ("SELECT * FROM orders o, cust", Context.FROM),
        ("SELECT * FROM orders o LEFT JOIN cu", Context.FROM),
        ("SELECT * FROM orders o JOIN customers c ON ", Context.ON),
        ("SELECT * FROM orders o JOIN customers c ON o.customer_id = ", Context.ON),
        ("SELECT * FROM t WHERE ", Context.WHERE),
        ("SELECT * FROM t WHERE x = 1 AND ", Context.WHERE),
        ("SELECT * FROM t WHERE x = 1 OR st", Context.WHERE),
        ("SELECT * FROM t WHERE total > ", Context.WHERE),
        ("SELECT a FROM t GROUP BY a, ", Context.GROUP_BY),
        ("SELECT a FROM t ORDER BY ", Context.ORDER_BY),
        ("SELECT dept FROM staff HAVING ", Context.HAVING),
        ("UPDATE users SET ", Context.SET),
        ("UPDATE users SET name = 'x', em", Context.SET),
        ("UPDATE us", Context.UPDATE),
        ("INSERT INTO users ", Context.INSERT),
        ("DELETE FROM ", Context.FROM),
        ("", Context.UNKNOWN),
        ("CREATE ", Context.UNKNOWN),
    ],
)
def test_classify(text: str, expected: Context) -> None:
    assert classify(text) is expected


def test_where_wins_over_select_even_with_leading_select() -> None:
    assert classify("SELECT a, b FROM t WHERE x = 1 AND ") is Context.WHERE


def test_rules_follow_documented_precedence() -> None:
    assert [rule.context for rule in CONTEXT_RULES] == [
        Context.ON,
        Context.SET,
        Context.WHERE,
        Context.GROUP_BY,
        Context.ORDER_BY,
        Context.HAVING,
        Context.FROM,
        Context.JOIN,
        Context.SELECT,
        Context.INSERT,
        Context.UPDATE,
        Context.VALUES,
    ]


def test_from_rule_is_guarded_once_a_where_was_seen() -> None:
    text = "SELECT * FROM a WHERE x IN (SELECT id FROM b JOIN cu"

    assert classify(text) is Context.JOIN


def test_group_by_tail_takes_precedence_over_having() -> None:
    assert classify("SELECT a FROM t GROUP BY a HAVING ") is Context.GROUP_BY
