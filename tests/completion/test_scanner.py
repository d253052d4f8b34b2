"""Tests for the scope parser and cursor helpers."""

from __future__ import annotations

from sqlsense.completion.models import ScopeKind, StatementKind, TableOrigin
from sqlsense.completion.scanner import (
    ScopeParser,
    ScopeTree,
    current_word,
    mask_literals,
    previous_word,
    word_before_dot,
)


def test_collects_tables_and_aliases() -> None:
    tree = ScopeParser().parse("SELECT * FROM orders o JOIN customers AS c ON o.customer_id = c.id")

    refs = tree.root.tables
    assert [(ref.table, ref.alias, ref.keyword) for ref in refs] == [
        ("orders", "o", "FROM"),
        ("customers", "c", "JOIN"),
    ]
    assert tree.root.statement is StatementKind.SELECT


def test_alias_equal_to_table_name_is_dropped() -> None:
    tree = ScopeParser().parse("SELECT * FROM orders ORDERS")

    assert tree.root.tables[0].alias is None


def test_keyword_is_never_an_alias() -> None:
    tree = ScopeParser().parse("SELECT * FROM orders WHERE id = 1")

    assert tree.root.tables[0].alias is None


def test_qualified_table_resolves_by_either_name() -> None:
    text = "SELECT * FROM shop.orders WHERE "
    tree = ScopeParser().parse(text)

    ref = tree.root.tables[0]
    assert (ref.database, ref.table) == ("shop", "orders")
    assert tree.resolve("orders", len(text)) is ref
    assert tree.resolve("SHOP.ORDERS", len(text)) is ref


def test_later_duplicate_alias_wins() -> None:
    text = "SELECT x. FROM a x, b x"
    tree = ScopeParser().parse(text)

    assert [ref.table for ref in tree.root.tables] == ["a", "b"]
    assert tree.resolve("x", 9).table == "b"


def test_subquery_scope_sees_inherited_tables() -> None:
    text = "SELECT * FROM customers c WHERE c.id IN (SELECT customer_id FROM orders o WHERE o.)"
    cursor = text.index("o.)") + 2
    tree = ScopeParser().parse(text)

    scope = tree.scope_at(cursor)
    assert scope.kind is ScopeKind.SUBQUERY
    visible = tree.visible_tables(cursor)
    assert [(ref.table, ref.inherited) for ref in visible] == [("orders", False), ("customers", True)]
    assert [ref.table for ref in tree.root.tables] == ["customers"]


def test_cte_names_become_virtual_tables() -> None:
    text = (
        "WITH recent AS (SELECT * FROM orders WHERE total > 10) "
        "SELECT r. FROM recent r JOIN customers c ON r.customer_id = c.id"
    )
    cursor = text.index("r. FROM") + 2
    tree = ScopeParser().parse(text)

    assert [cte.name for cte in tree.root.ctes] == ["recent"]
    assert tree.scope(tree.root.ctes[0].scope).kind is ScopeKind.CTE
    assert [cte.name for cte in tree.visible_ctes(cursor)] == ["recent"]
    resolved = tree.resolve("r", cursor)
    assert resolved.table == "recent"
    assert resolved.origin is TableOrigin.CTE
    assert tree.resolve("c", cursor).origin is TableOrigin.LITERAL
    assert {ref.table for ref in tree.all_tables()} == {"orders", "recent", "customers"}


def test_recursive_and_chained_ctes() -> None:
    text = (
        "WITH RECURSIVE tree AS (SELECT id FROM nodes), "
        "leaves AS (SELECT id FROM tree) SELECT * FROM leaves"
    )
    tree = ScopeParser().parse(text)

    assert [cte.name for cte in tree.root.ctes] == ["tree", "leaves"]
    assert tree.root.tables[0].origin is TableOrigin.CTE


def test_comments_and_literals_are_ignored() -> None:
    text = "SELECT 'FROM fake f' FROM orders o -- JOIN ghosts g\n/* FROM hidden h */"
    tree = ScopeParser().parse(text)

    assert [ref.table for ref in tree.all_tables()] == ["orders"]


def test_update_statement_records_target() -> None:
    tree = ScopeParser().parse("UPDATE users SET name = 'x'")

    assert tree.root.statement is StatementKind.UPDATE
    assert tree.root.tables[0].keyword == "UPDATE"


def test_malformed_input_never_raises() -> None:
    parser = ScopeParser()

    assert parser.parse("").is_empty
    assert isinstance(parser.parse("SELECT ((( FROM"), ScopeTree)
    assert isinstance(parser.parse(") ) SELECT FROM ("), ScopeTree)


def test_mask_literals_preserves_offsets() -> None:
    text = "SELECT 'a\nb' -- c\nFROM t"
    masked = mask_literals(text)

    assert len(masked) == len(text)
    assert masked.index("FROM") == text.index("FROM")
    assert "'" not in masked


def test_cursor_helpers() -> None:
    assert current_word("SELECT o.cu", 11) == "o.cu"
    assert current_word("SELECT `my", 10) == "my"
    assert current_word("SELECT ", 7) == ""
    assert word_before_dot("SELECT o.", 9) == "o"
    assert previous_word("WHERE total > ", 14) == "total"
    assert previous_word("WHERE", 5) is None
