"""Keyword catalog powering keyword candidates and reserved-word checks."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable, Sequence, Tuple

from sqlglot.dialects.dialect import Dialect
from sqlglot.tokens import Tokenizer

from .matching import is_match
from .models import Candidate, CandidateKind

RESERVED_WORDS: frozenset[str] = frozenset(
    {
        "WHERE", "AND", "OR", "ON", "SET", "VALUES", "LEFT", "RIGHT", "INNER", "OUTER",
        "CROSS", "NATURAL", "ORDER", "GROUP", "HAVING", "LIMIT", "OFFSET", "AS", "SELECT",
        "FROM", "JOIN", "BY", "DISTINCT", "ALL", "UNION", "INTERSECT", "EXCEPT", "WITH",
        "RECURSIVE", "INSERT", "INTO", "UPDATE", "DELETE", "CREATE", "ALTER", "DROP",
        "TABLE", "INDEX", "VIEW", "DATABASE", "SCHEMA", "NULL", "NOT", "IN", "BETWEEN",
        "LIKE", "IS", "EXISTS", "CASE", "WHEN", "THEN", "ELSE", "END", "ASC", "DESC",
        "PRIMARY", "KEY", "FOREIGN", "REFERENCES", "CONSTRAINT", "UNIQUE", "DEFAULT",
        "AUTO_INCREMENT", "IDENTITY", "CASCADE", "RESTRICT", "FULL", "USING", "LATERAL",
        "RETURNING", "WINDOW", "OVER", "PARTITION", "FETCH", "TRUNCATE", "IF", "FOR",
    }
)

GENERAL_KEYWORDS: Tuple[str, ...] = (
    "SELECT", "FROM", "WHERE", "AND", "OR", "NOT", "INSERT INTO", "VALUES", "UPDATE",
    "SET", "DELETE FROM", "JOIN", "LEFT JOIN", "RIGHT JOIN", "INNER JOIN", "ON",
    "GROUP BY", "ORDER BY", "HAVING", "LIMIT", "OFFSET", "DISTINCT", "AS", "IN",
    "BETWEEN", "LIKE", "IS NULL", "IS NOT NULL", "EXISTS", "UNION", "UNION ALL",
    "WITH", "CASE", "WHEN", "THEN", "ELSE", "END", "ASC", "DESC", "CREATE TABLE",
    "ALTER TABLE", "DROP TABLE", "TRUNCATE TABLE", "CREATE INDEX", "CREATE VIEW",
)

SELECT_KEYWORDS: Tuple[str, ...] = ("DISTINCT", "ALL", "AS", "CASE", "WHEN", "THEN", "ELSE", "END", "FROM")
JOIN_KEYWORDS: Tuple[str, ...] = ("INNER", "LEFT", "RIGHT", "OUTER", "CROSS", "NATURAL", "JOIN", "ON")
LOGICAL_KEYWORDS: Tuple[str, ...] = ("AND", "OR", "NOT", "IN", "BETWEEN", "LIKE", "IS", "NULL", "EXISTS")

FALLBACK_SIZE = 15

_WORD_KEYWORD = re.compile(r"^[A-Z][A-Z_]*(?: [A-Z][A-Z_]*)*$")


def is_keyword(word: str | None) -> bool:
    """Return True when ``word`` is a reserved SQL word."""

    if not word:
        return False
    return word.upper() in RESERVED_WORDS


@lru_cache(maxsize=8)
def dialect_keywords(dialect: str) -> Tuple[str, ...]:
    """Keyword vocabulary known to the sqlglot tokenizer of ``dialect``."""

    try:
        tokenizer = Dialect.get_or_raise(dialect).tokenizer_class
    except ValueError:
        tokenizer = Tokenizer
    words = {keyword for keyword in tokenizer.KEYWORDS if _WORD_KEYWORD.match(keyword)}
    return tuple(sorted(words))


class KeywordCatalog:
    """In-memory keyword vocabulary that builds keyword candidates."""

    def __init__(self, keywords: Sequence[str]) -> None:
        seen: set[str] = set()
        ordered: list[str] = []
        for keyword in keywords:
            if keyword not in seen:
                seen.add(keyword)
                ordered.append(keyword)
        self._keywords = tuple(ordered)

    @classmethod
    def default(cls) -> "KeywordCatalog":
        return cls(GENERAL_KEYWORDS)

    @classmethod
    def for_dialect(cls, dialect: str) -> "KeywordCatalog":
        """Curated keywords first, then the rest of the dialect's vocabulary."""

        return cls(GENERAL_KEYWORDS + dialect_keywords(dialect))

    @property
    def keywords(self) -> Tuple[str, ...]:
        return self._keywords

    def candidates(self, token: str, keywords: Iterable[str] | None = None) -> list[Candidate]:
        """Return keyword candidates matching ``token`` from ``keywords`` (or the catalog)."""

        pool = self._keywords if keywords is None else tuple(keywords)
        return [
            Candidate(kind=CandidateKind.KEYWORD, insert_text=keyword, label=keyword)
            for keyword in pool
            if is_match(token, keyword)
        ]

    def fallback(self) -> list[Candidate]:
        """Keywords returned when the pipeline fails."""

        return [
            Candidate(kind=CandidateKind.KEYWORD, insert_text=keyword, label=keyword)
            for keyword in self._keywords[:FALLBACK_SIZE]
        ]


__all__ = [
    "GENERAL_KEYWORDS",
    "JOIN_KEYWORDS",
    "KeywordCatalog",
    "LOGICAL_KEYWORDS",
    "RESERVED_WORDS",
    "SELECT_KEYWORDS",
    "dialect_keywords",
    "is_keyword",
]
