"""Snippet catalog for quick template insertions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from .matching import is_match
from .models import Candidate, CandidateKind

SNIPPET_PRIORITY = 90.0
MIN_SNIPPET_TOKEN = 2


@dataclass(frozen=True, slots=True)
class SnippetEntry:
    """Reusable template; placeholders use the ``${n:default}`` tab-stop syntax."""

    trigger: str
    name: str
    template: str
    description: str = ""
    user: bool = False

    def matches(self, token: str) -> bool:
        lowered = token.lower()
        return is_match(lowered, self.trigger) or lowered in self.name.lower()

    def to_candidate(self) -> Candidate:
        return Candidate(
            kind=CandidateKind.SNIPPET,
            insert_text=self.template,
            label=self.trigger,
            detail=self.name,
            priority=SNIPPET_PRIORITY,
        )


class SnippetCatalog:
    """Built-in snippets for a dialect plus user-defined additions."""

    def __init__(self, entries: Sequence[SnippetEntry], user_entries: Sequence[SnippetEntry] = ()) -> None:
        self._entries = tuple(entries)
        self._user: list[SnippetEntry] = list(user_entries)

    @classmethod
    def default(cls) -> "SnippetCatalog":
        return cls(_COMMON_SNIPPETS)

    @classmethod
    def for_dialect(cls, dialect: str) -> "SnippetCatalog":
        if dialect in {"postgres", "postgresql"}:
            return cls(_COMMON_SNIPPETS + _POSTGRES_SNIPPETS)
        return cls(_COMMON_SNIPPETS + _MYSQL_SNIPPETS)

    @property
    def entries(self) -> Tuple[SnippetEntry, ...]:
        return self._entries + tuple(self._user)

    @property
    def user_entries(self) -> Tuple[SnippetEntry, ...]:
        return tuple(self._user)

    def add(self, trigger: str, name: str, template: str, description: str = "") -> SnippetEntry:
        entry = SnippetEntry(trigger=trigger, name=name, template=template, description=description, user=True)
        self._user.append(entry)
        return entry

    def candidates(self, token: str) -> list[Candidate]:
        """Snippets whose trigger matches ``token`` or whose name contains it."""

        if len(token) < MIN_SNIPPET_TOKEN or "." in token:
            return []
        return [entry.to_candidate() for entry in self.entries if entry.matches(token)]


_COMMON_SNIPPETS: Tuple[SnippetEntry, ...] = (
    SnippetEntry("sel", "SELECT basic", "SELECT * FROM ${1:table} WHERE ${2:condition}", "Basic SELECT query"),
    SnippetEntry("selc", "SELECT columns", "SELECT ${1:columns}\nFROM ${2:table}\nWHERE ${3:condition}", "SELECT with columns"),
    SnippetEntry("seld", "SELECT DISTINCT", "SELECT DISTINCT ${1:columns}\nFROM ${2:table}", "Select distinct values"),
    SnippetEntry("selt", "SELECT TOP/LIMIT", "SELECT *\nFROM ${1:table}\nORDER BY ${2:column}\nLIMIT ${3:10}", "Select top N rows"),
    SnippetEntry("selcount", "SELECT COUNT", "SELECT COUNT(*) AS total FROM ${1:table} WHERE ${2:1=1}", "Count rows"),
    SnippetEntry(
        "selj",
        "SELECT with JOIN",
        "SELECT ${1:t1}.*, ${2:t2}.*\nFROM ${3:table1} ${1:t1}\nINNER JOIN ${4:table2} ${2:t2} ON ${1:t1}.${5:id} = ${2:t2}.${6:fk_id}",
        "SELECT with INNER JOIN",
    ),
    SnippetEntry(
        "sellj",
        "SELECT LEFT JOIN",
        "SELECT ${1:t1}.*, ${2:t2}.*\nFROM ${3:table1} ${1:t1}\nLEFT JOIN ${4:table2} ${2:t2} ON ${1:t1}.${5:id} = ${2:t2}.${6:fk_id}",
        "SELECT with LEFT JOIN",
    ),
    SnippetEntry("ins", "INSERT INTO", "INSERT INTO ${1:table} (${2:columns})\nVALUES (${3:values})", "Insert row"),
    SnippetEntry(
        "inss",
        "INSERT SELECT",
        "INSERT INTO ${1:target_table} (${2:columns})\nSELECT ${3:columns}\nFROM ${4:source_table}",
        "Insert from SELECT",
    ),
    SnippetEntry("upd", "UPDATE", "UPDATE ${1:table}\nSET ${2:column} = ${3:value}\nWHERE ${4:condition}", "Update rows"),
    SnippetEntry(
        "updinc",
        "UPDATE increment",
        "UPDATE ${1:table}\nSET ${2:column} = ${2:column} + ${3:1}\nWHERE ${4:condition}",
        "Increment column value",
    ),
    SnippetEntry("del", "DELETE", "DELETE FROM ${1:table}\nWHERE ${2:condition}", "Delete rows"),
    SnippetEntry("trunc", "TRUNCATE", "TRUNCATE TABLE ${1:table}", "Truncate table"),
    SnippetEntry(
        "cte",
        "WITH CTE",
        "WITH ${1:cte_name} AS (\n    SELECT ${2:columns}\n    FROM ${3:table}\n)\nSELECT * FROM ${1:cte_name}",
        "Common Table Expression",
    ),
    SnippetEntry(
        "cterec",
        "Recursive CTE",
        "WITH RECURSIVE ${1:cte_name} AS (\n    SELECT ${2:id}, ${3:parent_id}, 1 AS level\n    FROM ${4:table}\n"
        "    WHERE ${3:parent_id} IS NULL\n    UNION ALL\n    SELECT t.${2:id}, t.${3:parent_id}, c.level + 1\n"
        "    FROM ${4:table} t\n    INNER JOIN ${1:cte_name} c ON t.${3:parent_id} = c.${2:id}\n)\n"
        "SELECT * FROM ${1:cte_name}",
        "Recursive CTE for hierarchical data",
    ),
    SnippetEntry(
        "sub",
        "Subquery",
        "SELECT * FROM (\n    SELECT ${1:columns}\n    FROM ${2:table}\n) AS ${3:subq}",
        "Subquery in FROM",
    ),
    SnippetEntry(
        "exist",
        "EXISTS subquery",
        "SELECT *\nFROM ${1:table1} t1\nWHERE EXISTS (\n    SELECT 1 FROM ${2:table2} t2\n    WHERE t2.${3:fk} = t1.${4:id}\n)",
        "EXISTS subquery",
    ),
    SnippetEntry(
        "count",
        "COUNT GROUP BY",
        "SELECT ${1:column}, COUNT(*) AS count\nFROM ${2:table}\nGROUP BY ${1:column}\nORDER BY count DESC",
        "Count with grouping",
    ),
    SnippetEntry(
        "having",
        "GROUP BY HAVING",
        "SELECT ${1:column}, COUNT(*) AS cnt\nFROM ${2:table}\nGROUP BY ${1:column}\nHAVING COUNT(*) ${3:> 1}",
        "Grouping with HAVING clause",
    ),
    SnippetEntry(
        "rownum",
        "ROW_NUMBER",
        "SELECT *,\n    ROW_NUMBER() OVER (ORDER BY ${1:column}) AS row_num\nFROM ${2:table}",
        "Row numbering",
    ),
    SnippetEntry(
        "lag",
        "LAG",
        "SELECT *,\n    LAG(${1:column}, ${2:1}) OVER (PARTITION BY ${3:partition_col} ORDER BY ${4:order_col}) AS prev_value\n"
        "FROM ${5:table}",
        "LAG previous row value",
    ),
    SnippetEntry(
        "sumover",
        "Running SUM",
        "SELECT *,\n    SUM(${1:column}) OVER (ORDER BY ${2:order_col}) AS running_total\nFROM ${3:table}",
        "Running sum",
    ),
    SnippetEntry(
        "ctas",
        "CREATE TABLE AS",
        "CREATE TABLE ${1:new_table} AS\nSELECT ${2:columns}\nFROM ${3:source_table}",
        "Create table from SELECT",
    ),
    SnippetEntry(
        "cv",
        "CREATE VIEW",
        "CREATE OR REPLACE VIEW ${1:view_name} AS\nSELECT ${2:columns}\nFROM ${3:table}",
        "Create view",
    ),
    SnippetEntry("ci", "CREATE INDEX", "CREATE INDEX ${1:idx_name} ON ${2:table} (${3:column})", "Create index"),
    SnippetEntry(
        "addcol",
        "ADD COLUMN",
        "ALTER TABLE ${1:table}\nADD COLUMN ${2:column_name} ${3:VARCHAR(255)}",
        "Add column",
    ),
    SnippetEntry(
        "addfk",
        "ADD FOREIGN KEY",
        "ALTER TABLE ${1:table}\nADD CONSTRAINT ${2:fk_name}\nFOREIGN KEY (${3:column})\n"
        "REFERENCES ${4:ref_table} (${5:ref_column})",
        "Add foreign key",
    ),
    SnippetEntry("explain", "EXPLAIN", "EXPLAIN ${1:SELECT * FROM table}", "Explain query plan"),
)

_MYSQL_SNIPPETS: Tuple[SnippetEntry, ...] = (
    SnippetEntry(
        "insdup",
        "INSERT ON DUPLICATE",
        "INSERT INTO ${1:table} (${2:id}, ${3:column})\nVALUES (${4:value1}, ${5:value2})\n"
        "ON DUPLICATE KEY UPDATE ${3:column} = VALUES(${3:column})",
        "Insert or update on duplicate",
    ),
    SnippetEntry(
        "groupc",
        "GROUP_CONCAT",
        "SELECT ${1:group_col}, GROUP_CONCAT(${2:column} SEPARATOR ', ') AS ${3:combined}\nFROM ${4:table}\n"
        "GROUP BY ${1:group_col}",
        "Group concatenation",
    ),
    SnippetEntry("showtab", "SHOW TABLES", "SHOW TABLES FROM ${1:database}", "Show tables"),
    SnippetEntry("desc", "DESCRIBE", "DESCRIBE ${1:table}", "Describe table"),
)

_POSTGRES_SNIPPETS: Tuple[SnippetEntry, ...] = (
    SnippetEntry(
        "pginsret",
        "PG INSERT RETURNING",
        "INSERT INTO ${1:table} (${2:columns})\nVALUES (${3:values})\nRETURNING *",
        "PostgreSQL insert with returning",
    ),
    SnippetEntry(
        "pgupsert",
        "PG UPSERT",
        "INSERT INTO ${1:table} (${2:id}, ${3:column})\nVALUES (${4:value1}, ${5:value2})\n"
        "ON CONFLICT (${2:id}) DO UPDATE\nSET ${3:column} = EXCLUDED.${3:column}",
        "PostgreSQL insert on conflict update",
    ),
    SnippetEntry(
        "pgilike",
        "PG ILIKE",
        "SELECT *\nFROM ${1:table}\nWHERE ${2:column} ILIKE '%${3:search}%'",
        "PostgreSQL case-insensitive search",
    ),
    SnippetEntry(
        "pgexplain",
        "PG EXPLAIN ANALYZE",
        "EXPLAIN (ANALYZE, BUFFERS, FORMAT TEXT)\n${1:SELECT * FROM table}",
        "PostgreSQL explain analyze",
    ),
    SnippetEntry(
        "pgsize",
        "PG Table size",
        "SELECT pg_size_pretty(pg_total_relation_size('${1:table}')) AS total_size",
        "PostgreSQL table size",
    ),
)


__all__ = ["SNIPPET_PRIORITY", "SnippetCatalog", "SnippetEntry"]
