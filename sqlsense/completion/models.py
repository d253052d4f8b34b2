"""Core dataclasses shared by the completion engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Context(str, Enum):
    """Grammatical position of the cursor."""

    SELECT = "select"
    FROM = "from"
    JOIN = "join"
    ON = "on"
    WHERE = "where"
    GROUP_BY = "group_by"
    ORDER_BY = "order_by"
    HAVING = "having"
    INSERT = "insert"
    UPDATE = "update"
    SET = "set"
    VALUES = "values"
    UNKNOWN = "unknown"


class CandidateKind(str, Enum):
    """Kinds of completion candidates surfaced to the editor."""

    KEYWORD = "keyword"
    TABLE = "table"
    COLUMN = "column"
    DATABASE = "database"
    SCHEMA = "schema"
    ALIAS = "alias"
    CTE = "cte"
    FUNCTION = "function"
    SNIPPET = "snippet"
    JOIN_HINT = "join_hint"
    FK_JOIN = "fk_join"
    FK_TABLE = "fk_table"
    OPERATOR = "operator"


class StatementKind(str, Enum):
    """Statement type owning a scope."""

    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    DDL = "ddl"
    UNKNOWN = "unknown"


class ScopeKind(str, Enum):
    ROOT = "root"
    CTE = "cte"
    SUBQUERY = "subquery"


class TableOrigin(str, Enum):
    LITERAL = "literal"
    CTE = "cte"


class KeyClass(str, Enum):
    """Key participation of a column."""

    NONE = "none"
    PRIMARY = "primary"
    UNIQUE = "unique"
    FOREIGN = "foreign"


@dataclass(slots=True)
class Candidate:
    """Single completion entry; only ``score`` is written after creation."""

    kind: CandidateKind
    insert_text: str
    label: str
    detail: str | None = None
    priority: float = 0.0
    is_primary_key: bool = False
    is_foreign_key: bool = False
    inherited: bool = False
    score: float = 0.0

    @property
    def identity(self) -> tuple[CandidateKind, str]:
        return self.kind, self.insert_text


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """Column metadata returned by a metadata provider."""

    name: str
    declared_type: str = ""
    nullable: bool = True
    key_class: KeyClass = KeyClass.NONE


@dataclass(frozen=True, slots=True)
class ForeignKey:
    """Outgoing foreign key: ``column`` references ``referenced_table.referenced_column``."""

    column: str
    referenced_table: str
    referenced_column: str


@dataclass(frozen=True, slots=True)
class ReverseForeignKey:
    """Foreign key seen from the referenced side."""

    source_table: str
    source_column: str
    referenced_column: str


@dataclass(frozen=True, slots=True)
class IndexInfo:
    name: str
    columns: tuple[str, ...] = ()
    unique: bool = False


@dataclass(slots=True)
class TableReference:
    """A table mentioned in a scope, optionally qualified and aliased."""

    table: str
    database: str | None = None
    alias: str | None = None
    origin: TableOrigin = TableOrigin.LITERAL
    keyword: str = "FROM"
    position: int = 0
    inherited: bool = False

    @property
    def name(self) -> str:
        """Identifier used to qualify columns of this reference."""

        return self.alias or self.table

    @property
    def qualified_name(self) -> str:
        return f"{self.database}.{self.table}" if self.database else self.table

    def matches(self, identifier: str) -> bool:
        """Return True when ``identifier`` names this table (by table or composite name)."""

        lowered = identifier.lower()
        return lowered == self.table.lower() or lowered == self.qualified_name.lower()


@dataclass(frozen=True, slots=True)
class CTEDefinition:
    name: str
    offset: int
    scope: int


@dataclass(slots=True)
class Scope:
    """Lexical region of a query; parent/children are indexes into the owning tree."""

    index: int
    kind: ScopeKind
    start: int
    end: int
    parent: int | None = None
    statement: StatementKind = StatementKind.UNKNOWN
    name: str | None = None
    tables: list[TableReference] = field(default_factory=list)
    ctes: list[CTEDefinition] = field(default_factory=list)
    aliases: dict[str, int] = field(default_factory=dict)
    children: list[int] = field(default_factory=list)

    def contains(self, offset: int) -> bool:
        return self.start <= offset <= self.end

    def lookup_alias(self, alias: str) -> TableReference | None:
        slot = self.aliases.get(alias.lower())
        if slot is None:
            return None
        return self.tables[slot]


__all__ = [
    "CTEDefinition",
    "Candidate",
    "CandidateKind",
    "ColumnInfo",
    "Context",
    "ForeignKey",
    "IndexInfo",
    "KeyClass",
    "ReverseForeignKey",
    "Scope",
    "ScopeKind",
    "StatementKind",
    "TableOrigin",
    "TableReference",
]
