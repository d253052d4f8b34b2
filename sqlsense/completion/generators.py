"""Per-context candidate generators.

Each generator returns an unranked list in emission order; the ranker relies on that
order to break score ties, so foreign-key driven candidates are emitted before plain
table names.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Mapping, Sequence

from .catalog import JOIN_KEYWORDS, LOGICAL_KEYWORDS, SELECT_KEYWORDS, KeywordCatalog, is_keyword
from .functions import AGGREGATE, WINDOW, FunctionCatalog
from .matching import is_match
from .metadata import MetadataSnapshot
from .models import (
    Candidate,
    CandidateKind,
    ColumnInfo,
    Context,
    ForeignKey,
    KeyClass,
    ReverseForeignKey,
    TableOrigin,
    TableReference,
)
from .scanner import ScopeTree, previous_word

FK_JOIN_PRIORITY = 150.0
REVERSE_FK_JOIN_PRIORITY = 140.0
FK_TABLE_PRIORITY = 100.0
JOIN_HINT_PRIORITY = 100.0

# Words typed right before a join target; the FK lookup treats them as an empty filter.
_JOIN_WORDS = frozenset({"join", "inner", "left", "right", "outer", "cross", "natural", "on", "and", "or"})

TYPE_OPERATORS: Mapping[str, tuple[str, ...]] = {
    "numeric": ("=", "!=", "<>", "<", ">", "<=", ">=", "BETWEEN", "IN", "NOT IN", "IS NULL", "IS NOT NULL"),
    "string": ("=", "!=", "<>", "LIKE", "NOT LIKE", "REGEXP", "IN", "NOT IN", "IS NULL", "IS NOT NULL"),
    "date": ("=", "!=", "<>", "<", ">", "<=", ">=", "BETWEEN", "IS NULL", "IS NOT NULL"),
    "json": ("->", "->>", "IS NULL", "IS NOT NULL"),
    "blob": ("IS NULL", "IS NOT NULL"),
}

_NUMERIC_TYPES = ("int", "bigint", "smallint", "tinyint", "decimal", "float", "double", "numeric")
_DATE_TYPES = ("date", "time", "datetime", "timestamp", "year")


@dataclass(slots=True)
class CompletionRequest:
    """Everything a generator needs to know about one keystroke."""

    text: str
    cursor: int
    token: str
    context: Context
    database: str
    tree: ScopeTree

    @property
    def token_start(self) -> int:
        return self.cursor - len(self.token)

    @property
    def visible_tables(self) -> list[TableReference]:
        """Tables visible from the cursor's scope, minus the reference being typed."""

        return [ref for ref in self.tree.visible_tables(self.cursor) if not self._is_typing(ref)]

    @property
    def query_tables(self) -> list[TableReference]:
        return [ref for ref in self.tree.all_tables() if not self._is_typing(ref)]

    def database_for(self, ref: TableReference) -> str:
        return ref.database or self.database

    def _is_typing(self, ref: TableReference) -> bool:
        return bool(self.token) and ref.alias is None and ref.position == self.token_start


def generate_alias(table: str, used: Iterable[str]) -> str:
    """First letter, first two letters, letter plus digit, then first three letters."""

    base = table.lower()
    if not base:
        return "t"
    taken = {alias.lower() for alias in used}
    first = base[0]
    for alias in (first, base[:2], *(f"{first}{digit}" for digit in range(1, 10))):
        if alias not in taken and not is_keyword(alias):
            return alias
    return base[:3]


def operator_family(declared_type: str) -> str:
    lowered = declared_type.lower()
    if any(name in lowered for name in _NUMERIC_TYPES):
        return "numeric"
    if any(name in lowered for name in _DATE_TYPES):
        return "date"
    if "json" in lowered:
        return "json"
    if "blob" in lowered or "binary" in lowered:
        return "blob"
    return "string"


def column_candidate(
    column: ColumnInfo,
    insert_text: str,
    *,
    detail: str | None = None,
    inherited: bool = False,
) -> Candidate:
    return Candidate(
        kind=CandidateKind.COLUMN,
        insert_text=insert_text,
        label=column.name,
        detail=detail if detail is not None else (column.declared_type or None),
        is_primary_key=column.key_class is KeyClass.PRIMARY,
        is_foreign_key=column.key_class is KeyClass.FOREIGN,
        inherited=inherited,
    )


def _wildcard(insert_text: str, detail: str = "All columns") -> Candidate:
    return Candidate(kind=CandidateKind.COLUMN, insert_text=insert_text, label="*", detail=detail)


def _wants_wildcard(suffix: str) -> bool:
    return "*".startswith(suffix)


Generator = Callable[[CompletionRequest], Awaitable[list[Candidate]]]


class SuggestionGenerators:
    """Context-specific candidate producers backed by a metadata snapshot."""

    def __init__(
        self,
        metadata: MetadataSnapshot,
        keywords: KeywordCatalog | None = None,
        functions: FunctionCatalog | None = None,
    ) -> None:
        self._metadata = metadata
        self._keywords = keywords or KeywordCatalog.default()
        self._functions = functions or FunctionCatalog.default()
        self._handlers: dict[Context, Generator] = {
            Context.SELECT: self.select,
            Context.FROM: self.tables,
            Context.JOIN: self.tables,
            Context.UPDATE: self.tables,
            Context.ON: self.join_condition,
            Context.WHERE: self.where,
            Context.HAVING: self.where,
            Context.GROUP_BY: self.columns,
            Context.ORDER_BY: self.columns,
            Context.SET: self.set_columns,
        }

    @property
    def metadata(self) -> MetadataSnapshot:
        return self._metadata

    async def generate(self, request: CompletionRequest) -> list[Candidate]:
        if "." in request.token:
            return await self.dotted(request)
        handler = self._handlers.get(request.context, self.general)
        return await handler(request)

    async def select(self, request: CompletionRequest) -> list[Candidate]:
        candidates = self._aliases(request, request.visible_tables)
        candidates.extend(await self.columns(request))
        candidates.extend(self._functions.candidates(request.token, (AGGREGATE,)))
        candidates.extend(self._functions.candidates(request.token, (WINDOW,)))
        candidates.extend(self._keywords.candidates(request.token, SELECT_KEYWORDS))
        return candidates

    async def tables(self, request: CompletionRequest) -> list[Candidate]:
        token = request.token
        discovered: set[str] = set()
        candidates: list[Candidate] = [
            Candidate(kind=CandidateKind.CTE, insert_text=cte.name, label=cte.name, detail="CTE")
            for cte in request.tree.visible_ctes(request.cursor)
            if is_match(token, cte.name)
        ]
        related, databases, schemas, tables = await asyncio.gather(
            self.foreign_key_joins(request, discovered),
            self._metadata.databases(),
            self._metadata.schemas(),
            self._metadata.tables(request.database),
        )
        candidates.extend(related)
        candidates.extend(
            Candidate(kind=CandidateKind.DATABASE, insert_text=name, label=name, detail="Database")
            for name in databases
            if is_match(token, name)
        )
        candidates.extend(
            Candidate(kind=CandidateKind.SCHEMA, insert_text=name, label=name, detail="Schema")
            for name in schemas
            if is_match(token, name)
        )
        candidates.extend(
            Candidate(kind=CandidateKind.TABLE, insert_text=name, label=name, detail=request.database)
            for name in tables
            if is_match(token, name) and name.lower() not in discovered
        )
        candidates.extend(self._keywords.candidates(token, JOIN_KEYWORDS))
        return candidates

    async def foreign_key_joins(
        self, request: CompletionRequest, discovered: set[str] | None = None
    ) -> list[Candidate]:
        """Complete ``JOIN`` clauses (and bare table names) for tables related by foreign keys.

        Lower-cased names of the related tables are added to ``discovered``.
        """

        present = request.query_tables
        sources = [ref for ref in request.visible_tables if ref.origin is TableOrigin.LITERAL]
        if not sources:
            return []
        token = "" if request.token.lower() in _JOIN_WORDS else request.token
        in_query = {ref.table.lower() for ref in present}
        used_aliases = [ref.name for ref in present]
        relations = await asyncio.gather(*(self._relations(request.database_for(ref), ref.table) for ref in sources))

        candidates: list[Candidate] = []
        seen = discovered if discovered is not None else set()
        for ref, (forward, reverse) in zip(sources, relations):
            for fk in forward:
                target = fk.referenced_table
                if not self._new_related(target, token, seen, in_query):
                    continue
                alias = generate_alias(target, used_aliases)
                candidates.append(
                    Candidate(
                        kind=CandidateKind.FK_JOIN,
                        insert_text=f"JOIN {target} {alias} ON {ref.name}.{fk.column} = {alias}.{fk.referenced_column}",
                        label=f"{target} (via {fk.column})",
                        detail=f"JOIN {ref.table}.{fk.column} -> {target}.{fk.referenced_column}",
                        priority=FK_JOIN_PRIORITY,
                    )
                )
                candidates.append(
                    Candidate(
                        kind=CandidateKind.FK_TABLE,
                        insert_text=target,
                        label=target,
                        detail=f"FK from {ref.table}",
                        priority=FK_TABLE_PRIORITY,
                    )
                )
            for rfk in reverse:
                source = rfk.source_table
                if not self._new_related(source, token, seen, in_query):
                    continue
                alias = generate_alias(source, used_aliases)
                candidates.append(
                    Candidate(
                        kind=CandidateKind.FK_JOIN,
                        insert_text=(
                            f"JOIN {source} {alias} ON {ref.name}.{rfk.referenced_column} = {alias}.{rfk.source_column}"
                        ),
                        label=f"{source} (via {rfk.source_column})",
                        detail=f"JOIN {source}.{rfk.source_column} -> {ref.table}.{rfk.referenced_column}",
                        priority=REVERSE_FK_JOIN_PRIORITY,
                    )
                )
                candidates.append(
                    Candidate(
                        kind=CandidateKind.FK_TABLE,
                        insert_text=source,
                        label=source,
                        detail=f"FK to {ref.table}",
                        priority=FK_TABLE_PRIORITY,
                    )
                )
        return candidates

    async def join_condition(self, request: CompletionRequest) -> list[Candidate]:
        token = request.token
        refs = [ref for ref in request.visible_tables if ref.origin is TableOrigin.LITERAL]
        columns = await asyncio.gather(
            *(self._metadata.columns(request.database_for(ref), ref.table) for ref in refs)
        )
        candidates: list[Candidate] = []
        for ref, table_columns in zip(refs, columns):
            if is_match(token, ref.name):
                candidates.append(
                    Candidate(kind=CandidateKind.ALIAS, insert_text=ref.name, label=ref.name, detail=ref.table)
                )
            for column in table_columns:
                qualified = f"{ref.name}.{column.name}"
                if is_match(token, qualified) or is_match(token, column.name):
                    candidates.append(column_candidate(column, qualified))
        candidates.extend(await self.join_hints(request))
        return candidates

    async def join_hints(self, request: CompletionRequest) -> list[Candidate]:
        """Equality conditions for foreign keys between two tables already in the query."""

        refs = [ref for ref in request.visible_tables if ref.origin is TableOrigin.LITERAL]
        if len(refs) < 2:
            return []
        ordered = list(reversed(refs))
        foreign_keys = await asyncio.gather(
            *(self._metadata.foreign_keys(request.database_for(ref), ref.table) for ref in ordered)
        )
        hints: list[Candidate] = []
        for ref, fks in zip(ordered, foreign_keys):
            for fk in fks:
                for other in refs:
                    if other is ref or other.table.lower() != fk.referenced_table.lower():
                        continue
                    condition = f"{ref.name}.{fk.column} = {other.name}.{fk.referenced_column}"
                    hints.append(
                        Candidate(
                            kind=CandidateKind.JOIN_HINT,
                            insert_text=condition,
                            label=condition,
                            detail="FK relationship",
                            priority=JOIN_HINT_PRIORITY,
                        )
                    )
        return hints

    async def where(self, request: CompletionRequest) -> list[Candidate]:
        candidates = self._aliases(request, request.visible_tables)
        candidates.extend(await self.columns(request))
        previous = previous_word(request.text, request.cursor)
        if previous and not is_keyword(previous):
            candidates.extend(await self.operators(request, previous))
        candidates.extend(self._keywords.candidates(request.token, LOGICAL_KEYWORDS))
        candidates.extend(self._functions.candidates(request.token))
        return candidates

    async def columns(self, request: CompletionRequest) -> list[Candidate]:
        """Columns of every visible table, first occurrence of a name wins."""

        refs = [ref for ref in request.visible_tables if ref.origin is TableOrigin.LITERAL]
        columns = await asyncio.gather(
            *(self._metadata.columns(request.database_for(ref), ref.table) for ref in refs)
        )
        candidates: list[Candidate] = []
        seen: set[str] = set()
        for ref, table_columns in zip(refs, columns):
            for column in table_columns:
                key = column.name.lower()
                if key in seen or not is_match(request.token, column.name):
                    continue
                seen.add(key)
                candidates.append(
                    column_candidate(
                        column,
                        column.name,
                        detail=f"{ref.name} • {column.declared_type}",
                        inherited=ref.inherited,
                    )
                )
        return candidates

    async def set_columns(self, request: CompletionRequest) -> list[Candidate]:
        targets = [ref for ref in request.query_tables if ref.keyword == "UPDATE"] or request.visible_tables
        refs = [ref for ref in targets if ref.origin is TableOrigin.LITERAL]
        columns = await asyncio.gather(
            *(self._metadata.columns(request.database_for(ref), ref.table) for ref in refs)
        )
        return [
            column_candidate(column, f"{column.name} = ")
            for table_columns in columns
            for column in table_columns
            if is_match(request.token, column.name)
        ]

    async def operators(self, request: CompletionRequest, column_name: str) -> list[Candidate]:
        family = "string"
        column = await self._lookup_column(request, column_name)
        if column is not None:
            family = operator_family(column.declared_type)
        return [
            Candidate(kind=CandidateKind.OPERATOR, insert_text=f" {op} ", label=op, detail=f"{family} operator")
            for op in TYPE_OPERATORS[family]
            if is_match(request.token, op)
        ]

    async def general(self, request: CompletionRequest) -> list[Candidate]:
        candidates = self._keywords.candidates(request.token)
        candidates.extend(await self.tables(request))
        candidates.extend(self._functions.candidates(request.token))
        return candidates

    async def dotted(self, request: CompletionRequest) -> list[Candidate]:
        """Resolve ``prefix.suffix`` or ``db.table.suffix``."""

        parts = request.token.split(".")
        if len(parts) >= 3:
            return await self._qualified_columns(parts[0], parts[1], parts[2])
        prefix, suffix = parts[0], parts[1]
        if not prefix:
            return []
        lowered = prefix.lower()

        schemas = await self._metadata.schemas()
        schema = next((name for name in schemas if name.lower() == lowered), None)
        if schema is not None:
            return await self._prefixed_tables(prefix, schema, suffix, detail=f"schema: {schema}")

        databases = await self._metadata.databases()
        database = next((name for name in databases if name.lower() == lowered), None)
        if database is not None:
            return await self._prefixed_tables(prefix, database, suffix, detail=database)

        ref = request.tree.resolve(prefix, request.cursor)
        if ref is not None:
            if ref.origin is TableOrigin.CTE:
                return [_wildcard(f"{prefix}.*", "All columns from CTE")]
            return await self._prefixed_columns(prefix, request.database_for(ref), ref.table, suffix)

        tables = await self._metadata.tables(request.database)
        table = next((name for name in tables if name.lower() == lowered), None)
        if table is not None:
            return await self._prefixed_columns(prefix, request.database, table, suffix)
        return []

    async def _qualified_columns(self, database: str, table: str, suffix: str) -> list[Candidate]:
        candidates = [
            column_candidate(column, f"{database}.{table}.{column.name}")
            for column in await self._metadata.columns(database, table)
            if not suffix or is_match(suffix, column.name)
        ]
        if _wants_wildcard(suffix):
            candidates.insert(0, _wildcard(f"{database}.{table}.*"))
        return candidates

    async def _prefixed_columns(self, prefix: str, database: str, table: str, suffix: str) -> list[Candidate]:
        candidates = [
            column_candidate(column, f"{prefix}.{column.name}")
            for column in await self._metadata.columns(database, table)
            if not suffix or is_match(suffix, column.name)
        ]
        if _wants_wildcard(suffix):
            candidates.insert(0, _wildcard(f"{prefix}.*"))
        return candidates

    async def _prefixed_tables(self, prefix: str, database: str, suffix: str, *, detail: str) -> list[Candidate]:
        return [
            Candidate(kind=CandidateKind.TABLE, insert_text=f"{prefix}.{table}", label=table, detail=detail)
            for table in await self._metadata.tables(database)
            if not suffix or is_match(suffix, table)
        ]

    def _aliases(self, request: CompletionRequest, refs: Sequence[TableReference]) -> list[Candidate]:
        candidates: list[Candidate] = []
        for ref in refs:
            if not is_match(request.token, ref.name):
                continue
            candidates.append(
                Candidate(
                    kind=CandidateKind.ALIAS,
                    insert_text=ref.name,
                    label=ref.name,
                    detail=f"alias of {ref.table}" if ref.alias else "table",
                    inherited=ref.inherited,
                )
            )
        return candidates

    async def _relations(
        self, database: str, table: str
    ) -> tuple[tuple[ForeignKey, ...], tuple[ReverseForeignKey, ...]]:
        if not database:
            return (), ()
        forward, reverse = await asyncio.gather(
            self._metadata.foreign_keys(database, table),
            self._metadata.reverse_foreign_keys(database, table),
        )
        return forward, reverse

    async def _lookup_column(self, request: CompletionRequest, name: str) -> ColumnInfo | None:
        qualifier, _, column_name = name.rpartition(".")
        if qualifier:
            ref = request.tree.resolve(qualifier, request.cursor)
            refs = [ref] if ref is not None else []
        else:
            refs = request.visible_tables
        for ref in refs:
            if ref.origin is not TableOrigin.LITERAL:
                continue
            column = await self._metadata.column(request.database_for(ref), ref.table, column_name)
            if column is not None:
                return column
        return None

    @staticmethod
    def _new_related(table: str, token: str, seen: set[str], in_query: set[str]) -> bool:
        key = table.lower()
        if not table or key in seen or key in in_query:
            return False
        if token and not is_match(token, table):
            return False
        seen.add(key)
        return True


__all__ = [
    "CompletionRequest",
    "SuggestionGenerators",
    "TYPE_OPERATORS",
    "column_candidate",
    "generate_alias",
    "operator_family",
]
