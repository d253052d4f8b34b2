"""Metadata adapters feeding schema information into the completion engine."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol, Sequence, Union

from .models import ColumnInfo, ForeignKey, IndexInfo, KeyClass, ReverseForeignKey

LOG = logging.getLogger(__name__)


class MetadataProvider(Protocol):
    """Read-only schema lookups; every method may raise on connection trouble."""

    async def list_databases(self) -> Sequence[str]:
        """Return database names."""

    async def list_schemas(self) -> Sequence[str]:
        """Return schema names (empty for engines without schemas)."""

    async def list_tables(self, database: str) -> Sequence[str]:
        """Return table names of a database or schema."""

    async def list_columns(self, database: str, table: str) -> Sequence[ColumnInfo]:
        """Return columns of ``database.table`` in ordinal order."""

    async def list_foreign_keys(self, database: str, table: str) -> Sequence[ForeignKey]:
        """Return outgoing foreign keys of ``database.table``."""

    async def list_indexes(self, database: str, table: str) -> Sequence[IndexInfo]:
        """Return indexes defined on ``database.table``."""


ColumnSpec = Union[str, ColumnInfo]


@dataclass(slots=True)
class TableSpec:
    """In-memory description of one table."""

    columns: tuple[ColumnInfo, ...] = ()
    foreign_keys: tuple[ForeignKey, ...] = ()
    indexes: tuple[IndexInfo, ...] = ()

    @classmethod
    def of(
        cls,
        columns: Iterable[ColumnSpec],
        foreign_keys: Iterable[ForeignKey] = (),
        indexes: Iterable[IndexInfo] = (),
    ) -> "TableSpec":
        fks = tuple(foreign_keys)
        fk_columns = {fk.column.lower() for fk in fks}
        parsed: list[ColumnInfo] = []
        for column in columns:
            if isinstance(column, ColumnInfo):
                parsed.append(column)
            elif column.lower() in fk_columns:
                parsed.append(ColumnInfo(name=column, key_class=KeyClass.FOREIGN))
            else:
                parsed.append(ColumnInfo(name=column))
        return cls(columns=tuple(parsed), foreign_keys=fks, indexes=tuple(indexes))


TableInput = Union[TableSpec, Sequence[ColumnSpec]]


class StaticMetadataProvider:
    """Simple metadata provider backed by an in-memory catalog."""

    def __init__(
        self,
        databases: Mapping[str, Mapping[str, TableInput]] | None = None,
        *,
        schemas: Sequence[str] = (),
    ) -> None:
        self._databases: dict[str, tuple[str, dict[str, tuple[str, TableSpec]]]] = {}
        self._schemas: tuple[str, ...] = tuple(schemas)
        self.update(databases or {})

    @classmethod
    def from_tables(
        cls,
        tables: Mapping[str, Sequence[str]],
        *,
        default_database: str = "public",
    ) -> "StaticMetadataProvider":
        """Build from ``{"db.table": columns}`` or ``{"table": columns}`` mappings."""

        databases: dict[str, dict[str, TableInput]] = {}
        for name, columns in tables.items():
            database, _, table = name.rpartition(".")
            databases.setdefault(database or default_database, {})[table] = tuple(columns)
        return cls(databases)

    def update(self, databases: Mapping[str, Mapping[str, TableInput]]) -> None:
        """Replace the in-memory catalog."""

        self._databases.clear()
        for database, tables in databases.items():
            entries: dict[str, tuple[str, TableSpec]] = {}
            for table, spec in tables.items():
                if not isinstance(spec, TableSpec):
                    spec = TableSpec.of(spec)
                entries[_normalize(table)] = (table, spec)
            self._databases[_normalize(database)] = (database, entries)

    async def list_databases(self) -> Sequence[str]:
        return tuple(label for label, _ in self._databases.values())

    async def list_schemas(self) -> Sequence[str]:
        return self._schemas

    async def list_tables(self, database: str) -> Sequence[str]:
        entry = self._databases.get(_normalize(database))
        if entry is None:
            return ()
        return tuple(label for label, _ in entry[1].values())

    async def list_columns(self, database: str, table: str) -> Sequence[ColumnInfo]:
        spec = self._table(database, table)
        return spec.columns if spec else ()

    async def list_foreign_keys(self, database: str, table: str) -> Sequence[ForeignKey]:
        spec = self._table(database, table)
        return spec.foreign_keys if spec else ()

    async def list_indexes(self, database: str, table: str) -> Sequence[IndexInfo]:
        spec = self._table(database, table)
        return spec.indexes if spec else ()

    def _table(self, database: str, table: str) -> TableSpec | None:
        entry = self._databases.get(_normalize(database))
        if entry is None:
            return None
        found = entry[1].get(_normalize(table))
        return found[1] if found else None


@dataclass(slots=True)
class _SnapshotState:
    slices: dict[tuple[str, ...], tuple[Any, ...]] = field(default_factory=dict)
    reverse: dict[str, dict[str, tuple[ReverseForeignKey, ...]]] = field(default_factory=dict)


class MetadataSnapshot:
    """Per-connection lazy cache over a :class:`MetadataProvider`.

    Each ``(operation, key)`` slice is fetched on first access and replaced as a whole.
    Provider failures are logged and answered with an empty, uncached slice so a later
    request retries. :meth:`invalidate` drops everything; fetches that were in flight
    when it ran do not repopulate the new state.
    """

    def __init__(self, provider: MetadataProvider) -> None:
        self._provider = provider
        self._state = _SnapshotState()

    @property
    def provider(self) -> MetadataProvider:
        return self._provider

    def invalidate(self) -> None:
        self._state = _SnapshotState()

    async def databases(self) -> tuple[str, ...]:
        return await self._load(("databases",), self._provider.list_databases)

    async def schemas(self) -> tuple[str, ...]:
        return await self._load(("schemas",), self._provider.list_schemas)

    async def tables(self, database: str) -> tuple[str, ...]:
        if not database:
            return ()
        return await self._load(("tables", database.lower()), lambda: self._provider.list_tables(database))

    async def columns(self, database: str, table: str) -> tuple[ColumnInfo, ...]:
        return await self._load(
            ("columns", database.lower(), table.lower()),
            lambda: self._provider.list_columns(database, table),
        )

    async def foreign_keys(self, database: str, table: str) -> tuple[ForeignKey, ...]:
        return await self._load(
            ("foreign_keys", database.lower(), table.lower()),
            lambda: self._provider.list_foreign_keys(database, table),
        )

    async def indexes(self, database: str, table: str) -> tuple[IndexInfo, ...]:
        return await self._load(
            ("indexes", database.lower(), table.lower()),
            lambda: self._provider.list_indexes(database, table),
        )

    async def column(self, database: str, table: str, name: str) -> ColumnInfo | None:
        lowered = name.lower()
        for column in await self.columns(database, table):
            if column.name.lower() == lowered:
                return column
        return None

    async def reverse_foreign_keys(self, database: str, table: str) -> tuple[ReverseForeignKey, ...]:
        """Foreign keys of other tables in ``database`` that reference ``table``.

        The scan covers every table of the database once and is memoized per database.
        """

        state = self._state
        index = state.reverse.get(database.lower())
        if index is None:
            index, complete = await self._reverse_index(database)
            if complete and state is self._state:
                state.reverse[database.lower()] = index
        return index.get(table.lower(), ())

    async def _reverse_index(self, database: str) -> tuple[dict[str, tuple[ReverseForeignKey, ...]], bool]:
        state = self._state
        tables = await self.tables(database)
        results = await asyncio.gather(
            *(self._provider.list_foreign_keys(database, table) for table in tables),
            return_exceptions=True,
        )
        complete = ("tables", database.lower()) in state.slices
        index: dict[str, list[ReverseForeignKey]] = {}
        for table, result in zip(tables, results):
            if isinstance(result, BaseException):
                complete = False
                LOG.warning(
                    "Metadata lookup failed",
                    extra={"operation": "foreign_keys", "target": f"{database}.{table}", "error": str(result)},
                )
                continue
            for fk in result:
                if fk.referenced_table.lower() == table.lower():
                    continue
                index.setdefault(fk.referenced_table.lower(), []).append(
                    ReverseForeignKey(
                        source_table=table,
                        source_column=fk.column,
                        referenced_column=fk.referenced_column,
                    )
                )
        return {key: tuple(value) for key, value in index.items()}, complete

    async def _load(self, key: tuple[str, ...], fetch: Callable[[], Awaitable[Sequence[Any]]]) -> tuple[Any, ...]:
        state = self._state
        cached = state.slices.get(key)
        if cached is not None:
            return cached
        try:
            value = tuple(await fetch())
        except Exception as exc:
            LOG.warning(
                "Metadata lookup failed",
                extra={"operation": key[0], "target": ".".join(key[1:]), "error": str(exc)},
            )
            return ()
        if state is self._state:
            state.slices[key] = value
        return value


def _normalize(value: str) -> str:
    return value.replace('"', "").lower()


__all__ = ["MetadataProvider", "MetadataSnapshot", "StaticMetadataProvider", "TableSpec"]
