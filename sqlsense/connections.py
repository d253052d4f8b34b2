"""Metadata provider adapters backed by live connections or profile config."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import asyncpg

from .completion.metadata import MetadataProvider, StaticMetadataProvider
from .completion.models import ColumnInfo, ForeignKey, IndexInfo, KeyClass
from .config import ConnectionProfileConfig
from .models import ConnectionProfile

LOG = logging.getLogger(__name__)


class MetadataProviderError(RuntimeError):
    """Raised when a provider cannot connect or read metadata."""


class AsyncpgMetadataProvider:
    """Metadata provider that queries PostgreSQL via asyncpg.

    Schemas play the role of databases: ``list_tables("public")`` lists the tables of
    the ``public`` schema. Every call opens a short-lived connection.
    """

    _DATABASES_QUERY = """
        SELECT schema_name
        FROM information_schema.schemata
        WHERE schema_name NOT IN ('pg_catalog', 'information_schema')
          AND schema_name NOT LIKE 'pg_toast%'
          AND schema_name NOT LIKE 'pg_temp%'
        ORDER BY schema_name
    """

    _TABLES_QUERY = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = $1
        ORDER BY table_name
    """

    _COLUMNS_QUERY = """
        SELECT c.column_name, c.data_type, c.is_nullable,
               (
                   SELECT tc.constraint_type
                   FROM information_schema.key_column_usage k
                   JOIN information_schema.table_constraints tc
                     ON tc.constraint_name = k.constraint_name
                    AND tc.table_schema = k.table_schema
                   WHERE k.table_schema = c.table_schema
                     AND k.table_name = c.table_name
                     AND k.column_name = c.column_name
                   ORDER BY CASE tc.constraint_type
                       WHEN 'PRIMARY KEY' THEN 0
                       WHEN 'UNIQUE' THEN 1
                       WHEN 'FOREIGN KEY' THEN 2
                       ELSE 3
                   END
                   LIMIT 1
               ) AS constraint_type
        FROM information_schema.columns c
        WHERE c.table_schema = $1 AND c.table_name = $2
        ORDER BY c.ordinal_position
    """

    _FOREIGN_KEYS_QUERY = """
        SELECT kcu.column_name, ccu.table_name AS referenced_table,
               ccu.column_name AS referenced_column
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage kcu
          ON tc.constraint_name = kcu.constraint_name
         AND tc.table_schema = kcu.table_schema
        JOIN information_schema.constraint_column_usage ccu
          ON ccu.constraint_name = tc.constraint_name
         AND ccu.table_schema = tc.table_schema
        WHERE tc.constraint_type = 'FOREIGN KEY'
          AND tc.table_schema = $1 AND tc.table_name = $2
        ORDER BY kcu.ordinal_position
    """

    _INDEXES_QUERY = """
        SELECT i.relname AS index_name, ix.indisunique AS is_unique,
               array_agg(a.attname ORDER BY k.ordinality) AS columns
        FROM pg_catalog.pg_index ix
        JOIN pg_catalog.pg_class t ON t.oid = ix.indrelid
        JOIN pg_catalog.pg_class i ON i.oid = ix.indexrelid
        JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
        CROSS JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ordinality)
        JOIN pg_catalog.pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
        WHERE n.nspname = $1 AND t.relname = $2
        GROUP BY i.relname, ix.indisunique
        ORDER BY i.relname
    """

    def __init__(self, profile: ConnectionProfile, *, connect_timeout: float = 3.0) -> None:
        self._profile = profile
        self._connect_timeout = connect_timeout

    @property
    def profile(self) -> ConnectionProfile:
        return self._profile

    async def list_databases(self) -> Sequence[str]:
        rows = await self._fetch(self._DATABASES_QUERY)
        return tuple(str(row["schema_name"]) for row in rows)

    async def list_schemas(self) -> Sequence[str]:
        return ()

    async def list_tables(self, database: str) -> Sequence[str]:
        rows = await self._fetch(self._TABLES_QUERY, database)
        return tuple(str(row["table_name"]) for row in rows)

    async def list_columns(self, database: str, table: str) -> Sequence[ColumnInfo]:
        rows = await self._fetch(self._COLUMNS_QUERY, database, table)
        return tuple(
            ColumnInfo(
                name=str(row["column_name"]),
                declared_type=str(row["data_type"] or ""),
                nullable=str(row["is_nullable"]).upper() != "NO",
                key_class=_key_class(row["constraint_type"]),
            )
            for row in rows
        )

    async def list_foreign_keys(self, database: str, table: str) -> Sequence[ForeignKey]:
        rows = await self._fetch(self._FOREIGN_KEYS_QUERY, database, table)
        return tuple(
            ForeignKey(
                column=str(row["column_name"]),
                referenced_table=str(row["referenced_table"]),
                referenced_column=str(row["referenced_column"]),
            )
            for row in rows
        )

    async def list_indexes(self, database: str, table: str) -> Sequence[IndexInfo]:
        rows = await self._fetch(self._INDEXES_QUERY, database, table)
        return tuple(
            IndexInfo(
                name=str(row["index_name"]),
                columns=tuple(str(column) for column in row["columns"] or ()),
                unique=bool(row["is_unique"]),
            )
            for row in rows
        )

    async def _fetch(self, query: str, *args: Any) -> Sequence[Any]:
        conn = await self._connect_profile()
        try:
            return await conn.fetch(query, *args)
        except Exception as exc:
            raise MetadataProviderError(f"Failed to fetch metadata for '{self._profile.name}': {exc}") from exc
        finally:
            try:
                await conn.close()
            except Exception as exc:  # pragma: no cover - best effort
                LOG.debug("Closing connection failed", extra={"profile": self._profile.name, "error": str(exc)})

    async def _connect_profile(self):
        profile = self._profile
        kwargs: dict[str, object] = {}
        if profile.dsn:
            kwargs["dsn"] = profile.dsn
        else:
            kwargs["host"] = profile.host or "localhost"
            if profile.port is not None:
                kwargs["port"] = profile.port
            if profile.user:
                kwargs["user"] = profile.user
            if profile.database:
                kwargs["database"] = profile.database
        kwargs.setdefault("timeout", self._connect_timeout)
        try:
            return await asyncpg.connect(**kwargs)
        except Exception as exc:
            raise MetadataProviderError(f"Failed to connect to profile '{profile.name}': {exc}") from exc


def profile_from_config(config: ConnectionProfileConfig) -> ConnectionProfile:
    """Convert a config entry into a runtime profile."""

    metadata = None
    if config.metadata:
        metadata = {table: tuple(columns) for table, columns in config.metadata.items()}
    return ConnectionProfile(
        name=config.name,
        dsn=config.dsn,
        host=config.host,
        port=config.port,
        database=config.database,
        user=config.user,
        metadata=metadata,
    )


def provider_for_profile(profile: ConnectionProfile, *, connect_timeout: float = 3.0) -> MetadataProvider:
    """Inline metadata yields a static provider; anything else talks to PostgreSQL."""

    if profile.metadata is not None:
        return StaticMetadataProvider.from_tables(profile.metadata)
    return AsyncpgMetadataProvider(profile, connect_timeout=connect_timeout)


def _key_class(constraint_type: object) -> KeyClass:
    if constraint_type == "PRIMARY KEY":
        return KeyClass.PRIMARY
    if constraint_type == "UNIQUE":
        return KeyClass.UNIQUE
    if constraint_type == "FOREIGN KEY":
        return KeyClass.FOREIGN
    return KeyClass.NONE


__all__ = [
    "AsyncpgMetadataProvider",
    "MetadataProviderError",
    "profile_from_config",
    "provider_for_profile",
]
