"""Tests for the metadata provider adapters."""

from __future__ import annotations

from typing import Any

import pytest

from sqlsense.completion.metadata import StaticMetadataProvider
from sqlsense.completion.models import ColumnInfo, ForeignKey, KeyClass
from sqlsense.config import ConnectionProfileConfig
from sqlsense.connections import (
    AsyncpgMetadataProvider,
    MetadataProviderError,
    profile_from_config,
    provider_for_profile,
)
from sqlsense.models import ConnectionProfile


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _FakeConnection:
    def __init__(self) -> None:
        self.queries: list[tuple[str, tuple[Any, ...]]] = []
        self.closed = 0

    async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
        self.queries.append((query, args))
        if "information_schema.schemata" in query:
            return [{"schema_name": "public"}, {"schema_name": "sales"}]
        if "information_schema.tables" in query:
            return [{"table_name": "customers"}, {"table_name": "orders"}]
        if "FOREIGN KEY'" in query and "constraint_column_usage" in query:
            return [{"column_name": "customer_id", "referenced_table": "customers", "referenced_column": "id"}]
        if "information_schema.columns" in query:
            return [
                {"column_name": "id", "data_type": "integer", "is_nullable": "NO", "constraint_type": "PRIMARY KEY"},
                {"column_name": "customer_id", "data_type": "integer", "is_nullable": "YES", "constraint_type": "FOREIGN KEY"},
                {"column_name": "note", "data_type": "text", "is_nullable": "YES", "constraint_type": None},
            ]
        if "pg_index" in query:
            return [{"index_name": "orders_pkey", "is_unique": True, "columns": ["id"]}]
        raise AssertionError(f"unexpected query: {query}")

    async def close(self) -> None:
        self.closed += 1


@pytest.mark.anyio
async def test_asyncpg_provider_maps_rows(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_conn = _FakeConnection()
    connect_kwargs: list[dict[str, Any]] = []

    async def _fake_connect(**kwargs: Any) -> _FakeConnection:
        connect_kwargs.append(kwargs)
        return fake_conn

    monkeypatch.setattr("sqlsense.connections.asyncpg.connect", _fake_connect)
    provider = AsyncpgMetadataProvider(
        ConnectionProfile(name="Local", host="localhost", port=5432, database="postgres", user="postgres")
    )

    assert await provider.list_databases() == ("public", "sales")
    assert await provider.list_schemas() == ()
    assert await provider.list_tables("public") == ("customers", "orders")
    columns = await provider.list_columns("public", "orders")
    foreign_keys = await provider.list_foreign_keys("public", "orders")
    indexes = await provider.list_indexes("public", "orders")

    assert columns[0] == ColumnInfo(name="id", declared_type="integer", nullable=False, key_class=KeyClass.PRIMARY)
    assert columns[1].key_class is KeyClass.FOREIGN
    assert columns[2].key_class is KeyClass.NONE
    assert foreign_keys == (ForeignKey(column="customer_id", referenced_table="customers", referenced_column="id"),)
    assert indexes[0].name == "orders_pkey"
    assert indexes[0].columns == ("id",)
    assert indexes[0].unique is True
    assert fake_conn.closed == 5
    assert connect_kwargs[0] == {
        "host": "localhost",
        "port": 5432,
        "user": "postgres",
        "database": "postgres",
        "timeout": 3.0,
    }
    assert fake_conn.queries[2][1] == ("public",)


@pytest.mark.anyio
async def test_asyncpg_provider_prefers_dsn(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: list[dict[str, Any]] = []

    async def _fake_connect(**kwargs: Any) -> _FakeConnection:
        captured.append(kwargs)
        return _FakeConnection()

    monkeypatch.setattr("sqlsense.connections.asyncpg.connect", _fake_connect)
    provider = AsyncpgMetadataProvider(ConnectionProfile(name="Remote", dsn="postgresql://db/app"), connect_timeout=1.5)

    await provider.list_databases()

    assert captured == [{"dsn": "postgresql://db/app", "timeout": 1.5}]


@pytest.mark.anyio
async def test_asyncpg_provider_surfaces_connection_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _broken_connect(**kwargs: Any) -> None:
        raise RuntimeError("boom")

    monkeypatch.setattr("sqlsense.connections.asyncpg.connect", _broken_connect)
    provider = AsyncpgMetadataProvider(ConnectionProfile(name="Broken"))

    with pytest.raises(MetadataProviderError):
        await provider.list_tables("public")


@pytest.mark.anyio
async def test_asyncpg_provider_closes_after_query_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    class _FailingConnection(_FakeConnection):
        async def fetch(self, query: str, *args: Any) -> list[dict[str, Any]]:
            raise RuntimeError("relation missing")

    conn = _FailingConnection()

    async def _fake_connect(**kwargs: Any) -> _FailingConnection:
        return conn

    monkeypatch.setattr("sqlsense.connections.asyncpg.connect", _fake_connect)
    provider = AsyncpgMetadataProvider(ConnectionProfile(name="Local"))

    with pytest.raises(MetadataProviderError):
        await provider.list_columns("public", "orders")
    assert conn.closed == 1


@pytest.mark.anyio
async def test_inline_metadata_profiles_use_static_provider() -> None:
    config = ConnectionProfileConfig(name="Offline", metadata={"public.users": ["id", "email"]})

    profile = profile_from_config(config)
    provider = provider_for_profile(profile)

    assert isinstance(provider, StaticMetadataProvider)
    assert await provider.list_tables("public") == ("users",)
    assert [column.name for column in await provider.list_columns("public", "users")] == ["id", "email"]


def test_profiles_without_metadata_use_asyncpg() -> None:
    profile = profile_from_config(ConnectionProfileConfig(name="Local", host="db", port=5433, database="app"))

    provider = provider_for_profile(profile)

    assert isinstance(provider, AsyncpgMetadataProvider)
    assert provider.profile.connection_id == "Local:db:5433/app"
