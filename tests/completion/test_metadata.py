"""Tests for the static provider and the lazy metadata snapshot."""

from __future__ import annotations

from typing import Sequence

import pytest

from sqlsense.completion.metadata import MetadataSnapshot, StaticMetadataProvider, TableSpec
from sqlsense.completion.models import ColumnInfo, ForeignKey, IndexInfo, KeyClass, ReverseForeignKey


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def _shop_tables() -> dict[str, dict[str, TableSpec]]:
    return {
        "public": {
            "customers": TableSpec.of([ColumnInfo("id", "integer", False, KeyClass.PRIMARY), "name"]),
            "orders": TableSpec.of(
                ["id", "customer_id", "total"],
                foreign_keys=[ForeignKey("customer_id", "customers", "id")],
                indexes=[IndexInfo("orders_customer_idx", ("customer_id",))],
            ),
            "payments": TableSpec.of(
                ["id", "order_id", "customer_id"],
                foreign_keys=[
                    ForeignKey("order_id", "orders", "id"),
                    ForeignKey("customer_id", "customers", "id"),
                ],
            ),
        }
    }


def _shop() -> StaticMetadataProvider:
    return StaticMetadataProvider(_shop_tables(), schemas=("public",))


class _CountingProvider(StaticMetadataProvider):
    def __init__(self, *args: object, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[str] = []
        self.broken: set[str] = set()

    async def list_tables(self, database: str) -> Sequence[str]:
        self.calls.append(f"tables:{database}")
        return await super().list_tables(database)

    async def list_columns(self, database: str, table: str) -> Sequence[ColumnInfo]:
        self.calls.append(f"columns:{table}")
        if table in self.broken:
            raise ConnectionError("lost connection")
        return await super().list_columns(database, table)

    async def list_foreign_keys(self, database: str, table: str) -> Sequence[ForeignKey]:
        self.calls.append(f"foreign_keys:{table}")
        if table in self.broken:
            raise TimeoutError("timed out")
        return await super().list_foreign_keys(database, table)


@pytest.mark.anyio
async def test_static_provider_is_case_insensitive() -> None:
    provider = _shop()

    assert await provider.list_databases() == ("public",)
    assert await provider.list_tables("PUBLIC") == ("customers", "orders", "payments")
    columns = await provider.list_columns("public", '"Orders"')
    assert [column.name for column in columns] == ["id", "customer_id", "total"]
    assert columns[1].key_class is KeyClass.FOREIGN
    assert await provider.list_columns("public", "missing") == ()
    assert await provider.list_tables("other") == ()


@pytest.mark.anyio
async def test_from_tables_splits_qualified_names() -> None:
    provider = StaticMetadataProvider.from_tables({"sales.orders": ["id"], "users": ["id", "email"]})

    assert await provider.list_databases() == ("sales", "public")
    assert await provider.list_tables("public") == ("users",)


@pytest.mark.anyio
async def test_snapshot_fetches_each_slice_once() -> None:
    provider = _CountingProvider({"public": {"users": ["id"]}})
    snapshot = MetadataSnapshot(provider)

    await snapshot.columns("public", "users")
    await snapshot.columns("PUBLIC", "USERS")
    column = await snapshot.column("public", "users", "ID")

    assert column is not None and column.name == "id"
    assert provider.calls == ["columns:users"]


@pytest.mark.anyio
async def test_snapshot_invalidate_reloads() -> None:
    provider = _CountingProvider({"public": {"users": ["id"]}})
    snapshot = MetadataSnapshot(provider)
    await snapshot.tables("public")

    provider.update({"public": {"users": ["id"], "orders": ["id"]}})
    assert await snapshot.tables("public") == ("users",)
    snapshot.invalidate()

    assert await snapshot.tables("public") == ("users", "orders")
    assert provider.calls == ["tables:public", "tables:public"]


@pytest.mark.anyio
async def test_provider_failures_degrade_to_empty_and_retry() -> None:
    provider = _CountingProvider({"public": {"users": ["id"]}})
    provider.broken.add("users")
    snapshot = MetadataSnapshot(provider)

    assert await snapshot.columns("public", "users") == ()
    provider.broken.clear()
    assert [column.name for column in await snapshot.columns("public", "users")] == ["id"]
    assert provider.calls == ["columns:users", "columns:users"]


@pytest.mark.anyio
async def test_reverse_foreign_keys_scan_database_once() -> None:
    provider = _CountingProvider(_shop_tables())
    snapshot = MetadataSnapshot(provider)

    reverse = await snapshot.reverse_foreign_keys("public", "customers")
    again = await snapshot.reverse_foreign_keys("public", "orders")

    assert reverse == (
        ReverseForeignKey("orders", "customer_id", "id"),
        ReverseForeignKey("payments", "customer_id", "id"),
    )
    assert again == (ReverseForeignKey("payments", "order_id", "id"),)
    assert provider.calls.count("tables:public") == 1
    assert provider.calls.count("foreign_keys:payments") == 1


@pytest.mark.anyio
async def test_reverse_scan_tolerates_failing_tables() -> None:
    provider = _CountingProvider(_shop_tables())
    provider.broken.add("orders")
    snapshot = MetadataSnapshot(provider)

    reverse = await snapshot.reverse_foreign_keys("public", "customers")

    assert reverse == (ReverseForeignKey("payments", "customer_id", "id"),)
    provider.broken.clear()
    healed = await snapshot.reverse_foreign_keys("public", "customers")
    assert len(healed) == 2
