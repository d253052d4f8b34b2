"""Shared dataclasses used by the connection adapters and the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

TableColumns = Mapping[str, tuple[str, ...]]


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """Runtime representation of a connection profile."""

    name: str
    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    metadata: TableColumns | None = None

    @property
    def connection_id(self) -> str:
        """Key under which suggestions for this profile are cached."""

        if self.dsn:
            return f"{self.name}:{self.dsn}"
        return f"{self.name}:{self.host or 'localhost'}:{self.port or ''}/{self.database or ''}"


__all__ = ["ConnectionProfile", "TableColumns"]
