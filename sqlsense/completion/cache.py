"""Short-lived memoization of ranked suggestion lists."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from .models import Candidate, Context

LOG = logging.getLogger(__name__)

DEFAULT_TTL = 60.0
DEFAULT_CAPACITY = 200
DEFAULT_MIN_TOKEN = 2


@dataclass(frozen=True, slots=True)
class CacheKey:
    connection_id: str
    context: Context
    token: str


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: CacheKey
    candidates: tuple[Candidate, ...]
    inserted_at: float


class SuggestionCache:
    """Bounded TTL cache evicting the oldest inserted entry when full."""

    def __init__(
        self,
        *,
        ttl: float = DEFAULT_TTL,
        capacity: int = DEFAULT_CAPACITY,
        min_token: int = DEFAULT_MIN_TOKEN,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl
        self._capacity = max(1, capacity)
        self._min_token = min_token
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}

    @staticmethod
    def key(context: Context, token: str, connection_id: str) -> CacheKey:
        return CacheKey(connection_id=connection_id, context=context, token=token.lower())

    def accepts(self, token: str) -> bool:
        """Only tokens of ``min_token`` characters or more are cached."""

        return len(token) >= self._min_token

    def get(self, context: Context, token: str, connection_id: str) -> list[Candidate] | None:
        key = self.key(context, token, connection_id)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self._entries[key]
            return None
        return list(entry.candidates)

    def set(self, context: Context, token: str, connection_id: str, candidates: Sequence[Candidate]) -> None:
        key = self.key(context, token, connection_id)
        self._entries.pop(key, None)
        if len(self._entries) >= self._capacity:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            LOG.debug("Evicted suggestion cache entry", extra={"token": oldest.token})
        self._entries[key] = CacheEntry(key=key, candidates=tuple(candidates), inserted_at=self._clock())

    def invalidate(self, connection_id: str) -> int:
        """Drop every entry belonging to ``connection_id``; returns the number dropped."""

        stale = [key for key in self._entries if key.connection_id == connection_id]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def invalidate_all(self) -> None:
        self._entries.clear()

    def entries(self) -> list[CacheEntry]:
        """Live entries in insertion order."""

        return [entry for entry in self._entries.values() if not self._expired(entry)]

    def restore(self, entries: Iterable[CacheEntry]) -> None:
        """Load previously persisted entries, skipping expired ones."""

        for entry in sorted(entries, key=lambda item: item.inserted_at):
            if self._expired(entry):
                continue
            if len(self._entries) >= self._capacity:
                del self._entries[next(iter(self._entries))]
            self._entries[entry.key] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def _expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.inserted_at >= self._ttl


__all__ = ["CacheEntry", "CacheKey", "SuggestionCache"]
