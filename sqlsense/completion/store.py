"""Key-value persistence for learned state and cache snapshots."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, TypeVar

from pydantic import BaseModel, Field, ValidationError

from .models import Candidate, CandidateKind, Context

LOG = logging.getLogger(__name__)

FREQUENCY_KEY = "frequency"
SEQUENCE_KEY = "sequence"
CACHE_KEY = "suggestion_cache"
HISTORY_KEY = "history"
SNIPPETS_KEY = "user_snippets"

BlobT = TypeVar("BlobT", bound=BaseModel)


class KeyValueStore(Protocol):
    """Opaque string blobs addressed by key."""

    def load(self, key: str) -> str | None:
        """Return the blob stored under ``key`` or ``None``."""

    def save(self, key: str, blob: str) -> None:
        """Replace the blob stored under ``key``."""


class MemoryStore:
    """Process-local store, used by default and in tests."""

    def __init__(self, blobs: dict[str, str] | None = None) -> None:
        self.blobs: dict[str, str] = dict(blobs or {})

    def load(self, key: str) -> str | None:
        return self.blobs.get(key)

    def save(self, key: str, blob: str) -> None:
        self.blobs[key] = blob


class FileStore:
    """Stores each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def load(self, key: str) -> str | None:
        try:
            return self.path_for(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def save(self, key: str, blob: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(key)
        staging = target.with_name(f"{target.name}.tmp")
        staging.write_text(blob, encoding="utf-8")
        staging.replace(target)


class CandidateRecord(BaseModel):
    kind: CandidateKind
    insert_text: str
    label: str
    detail: str | None = None
    priority: float = 0.0
    is_primary_key: bool = False
    is_foreign_key: bool = False
    inherited: bool = False
    score: float = 0.0

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "CandidateRecord":
        return cls(
            kind=candidate.kind,
            insert_text=candidate.insert_text,
            label=candidate.label,
            detail=candidate.detail,
            priority=candidate.priority,
            is_primary_key=candidate.is_primary_key,
            is_foreign_key=candidate.is_foreign_key,
            inherited=candidate.inherited,
            score=candidate.score,
        )

    def to_candidate(self) -> Candidate:
        return Candidate(**self.model_dump())


class CacheEntryRecord(BaseModel):
    connection_id: str
    context: Context
    token: str
    inserted_at: float
    candidates: list[CandidateRecord] = Field(default_factory=list)


class CacheBlob(BaseModel):
    entries: list[CacheEntryRecord] = Field(default_factory=list)


class FrequencyRecord(BaseModel):
    kind: CandidateKind
    text: str
    count: int = Field(ge=0)


class FrequencyBlob(BaseModel):
    entries: list[FrequencyRecord] = Field(default_factory=list)


class SequenceBlob(BaseModel):
    transitions: dict[str, dict[str, int]] = Field(default_factory=dict)


class HistoryBlob(BaseModel):
    queries: list[str] = Field(default_factory=list)


class SnippetRecord(BaseModel):
    trigger: str
    name: str
    template: str
    description: str = ""


class SnippetBlob(BaseModel):
    snippets: list[SnippetRecord] = Field(default_factory=list)


def load_blob(store: KeyValueStore, key: str, model: type[BlobT]) -> BlobT | None:
    """Load and validate a blob; unreadable or invalid blobs count as absent."""

    try:
        raw = store.load(key)
    except (OSError, UnicodeDecodeError) as exc:
        LOG.warning("Failed to read persisted state", extra={"key": key, "error": str(exc)})
        return None
    if raw is None:
        return None
    try:
        return model.model_validate_json(raw)
    except ValidationError as exc:
        LOG.warning(
            "Discarding corrupt persisted state",
            extra={"key": key, "errors": exc.error_count()},
        )
        return None


def save_blob(store: KeyValueStore, key: str, blob: BaseModel) -> None:
    try:
        store.save(key, blob.model_dump_json())
    except OSError as exc:
        LOG.warning("Failed to persist state", extra={"key": key, "error": str(exc)})


__all__ = [
    "CACHE_KEY",
    "CacheBlob",
    "CacheEntryRecord",
    "CandidateRecord",
    "FREQUENCY_KEY",
    "FileStore",
    "FrequencyBlob",
    "FrequencyRecord",
    "HISTORY_KEY",
    "HistoryBlob",
    "KeyValueStore",
    "MemoryStore",
    "SEQUENCE_KEY",
    "SNIPPETS_KEY",
    "SequenceBlob",
    "SnippetBlob",
    "SnippetRecord",
    "load_blob",
    "save_blob",
]
