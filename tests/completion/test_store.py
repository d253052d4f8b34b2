"""Tests for the key-value stores and blob validation."""

from __future__ import annotations

from pathlib import Path

from sqlsense.completion.metadata import StaticMetadataProvider
from sqlsense.completion.models import Candidate, CandidateKind
from sqlsense.completion.service import CompletionEngine
from sqlsense.completion.store import (
    CandidateRecord,
    FileStore,
    FrequencyBlob,
    FrequencyRecord,
    MemoryStore,
    load_blob,
    save_blob,
)


def test_file_store_writes_one_json_file_per_key(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "state")
    blob = FrequencyBlob(entries=[FrequencyRecord(kind=CandidateKind.TABLE, text="orders", count=3)])

    save_blob(store, "frequency", blob)

    assert store.path_for("frequency") == tmp_path / "state" / "frequency.json"
    assert load_blob(store, "frequency", FrequencyBlob) == blob


def test_missing_blob_loads_as_none(tmp_path: Path) -> None:
    assert load_blob(FileStore(tmp_path), "frequency", FrequencyBlob) is None
    assert load_blob(MemoryStore(), "frequency", FrequencyBlob) is None


def test_invalid_blob_loads_as_none() -> None:
    store = MemoryStore({"frequency": '{"entries": [{"kind": "table", "text": "x", "count": -1}]}'})

    assert load_blob(store, "frequency", FrequencyBlob) is None


def test_unreadable_store_loads_as_none() -> None:
    class _BrokenStore:
        def load(self, key: str) -> str | None:
            raise PermissionError("denied")

        def save(self, key: str, blob: str) -> None:
            raise PermissionError("denied")

    store = _BrokenStore()

    assert load_blob(store, "frequency", FrequencyBlob) is None
    save_blob(store, "frequency", FrequencyBlob())


def test_candidate_record_preserves_fields() -> None:
    candidate = Candidate(
        kind=CandidateKind.COLUMN,
        insert_text="o.id",
        label="id",
        detail="integer",
        is_primary_key=True,
        score=145.0,
    )

    assert CandidateRecord.from_candidate(candidate).to_candidate() == candidate


def test_undecodable_file_loads_as_none(tmp_path: Path) -> None:
    store = FileStore(tmp_path)
    store.path_for("frequency").write_bytes(b"\xff\xfe\x00garbage")

    assert load_blob(store, "frequency", FrequencyBlob) is None


def test_engine_starts_cold_from_undecodable_state(tmp_path: Path) -> None:
    store = FileStore(tmp_path)
    for key in ("suggestion_cache", "frequency", "sequence", "history", "user_snippets"):
        store.path_for(key).write_bytes(b"\xff\xfe\x00garbage")
    engine = CompletionEngine(StaticMetadataProvider({"public": {"orders": ["id"]}}), store=store)

    engine.load_state()

    assert len(engine.cache) == 0
    assert engine.learner.history == ()


def test_file_store_replaces_blobs_without_leftovers(tmp_path: Path) -> None:
    store = FileStore(tmp_path / "state")

    store.save("history", '{"queries": ["SELECT 1 FROM dual"]}')
    store.save("history", '{"queries": []}')

    assert store.load("history") == '{"queries": []}'
    assert [path.name for path in (tmp_path / "state").iterdir()] == ["history.json"]
