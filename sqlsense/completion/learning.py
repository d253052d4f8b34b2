"""Usage learning: acceptance frequencies and an order-1 next-token model."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Union

from .models import Candidate, CandidateKind
from .store import (
    FREQUENCY_KEY,
    HISTORY_KEY,
    SEQUENCE_KEY,
    FrequencyBlob,
    FrequencyRecord,
    HistoryBlob,
    KeyValueStore,
    MemoryStore,
    SequenceBlob,
    load_blob,
    save_blob,
)

LOG = logging.getLogger(__name__)

MAX_TOKEN_LENGTH = 50
MIN_QUERY_LENGTH = 10
DEFAULT_BATCH_SIZE = 50
DEFAULT_HISTORY_LIMIT = 500

_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)


def tokenize(text: str) -> list[str]:
    """Whitespace tokens of ``text`` with line and block comments removed."""

    clean = _BLOCK_COMMENT.sub(" ", _LINE_COMMENT.sub("", text))
    return clean.split()


@dataclass(frozen=True, slots=True)
class CorpusEntry:
    """A previously executed query and whether it ran successfully."""

    query: str
    succeeded: bool = True


CorpusItem = Union[CorpusEntry, str]


class FrequencyTable:
    """Acceptance counts per ``(kind, insert_text)``."""

    def __init__(self, counts: Mapping[tuple[CandidateKind, str], int] | None = None) -> None:
        self._counts: dict[tuple[CandidateKind, str], int] = dict(counts or {})

    def count(self, kind: CandidateKind, text: str) -> int:
        return self._counts.get((kind, text), 0)

    def record(self, kind: CandidateKind, text: str) -> int:
        key = (kind, text)
        self._counts[key] = self._counts.get(key, 0) + 1
        return self._counts[key]

    def reset(self) -> None:
        self._counts.clear()

    def __len__(self) -> int:
        return len(self._counts)

    def to_blob(self) -> FrequencyBlob:
        return FrequencyBlob(
            entries=[FrequencyRecord(kind=kind, text=text, count=count) for (kind, text), count in self._counts.items()]
        )

    @classmethod
    def from_blob(cls, blob: FrequencyBlob) -> "FrequencyTable":
        return cls({(entry.kind, entry.text): entry.count for entry in blob.entries})


class SequenceModel:
    """Counts of which token follows which; keys are upper-cased, followers keep their case."""

    def __init__(self, transitions: Mapping[str, Mapping[str, int]] | None = None) -> None:
        self._transitions: dict[str, dict[str, int]] = {
            key: dict(followers) for key, followers in (transitions or {}).items()
        }

    def train(self, text: str) -> int:
        """Add every adjacent token pair of ``text``; returns the number of pairs counted."""

        tokens = tokenize(text)
        counted = 0
        for current, following in zip(tokens, tokens[1:]):
            if len(current) > MAX_TOKEN_LENGTH or len(following) > MAX_TOKEN_LENGTH:
                continue
            followers = self._transitions.setdefault(current.upper(), {})
            followers[following] = followers.get(following, 0) + 1
            counted += 1
        return counted

    def predict(self, token: str | None) -> str | None:
        """Most frequent follower of ``token``; the earliest seen wins ties."""

        if not token:
            return None
        followers = self._transitions.get(token.upper())
        if not followers:
            return None
        best: str | None = None
        best_count = 0
        for candidate, count in followers.items():
            if count > best_count:
                best, best_count = candidate, count
        return best

    def followers(self, token: str) -> dict[str, int]:
        return dict(self._transitions.get(token.upper(), {}))

    def reset(self) -> None:
        self._transitions.clear()

    def __len__(self) -> int:
        return len(self._transitions)

    def to_blob(self) -> SequenceBlob:
        return SequenceBlob(transitions={key: dict(value) for key, value in self._transitions.items()})

    @classmethod
    def from_blob(cls, blob: SequenceBlob) -> "SequenceModel":
        return cls(blob.transitions)


class UsageLearner:
    """Owns the frequency table, sequence model and query history, and persists them."""

    def __init__(
        self,
        store: KeyValueStore | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._store = store or MemoryStore()
        self._batch_size = max(1, batch_size)
        self._history_limit = history_limit
        self.frequency = FrequencyTable()
        self.sequence = SequenceModel()
        self._history: list[str] = []

    @property
    def history(self) -> tuple[str, ...]:
        """Recorded queries, most recent first."""

        return tuple(self._history)

    def load(self) -> None:
        """Restore persisted state; missing or corrupt blobs start empty."""

        frequency = load_blob(self._store, FREQUENCY_KEY, FrequencyBlob)
        if frequency is not None:
            self.frequency = FrequencyTable.from_blob(frequency)
        sequence = load_blob(self._store, SEQUENCE_KEY, SequenceBlob)
        if sequence is not None:
            self.sequence = SequenceModel.from_blob(sequence)
        history = load_blob(self._store, HISTORY_KEY, HistoryBlob)
        if history is not None:
            self._history = history.queries[: self._history_limit]

    def count(self, kind: CandidateKind, text: str) -> int:
        return self.frequency.count(kind, text)

    def record_acceptance(self, candidate: Candidate) -> int:
        count = self.frequency.record(candidate.kind, candidate.insert_text)
        save_blob(self._store, FREQUENCY_KEY, self.frequency.to_blob())
        return count

    def record_query(self, query: str) -> bool:
        """Add an executed query to the history and train on it."""

        text = query.strip()
        if len(text) < MIN_QUERY_LENGTH:
            return False
        self._history.insert(0, text)
        del self._history[self._history_limit :]
        self.sequence.train(text)
        save_blob(self._store, HISTORY_KEY, HistoryBlob(queries=self._history))
        save_blob(self._store, SEQUENCE_KEY, self.sequence.to_blob())
        return True

    async def train_on_corpus(self, corpus: Iterable[CorpusItem]) -> int:
        """Train the sequence model on successful queries, yielding between batches."""

        items = list(corpus)
        trained = 0
        for start in range(0, len(items), self._batch_size):
            await asyncio.sleep(0)
            for item in items[start : start + self._batch_size]:
                entry = item if isinstance(item, CorpusEntry) else CorpusEntry(query=item)
                if not entry.succeeded or not entry.query:
                    continue
                self.sequence.train(entry.query)
                trained += 1
        save_blob(self._store, SEQUENCE_KEY, self.sequence.to_blob())
        LOG.debug("Trained sequence model", extra={"queries": trained})
        return trained

    def predict_next(self, query_text: str) -> str | None:
        """Predict the token following the last complete token of ``query_text``."""

        tokens = query_text.rstrip().split()
        if not tokens:
            return None
        return self.sequence.predict(tokens[-1])

    def reset(self) -> None:
        self.frequency.reset()
        self.sequence.reset()
        save_blob(self._store, FREQUENCY_KEY, self.frequency.to_blob())
        save_blob(self._store, SEQUENCE_KEY, self.sequence.to_blob())


__all__ = [
    "CorpusEntry",
    "FrequencyTable",
    "SequenceModel",
    "UsageLearner",
    "tokenize",
]
