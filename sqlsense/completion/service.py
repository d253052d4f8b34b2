"""Completion engine coordinating parsing, generation, ranking, caching and learning."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable

from .cache import CacheEntry, SuggestionCache
from .catalog import KeywordCatalog
from .context import classify
from .debounce import AdaptiveDelay, Debouncer
from .functions import FunctionCatalog
from .generators import CompletionRequest, SuggestionGenerators
from .learning import CorpusItem, UsageLearner
from .metadata import MetadataProvider, MetadataSnapshot, StaticMetadataProvider
from .models import Candidate
from .ranking import MAX_RESULTS, rank
from .scanner import ScopeParser, current_word
from .snippets import SnippetCatalog, SnippetEntry
from .store import (
    CACHE_KEY,
    SNIPPETS_KEY,
    CacheBlob,
    CacheEntryRecord,
    CandidateRecord,
    KeyValueStore,
    MemoryStore,
    SnippetBlob,
    SnippetRecord,
    load_blob,
    save_blob,
)

if TYPE_CHECKING:
    from ..config import CompletionSettings

LOG = logging.getLogger(__name__)

DEFAULT_CONNECTION = "default"

SuggestionCallback = Callable[[list[Candidate]], Any]


class CompletionEngine:
    """Facade that turns partial SQL plus a cursor into ranked candidates.

    :meth:`complete` runs the pipeline immediately. :meth:`get_suggestions` and
    :meth:`submit` debounce first and only ever surface the most recent request.
    """

    def __init__(
        self,
        metadata_provider: MetadataProvider | None = None,
        *,
        store: KeyValueStore | None = None,
        dialect: str = "postgres",
        connection_id: str = DEFAULT_CONNECTION,
        database: str = "",
        max_results: int = MAX_RESULTS,
        min_token: int = 1,
        snippets_enabled: bool = True,
        cache: SuggestionCache | None = None,
        learner: UsageLearner | None = None,
        delay: AdaptiveDelay | None = None,
    ) -> None:
        self._store = store or MemoryStore()
        self._dialect = dialect
        self._connection_id = connection_id
        self._database = database
        self._max_results = max_results
        self._min_token = min_token
        self._snippets_enabled = snippets_enabled
        self._cache = cache or SuggestionCache()
        self._learner = learner or UsageLearner(self._store)
        self._delay = delay or AdaptiveDelay()
        self._keywords = KeywordCatalog.for_dialect(dialect)
        self._functions = FunctionCatalog.for_dialect(dialect)
        self._snippets = SnippetCatalog.for_dialect(dialect)
        self._parser = ScopeParser()
        self._debouncer = Debouncer(self._delay.short)
        self._generation = 0
        self._training: asyncio.Task[int] | None = None
        self._metadata = MetadataSnapshot(metadata_provider or StaticMetadataProvider())
        self._generators = SuggestionGenerators(self._metadata, self._keywords, self._functions)

    @classmethod
    def from_settings(
        cls,
        settings: "CompletionSettings",
        metadata_provider: MetadataProvider | None = None,
        *,
        store: KeyValueStore | None = None,
        connection_id: str = DEFAULT_CONNECTION,
        database: str = "",
    ) -> "CompletionEngine":
        store = store or MemoryStore()
        return cls(
            metadata_provider,
            store=store,
            dialect=settings.dialect,
            connection_id=connection_id,
            database=database,
            max_results=settings.max_results,
            min_token=settings.min_token,
            snippets_enabled=settings.snippets_enabled,
            cache=SuggestionCache(
                ttl=settings.cache_ttl,
                capacity=settings.cache_capacity,
                min_token=settings.cache_min_token,
            ),
            learner=UsageLearner(
                store,
                batch_size=settings.training_batch_size,
                history_limit=settings.history_limit,
            ),
            delay=settings.debounce.to_delay(),
        )

    @property
    def cache(self) -> SuggestionCache:
        return self._cache

    @property
    def learner(self) -> UsageLearner:
        return self._learner

    @property
    def metadata(self) -> MetadataSnapshot:
        return self._metadata

    @property
    def snippets(self) -> SnippetCatalog:
        return self._snippets

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def current_database(self) -> str:
        return self._database

    def load_state(self) -> None:
        """Restore learned state, user snippets and the cache snapshot from the store."""

        self._learner.load()
        snippets = load_blob(self._store, SNIPPETS_KEY, SnippetBlob)
        if snippets is not None:
            for record in snippets.snippets:
                self._snippets.add(record.trigger, record.name, record.template, record.description)
        cached = load_blob(self._store, CACHE_KEY, CacheBlob)
        if cached is not None:
            self._cache.restore(
                CacheEntry(
                    key=SuggestionCache.key(record.context, record.token, record.connection_id),
                    candidates=tuple(item.to_candidate() for item in record.candidates),
                    inserted_at=record.inserted_at,
                )
                for record in cached.entries
            )

    async def complete(self, text: str, cursor: int | None = None, database: str | None = None) -> list[Candidate]:
        """Run the pipeline for ``text`` with the cursor at ``cursor`` (end of text by default)."""

        if database is not None and database != self._database:
            self.set_current_database(database)
        cursor = len(text) if cursor is None else max(0, min(cursor, len(text)))
        try:
            return await self._pipeline(text, cursor)
        except Exception:
            LOG.exception("Completion pipeline failed", extra={"cursor": cursor, "length": len(text)})
            return self._keywords.fallback()

    async def get_suggestions(
        self, text: str, cursor: int | None = None, database: str | None = None
    ) -> list[Candidate] | None:
        """Debounced :meth:`complete`; returns ``None`` when a newer request superseded this one."""

        generation = self._next_generation()
        await asyncio.sleep(self._delay.for_length(len(text)))
        if generation != self._generation:
            LOG.debug("Dropped superseded request", extra={"generation": generation})
            return None
        result = await self.complete(text, cursor, database)
        if generation != self._generation:
            LOG.debug("Dropped superseded result", extra={"generation": generation})
            return None
        return result

    def submit(
        self,
        text: str,
        cursor: int | None,
        callback: SuggestionCallback,
        database: str | None = None,
    ) -> asyncio.Task[Any]:
        """Debounce a request and hand its result to ``callback`` unless a newer one arrives."""

        generation = self._next_generation()

        async def _deliver() -> None:
            result = await self.complete(text, cursor, database)
            if generation == self._generation:
                callback(result)

        return self._debouncer.submit(_deliver, self._delay.for_length(len(text)))

    def cancel_pending(self) -> None:
        self._next_generation()
        self._debouncer.cancel()

    def record_acceptance(self, candidate: Candidate) -> int:
        """Count an accepted candidate towards future ranking."""

        return self._learner.record_acceptance(candidate)

    def record_query(self, query: str) -> bool:
        return self._learner.record_query(query)

    async def train_on_corpus(self, corpus: Iterable[CorpusItem]) -> int:
        return await self._learner.train_on_corpus(corpus)

    def start_background_training(self, corpus: Iterable[CorpusItem]) -> asyncio.Task[int]:
        """Train on ``corpus`` in a background task that yields between batches."""

        items = list(corpus)
        loop = asyncio.get_running_loop()
        self._training = loop.create_task(self._learner.train_on_corpus(items))
        return self._training

    def predict_next_token(self, query_text: str) -> str | None:
        """Advisory guess of the token that follows the end of ``query_text``."""

        return self._learner.predict_next(query_text)

    def set_current_database(self, name: str) -> None:
        if name == self._database:
            return
        self._database = name
        self._cache.invalidate(self._connection_id)
        self._persist_cache()

    def switch_connection(
        self,
        metadata_provider: MetadataProvider,
        connection_id: str,
        database: str = "",
    ) -> None:
        """Point the engine at another connection; its metadata is loaded afresh."""

        self.cancel_pending()
        self._connection_id = connection_id
        self._database = database
        self._metadata = MetadataSnapshot(metadata_provider)
        self._generators = SuggestionGenerators(self._metadata, self._keywords, self._functions)
        self._cache.invalidate(connection_id)
        self._persist_cache()

    def notify_schema_changed(self) -> None:
        self._metadata.invalidate()
        dropped = self._cache.invalidate(self._connection_id)
        LOG.debug("Schema change invalidated cache", extra={"connection": self._connection_id, "dropped": dropped})
        self._persist_cache()

    def clear_all_caches(self) -> None:
        self._cache.invalidate_all()
        self._metadata.invalidate()
        self._persist_cache()

    def add_snippet(self, trigger: str, name: str, template: str, description: str = "") -> SnippetEntry:
        entry = self._snippets.add(trigger, name, template, description)
        blob = SnippetBlob(
            snippets=[
                SnippetRecord(
                    trigger=item.trigger,
                    name=item.name,
                    template=item.template,
                    description=item.description,
                )
                for item in self._snippets.user_entries
            ]
        )
        save_blob(self._store, SNIPPETS_KEY, blob)
        return entry

    async def _pipeline(self, text: str, cursor: int) -> list[Candidate]:
        token = current_word(text, cursor)
        context = classify(text[:cursor])
        cacheable = self._cache.accepts(token)
        if cacheable:
            cached = self._cache.get(context, token, self._connection_id)
            if cached is not None:
                LOG.debug("Suggestion cache hit", extra={"context": context.value, "token": token})
                return cached
        if len(token) < self._min_token:
            return []

        request = CompletionRequest(
            text=text,
            cursor=cursor,
            token=token,
            context=context,
            database=self._database,
            tree=self._parser.parse(text),
        )
        candidates: list[Candidate] = []
        if self._snippets_enabled:
            candidates.extend(self._snippets.candidates(token))
        candidates.extend(await self._generators.generate(request))
        ranked = rank(candidates, _scoring_token(token), self._learner.frequency, limit=self._max_results)
        if cacheable and ranked:
            self._cache.set(context, token, self._connection_id, ranked)
            self._persist_cache()
        return ranked

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _persist_cache(self) -> None:
        blob = CacheBlob(
            entries=[
                CacheEntryRecord(
                    connection_id=entry.key.connection_id,
                    context=entry.key.context,
                    token=entry.key.token,
                    inserted_at=entry.inserted_at,
                    candidates=[CandidateRecord.from_candidate(item) for item in entry.candidates],
                )
                for entry in self._cache.entries()
            ]
        )
        save_blob(self._store, CACHE_KEY, blob)


def _scoring_token(token: str) -> str:
    """Dotted tokens are scored on the part after the last dot."""

    return token.rsplit(".", 1)[-1]


__all__ = ["CompletionEngine", "DEFAULT_CONNECTION"]
