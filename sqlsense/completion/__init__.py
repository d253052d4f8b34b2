"""Context-aware SQL completion engine."""

from __future__ import annotations

from .cache import SuggestionCache
from .catalog import KeywordCatalog
from .context import classify
from .debounce import AdaptiveDelay, Debouncer
from .functions import FunctionCatalog
from .learning import CorpusEntry, FrequencyTable, SequenceModel, UsageLearner
from .metadata import MetadataProvider, MetadataSnapshot, StaticMetadataProvider, TableSpec
from .models import (
    Candidate,
    CandidateKind,
    ColumnInfo,
    Context,
    ForeignKey,
    IndexInfo,
    KeyClass,
    TableReference,
)
from .scanner import ScopeParser, ScopeTree
from .service import CompletionEngine
from .snippets import SnippetCatalog
from .store import FileStore, KeyValueStore, MemoryStore

__all__ = [
    "AdaptiveDelay",
    "Candidate",
    "CandidateKind",
    "ColumnInfo",
    "CompletionEngine",
    "Context",
    "CorpusEntry",
    "Debouncer",
    "FileStore",
    "ForeignKey",
    "FrequencyTable",
    "FunctionCatalog",
    "IndexInfo",
    "KeyClass",
    "KeyValueStore",
    "KeywordCatalog",
    "MemoryStore",
    "MetadataProvider",
    "MetadataSnapshot",
    "ScopeParser",
    "ScopeTree",
    "SequenceModel",
    "SnippetCatalog",
    "StaticMetadataProvider",
    "SuggestionCache",
    "TableReference",
    "TableSpec",
    "UsageLearner",
    "classify",
]
