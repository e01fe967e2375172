from __future__ import annotations

"""Core data types for chunks, feature records and retrieval results."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Mapping


@dataclass(frozen=True)
class SemanticFlags:
    """Boolean text-pattern features used for semantic agreement."""
    has_question: bool = False
    has_definition: bool = False
    has_example: bool = False
    has_comparison: bool = False
    has_process: bool = False
    has_causal: bool = False

    def values(self) -> tuple[bool, ...]:
        return tuple(getattr(self, item.name) for item in fields(self))


@dataclass(frozen=True)
class FeatureRecord:
    """Derived representation of a text used for similarity scoring."""
    term_frequencies: Mapping[str, int] = field(default_factory=dict)
    keywords: tuple[str, ...] = ()
    flags: SemanticFlags = field(default_factory=SemanticFlags)
    sentiment: int = 0
    focus_terms: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> FeatureRecord:
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.term_frequencies and not self.keywords


@dataclass(frozen=True)
class Chunk:
    """Indexed slice of a document; immutable once stored."""
    id: str
    document_id: str
    session_id: str
    index: int
    text: str
    features: FeatureRecord
    created_at: datetime | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    embedding: tuple[float, ...] | None = None

    @property
    def filename(self) -> str:
        return str(self.metadata.get("filename") or "Unknown")


@dataclass(frozen=True)
class DocumentStatistics:
    """Derived statistics for a whole document."""
    total_chunks: int = 0
    total_words: int = 0
    total_sentences: int = 0
    avg_words_per_chunk: int = 0
    avg_sentences_per_chunk: int = 0
    avg_word_length: float = 0.0
    lexical_diversity: float = 0.0
    readability_score: float = 0.0


@dataclass(frozen=True)
class StoredDocument:
    """A published document and its chunks."""
    document_id: str
    session_id: str
    chunks: tuple[Chunk, ...]
    metadata: Mapping[str, Any]
    statistics: DocumentStatistics
    keywords: tuple[str, ...]
    added_at: datetime

    @property
    def filename(self) -> str:
        return str(self.metadata.get("filename") or "Unknown")


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-signal contributions to a composite relevance score."""
    lexical: float = 0.0
    keyword: float = 0.0
    vector: float | None = None
    phrase: float = 0.0
    semantic: float = 0.0
    recency: float = 0.0
    focus: float = 0.0
    total: float = 0.0

    def as_dict(self) -> dict[str, float | None]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True)
class SearchResult:
    """Ranked chunk with its similarity and contributing factors."""
    chunk: Chunk
    similarity: float
    factors: ScoreBreakdown = field(default_factory=ScoreBreakdown)

    @property
    def document_id(self) -> str:
        return self.chunk.document_id

    @property
    def chunk_index(self) -> int:
        return self.chunk.index


@dataclass(frozen=True)
class DocumentGroup:
    """Chunk results aggregated under one document."""
    document_id: str
    filename: str
    results: list[SearchResult]
    avg_similarity: float
    max_similarity: float
    chunk_count: int
    relevance: float


@dataclass(frozen=True)
class DocumentStats:
    """Session-level counts reported by the chunk store."""
    document_count: int = 0
    chunk_count: int = 0
    estimated_tokens: int = 0
    unique_keywords: tuple[str, ...] = ()
    last_updated: datetime | None = None
    avg_document_quality: float = 0.0


@dataclass(frozen=True)
class ContextSource:
    """Attribution for one chunk included in an assembled context."""
    document_id: str
    chunk_index: int
    filename: str
    similarity: float
    snippet: str
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class AssembledContext:
    """Token-bounded context blob with sources for generation."""
    text: str
    sources: list[ContextSource]
    token_count: int = 0
    total_results: int = 0
    confidence: float = 0.0
    reason: str | None = None
    results: list[SearchResult] = field(default_factory=list, repr=False)

    @property
    def is_empty(self) -> bool:
        return not self.sources
