from __future__ import annotations

"""Composite relevance scoring between a query and a stored chunk."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Sequence

from docqa.rag.embeddings import EmbeddingProvider
from docqa.rag.text import normalize_whitespace, phrase_words
from docqa.rag.types import Chunk, FeatureRecord, ScoreBreakdown, SemanticFlags

_SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class ScoringWeights:
    """Weights and boosts for the composite score.

    ``lexical``, ``keyword`` and ``semantic`` share a budget of 1.0. The
    phrase, focus and recency terms are additive boosts on top of it.
    """
    lexical: float = 0.4
    keyword: float = 0.25
    semantic: float = 0.1
    exact_phrase_bonus: float = 0.8
    partial_phrase_bonus: float = 0.3
    focus_bonus: float = 0.05
    recency_boost: float = 0.05
    recency_window_days: float = 30.0

    def __post_init__(self) -> None:
        weighted = (self.lexical, self.keyword, self.semantic)
        if any(value < 0 for value in weighted):
            raise ValueError("Scoring weights must be non-negative")
        if sum(weighted) > 1.0 + 1e-9:
            raise ValueError("lexical + keyword + semantic weights must not exceed 1.0")
        if self.recency_window_days <= 0:
            raise ValueError("recency_window_days must be positive")


def term_cosine(a: Mapping[str, int], b: Mapping[str, int]) -> float:
    """Cosine similarity of two sparse term-frequency maps."""
    if not a or not b:
        return 0.0
    if len(a) > len(b):
        a, b = b, a
    dot = sum(count * b.get(term, 0) for term, count in a.items())
    if dot == 0:
        return 0.0
    norm_a = math.sqrt(sum(count * count for count in a.values()))
    norm_b = math.sqrt(sum(count * count for count in b.values()))
    return dot / (norm_a * norm_b)


def keyword_jaccard(a: Sequence[str], b: Sequence[str]) -> float:
    """Jaccard overlap of two keyword lists, case-insensitive."""
    if not a or not b:
        return 0.0
    left = {value.lower() for value in a}
    right = {value.lower() for value in b}
    return len(left & right) / len(left | right)


def semantic_agreement(
    query_flags: SemanticFlags,
    chunk_flags: SemanticFlags,
    query_sentiment: int,
    chunk_sentiment: int,
) -> float:
    """Mean of flag agreement and sentiment closeness."""
    query_values = query_flags.values()
    chunk_values = chunk_flags.values()
    matches = sum(1 for left, right in zip(query_values, chunk_values) if left == right)
    flag_score = matches / len(query_values)
    sentiment_score = max(0.0, 1.0 - abs(query_sentiment - chunk_sentiment) / 10)
    return (flag_score + sentiment_score) / 2


@dataclass
class SimilarityEngine:
    """Score chunks against a query using weighted lexical and semantic signals."""
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    embedder: EmbeddingProvider | None = None

    def phrase_boost(self, query_text: str, chunk_text: str) -> float:
        """Exact-phrase bonus, or partial credit for query words found in the chunk."""
        query = normalize_whitespace(query_text).lower()
        if not query:
            return 0.0
        haystack = normalize_whitespace(chunk_text).lower()
        if query in haystack:
            return self.weights.exact_phrase_bonus
        words = phrase_words(query)
        if not words:
            return 0.0
        found = sum(1 for word in words if word in haystack)
        return self.weights.partial_phrase_bonus * found / len(words)

    def recency(self, created_at: datetime | None, now: datetime | None = None) -> float:
        """Linear decay from the full boost at age zero to nothing at the window end."""
        if created_at is None or self.weights.recency_boost <= 0:
            return 0.0
        current = now or datetime.now(timezone.utc)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        age_days = max(0.0, (current - created_at).total_seconds() / _SECONDS_PER_DAY)
        window = self.weights.recency_window_days
        return self.weights.recency_boost * max(0.0, (window - age_days) / window)

    def score(
        self,
        query_features: FeatureRecord,
        chunk: Chunk,
        query_text: str,
        query_embedding: Sequence[float] | None = None,
        now: datetime | None = None,
    ) -> ScoreBreakdown:
        """Compute the composite score of ``chunk`` for the query."""
        weights = self.weights
        chunk_features = chunk.features
        lexical = 0.0
        keyword = 0.0
        vector: float | None = None
        if (
            self.embedder is not None
            and query_embedding is not None
            and chunk.embedding is not None
        ):
            vector = max(0.0, self.embedder.similarity(query_embedding, chunk.embedding))
            primary = vector * (weights.lexical + weights.keyword)
        else:
            lexical = term_cosine(
                query_features.term_frequencies, chunk_features.term_frequencies
            )
            keyword = keyword_jaccard(query_features.keywords, chunk_features.keywords)
            primary = lexical * weights.lexical + keyword * weights.keyword
        phrase = self.phrase_boost(query_text, chunk.text)

        # re-ranking signals only apply to chunks with some direct evidence
        semantic = 0.0
        recency = 0.0
        focus = 0.0
        if primary > 0 or phrase > 0:
            semantic = semantic_agreement(
                query_features.flags,
                chunk_features.flags,
                query_features.sentiment,
                chunk_features.sentiment,
            )
            recency = self.recency(chunk.created_at, now)
            if any(term in chunk_features.term_frequencies for term in query_features.focus_terms):
                focus = weights.focus_bonus

        total = primary + semantic * weights.semantic + phrase + recency + focus
        return ScoreBreakdown(
            lexical=lexical,
            keyword=keyword,
            vector=vector,
            phrase=phrase,
            semantic=semantic,
            recency=recency,
            focus=focus,
            total=min(1.0, max(0.0, total)),
        )
