from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from docqa.rag.embeddings import HashEmbedder
from docqa.rag.features import FeatureExtractor
from docqa.rag.similarity import (
    ScoringWeights,
    SimilarityEngine,
    keyword_jaccard,
    term_cosine,
)
from docqa.rag.types import Chunk
from docqa.vectorstore.inmemory import chunk_id

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_chunk(text: str, created_at: datetime | None = None, embedder=None) -> Chunk:
    return Chunk(
        id=chunk_id("doc", 0),
        document_id="doc",
        session_id="s1",
        index=0,
        text=text,
        features=FeatureExtractor().extract(text),
        created_at=created_at,
        embedding=tuple(embedder.embed(text)) if embedder else None,
    )


def score(engine: SimilarityEngine, query: str, chunk: Chunk):
    return engine.score(FeatureExtractor().extract(query), chunk, query, now=NOW)


def test_term_cosine_and_jaccard_bounds() -> None:
    assert term_cosine({"tool": 2}, {"tool": 1}) == pytest.approx(1.0)
    assert term_cosine({"tool": 1}, {}) == 0.0
    assert keyword_jaccard(["Docker", "tool"], ["docker"]) == pytest.approx(0.5)
    assert keyword_jaccard([], ["docker"]) == 0.0


def test_verbatim_query_scores_at_least_exact_phrase_bonus() -> None:
    text = "Key tools include Jenkins and Docker."
    breakdown = score(SimilarityEngine(), text, make_chunk(text))

    assert breakdown.phrase == pytest.approx(0.8)
    assert breakdown.total >= 0.8
    assert breakdown.total <= 1.0


def test_no_shared_evidence_scores_zero() -> None:
    breakdown = score(
        SimilarityEngine(),
        "completely unrelated xyz123",
        make_chunk("Key tools include Jenkins and Docker.", created_at=NOW),
    )

    assert breakdown.total == 0.0
    assert breakdown.recency == 0.0
    assert breakdown.semantic == 0.0


def test_partial_phrase_credit_is_proportional() -> None:
    engine = SimilarityEngine()

    boost = engine.phrase_boost("docker kubernetes", "We deploy with Docker.")

    assert boost == pytest.approx(0.15)


def test_recency_decays_linearly_over_window() -> None:
    engine = SimilarityEngine()

    assert engine.recency(NOW, NOW) == pytest.approx(0.05)
    assert engine.recency(NOW - timedelta(days=15), NOW) == pytest.approx(0.025)
    assert engine.recency(NOW - timedelta(days=45), NOW) == 0.0
    assert engine.recency(None, NOW) == 0.0


def test_question_focus_term_adds_bonus() -> None:
    engine = SimilarityEngine()
    query = "What tools are used in DevOps?"

    tools = score(engine, query, make_chunk("Key tools include Jenkins and Docker."))
    other = score(engine, query, make_chunk("DevOps combines development and operations."))

    assert tools.focus == pytest.approx(0.05)
    assert other.focus == 0.0


def test_weights_must_fit_budget() -> None:
    with pytest.raises(ValueError):
        ScoringWeights(lexical=0.8, keyword=0.5)
    with pytest.raises(ValueError):
        ScoringWeights(lexical=-0.1)
    with pytest.raises(ValueError):
        ScoringWeights(recency_window_days=0)


def test_embedder_replaces_lexical_signals() -> None:
    embedder = HashEmbedder(dimension=64)
    engine = SimilarityEngine(embedder=embedder)
    text = "Docker builds images"
    chunk = make_chunk(text, embedder=embedder)

    breakdown = engine.score(
        FeatureExtractor().extract(text),
        chunk,
        text,
        query_embedding=embedder.embed(text),
        now=NOW,
    )

    assert breakdown.vector == pytest.approx(1.0)
    assert breakdown.lexical == 0.0
    assert breakdown.total == 1.0
