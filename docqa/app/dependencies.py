from __future__ import annotations

from functools import lru_cache

from docqa.app.settings import settings
from docqa.rag.embeddings import (
    EmbeddingConfigError,
    EmbeddingConfigReport,
    HEURISTIC_PROVIDERS,
    EmbeddingProvider,
    HashEmbedder,
    OpenAIEmbedder,
    build_embedding_config_report,
)
from docqa.rag.features import FeatureExtractor
from docqa.rag.llm import TextGenerator, build_generator
from docqa.rag.pipeline import RAGPipeline
from docqa.rag.search import SearchCoordinator
from docqa.rag.similarity import ScoringWeights, SimilarityEngine
from docqa.vectorstore.inmemory import InMemoryChunkStore


@lru_cache
def get_pipeline() -> RAGPipeline:
    embedder = build_embedder()
    extractor = FeatureExtractor(keyword_limit=settings.keyword_limit)
    store = InMemoryChunkStore(extractor=extractor, embedder=embedder)
    engine = SimilarityEngine(weights=build_weights(), embedder=embedder)
    coordinator = SearchCoordinator(
        store=store,
        engine=engine,
        extractor=extractor,
        min_similarity=settings.min_similarity,
        allow_cross_session=settings.allow_cross_session,
        require_session=settings.require_session,
        cross_document_multiplier=settings.cross_document_multiplier,
        similar_document_multiplier=settings.similar_document_multiplier,
    )
    return RAGPipeline(
        store=store,
        coordinator=coordinator,
        generator=build_text_generator(),
        search_limit=settings.search_limit,
        context_max_tokens=settings.context_max_tokens,
        context_search_limit=settings.context_search_limit,
    )


def reset_pipeline_cache() -> None:
    get_pipeline.cache_clear()


def build_weights() -> ScoringWeights:
    return ScoringWeights(
        lexical=settings.weight_lexical,
        keyword=settings.weight_keyword,
        semantic=settings.weight_semantic,
        exact_phrase_bonus=settings.exact_phrase_bonus,
        partial_phrase_bonus=settings.partial_phrase_bonus,
        focus_bonus=settings.focus_bonus,
        recency_boost=settings.recency_boost,
        recency_window_days=settings.recency_window_days,
    )


def get_embedding_config_report() -> EmbeddingConfigReport:
    provider = settings.embedding_provider
    model = settings.openai_embedding_model if provider == "openai" else None
    return build_embedding_config_report(provider, model, settings.embedding_dimension)


def build_embedder() -> EmbeddingProvider | None:
    provider = settings.embedding_provider
    if provider in HEURISTIC_PROVIDERS:
        return None
    if provider == "hash":
        return HashEmbedder(dimension=settings.embedding_dimension)
    if provider == "openai":
        return OpenAIEmbedder(
            api_key=settings.openai_api_key or "",
            model=settings.openai_embedding_model or "",
            dimension=settings.embedding_dimension,
        )
    raise EmbeddingConfigError(f"Unsupported embedding provider: {provider}")


def build_text_generator() -> TextGenerator | None:
    return build_generator(
        settings.llm_provider,
        ollama_base_url=settings.ollama_base_url,
        ollama_model=settings.ollama_model,
        temperature=settings.ollama_temperature,
        max_tokens=settings.ollama_max_tokens,
        timeout=settings.ollama_timeout,
    )
