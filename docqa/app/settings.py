from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    min_similarity: float = float(os.getenv("RAG_MIN_SIMILARITY", "0.1"))
    search_limit: int = int(os.getenv("RAG_SEARCH_LIMIT", "10"))
    context_max_tokens: int = int(os.getenv("RAG_CONTEXT_MAX_TOKENS", "4000"))
    context_search_limit: int = int(os.getenv("RAG_CONTEXT_SEARCH_LIMIT", "20"))
    allow_cross_session_raw: str = os.getenv("RAG_ALLOW_CROSS_SESSION", "false")
    require_session_raw: str = os.getenv("RAG_REQUIRE_SESSION", "false")
    keyword_limit: int = int(os.getenv("RAG_KEYWORD_LIMIT", "10"))
    weight_lexical: float = float(os.getenv("RAG_WEIGHT_LEXICAL", "0.4"))
    weight_keyword: float = float(os.getenv("RAG_WEIGHT_KEYWORD", "0.25"))
    weight_semantic: float = float(os.getenv("RAG_WEIGHT_SEMANTIC", "0.1"))
    exact_phrase_bonus: float = float(os.getenv("RAG_EXACT_PHRASE_BONUS", "0.8"))
    partial_phrase_bonus: float = float(os.getenv("RAG_PARTIAL_PHRASE_BONUS", "0.3"))
    focus_bonus: float = float(os.getenv("RAG_FOCUS_BONUS", "0.05"))
    recency_boost: float = float(os.getenv("RAG_RECENCY_BOOST", "0.05"))
    recency_window_days: float = float(os.getenv("RAG_RECENCY_WINDOW_DAYS", "30"))
    cross_document_multiplier: int = int(os.getenv("RAG_CROSS_DOC_MULTIPLIER", "2"))
    similar_document_multiplier: int = int(os.getenv("RAG_SIMILAR_DOC_MULTIPLIER", "3"))
    embedding_provider_raw: str = os.getenv("EMBEDDING_PROVIDER", "none")
    embedding_dimension: int = int(os.getenv("EMBEDDING_DIMENSION", "256"))
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_embedding_model: str | None = os.getenv("OPENAI_EMBEDDING_MODEL")
    llm_provider_raw: str = os.getenv("RAG_LLM_PROVIDER", "none")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    ollama_model: str = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
    ollama_temperature: float = float(os.getenv("OLLAMA_TEMPERATURE", "0.1"))
    ollama_max_tokens: int = int(os.getenv("OLLAMA_MAX_TOKENS", "512"))
    ollama_timeout: float = float(os.getenv("OLLAMA_TIMEOUT", "60"))
    chunk_size: int = int(os.getenv("RAG_CHUNK_SIZE", "1000"))
    chunk_overlap: int = int(os.getenv("RAG_CHUNK_OVERLAP", "100"))
    metrics_enabled: bool = _env_flag("RAG_METRICS_ENABLED", "true")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def allow_cross_session(self) -> bool:
        return _env_flag("RAG_ALLOW_CROSS_SESSION", self.allow_cross_session_raw)

    @property
    def require_session(self) -> bool:
        return _env_flag("RAG_REQUIRE_SESSION", self.require_session_raw)

    @property
    def embedding_provider(self) -> str:
        return os.getenv("EMBEDDING_PROVIDER", self.embedding_provider_raw).strip().lower()

    @property
    def llm_provider(self) -> str:
        return os.getenv("RAG_LLM_PROVIDER", self.llm_provider_raw).strip().lower()


settings = Settings()
