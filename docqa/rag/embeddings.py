from __future__ import annotations

"""Optional embedding providers that stand in for the lexical similarity signals."""

import hashlib
import math
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

from docqa.rag.text import content_terms

HEURISTIC_PROVIDERS = frozenset({"", "none", "heuristic"})

OPENAI_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class EmbeddingError(RuntimeError):
    """Raised when a provider fails or returns an unusable vector."""
    pass


class EmbeddingConfigError(RuntimeError):
    """Raised when the configured provider cannot be constructed."""
    pass


class EmbeddingProvider(Protocol):
    """Capability that can replace the lexical signals of the similarity engine."""
    dimension: int

    def embed(self, text: str) -> list[float]:
        raise NotImplementedError

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        raise NotImplementedError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two dense vectors; zero for empty or zero vectors."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (norm_a * norm_b)


def validate_vector(vector: Sequence[Any], dimension: int) -> list[float]:
    """Check length and finiteness, returning a list of floats."""
    if len(vector) != dimension:
        raise EmbeddingError(f"Expected a {dimension}-dimensional vector, got {len(vector)}")
    values: list[float] = []
    for value in vector:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise EmbeddingError("Vector contains a non-numeric value")
        if not math.isfinite(value):
            raise EmbeddingError("Vector contains a non-finite value")
        values.append(float(value))
    return values


@dataclass
class HashEmbedder:
    """Feature-hashing embedder over stemmed content terms.

    Each term lands in one bucket with a sign taken from its digest, so
    unrelated terms sharing a bucket tend to cancel instead of adding up.
    Offline and deterministic; mostly useful for tests and demos.
    """
    dimension: int = 256

    def __post_init__(self) -> None:
        if self.dimension <= 0:
            raise EmbeddingConfigError("Hash embedding dimension must be positive")

    def embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for term in content_terms(text or ""):
            digest = hashlib.blake2b(term.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "big") % self.dimension
            vector[bucket] += 1.0 if digest[4] & 1 else -1.0
        norm = math.sqrt(sum(value * value for value in vector))
        if norm:
            vector = [value / norm for value in vector]
        return validate_vector(vector, self.dimension)

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)


def expected_dimension(provider: str, model: str | None, dimension: int) -> int | None:
    """Dimension a provider will produce, or None when it cannot be known."""
    if provider == "hash":
        return dimension
    if provider == "openai" and model:
        return OPENAI_DIMENSIONS.get(model)
    return None


@dataclass(frozen=True)
class EmbeddingConfigReport:
    """Outcome of checking the embedding settings, served on /stats/embedding."""
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None


def build_embedding_config_report(
    provider: str, model: str | None, dimension: int
) -> EmbeddingConfigReport:
    """Check a provider/model/dimension combination without constructing it."""
    name = provider.lower().strip()
    if name in HEURISTIC_PROVIDERS:
        return EmbeddingConfigReport(
            provider="none",
            model=None,
            configured_dimension=dimension,
            expected_dimension=None,
            ok=True,
            status="ok",
            detail="Lexical scoring only; chunks are not embedded.",
        )
    if name not in {"hash", "openai"}:
        return EmbeddingConfigReport(
            provider=name,
            model=model,
            configured_dimension=dimension,
            expected_dimension=None,
            ok=False,
            status="error",
            detail=f"Unknown embedding provider '{name}'.",
            action="Set EMBEDDING_PROVIDER to none, hash or openai.",
        )

    expected = expected_dimension(name, model, dimension)
    status, detail, action = "ok", None, None
    if name == "openai" and not model:
        status = "error"
        detail = "OpenAI embeddings need a model name."
        action = "Set OPENAI_EMBEDDING_MODEL."
    elif expected is None and dimension <= 0:
        status = "error"
        detail = f"No known dimension for model '{model}'."
        action = "Set EMBEDDING_DIMENSION from the model documentation."
    elif expected is None:
        status = "warning"
        detail = f"Dimension of model '{model}' is not known; EMBEDDING_DIMENSION is trusted as is."
    elif dimension <= 0:
        status = "error"
        detail = "EMBEDDING_DIMENSION must be positive."
        action = f"Set EMBEDDING_DIMENSION to {expected}." if name == "openai" else "Set EMBEDDING_DIMENSION to a positive integer."
    elif dimension != expected:
        status = "error"
        detail = f"Model '{model}' produces {expected}-dimensional vectors."
        action = f"Set EMBEDDING_DIMENSION to {expected}."
    return EmbeddingConfigReport(
        provider=name,
        model=model if name == "openai" else None,
        configured_dimension=dimension,
        expected_dimension=expected,
        ok=status != "error",
        status=status,
        detail=detail,
        action=action,
    )


@dataclass
class OpenAIEmbedder:
    """Embeddings from the OpenAI API; needs the ``openai`` extra."""
    api_key: str
    model: str
    dimension: int
    client: Any = field(init=False, repr=False)

    def __post_init__(self) -> None:
        report = build_embedding_config_report("openai", self.model, self.dimension)
        if not self.api_key:
            raise EmbeddingConfigError("OPENAI_API_KEY is required for OpenAI embeddings")
        if not report.ok:
            raise EmbeddingConfigError(report.detail or "Invalid OpenAI embedding settings")
        try:
            from openai import OpenAI
        except ImportError as exc:
            raise EmbeddingConfigError("Install the openai extra to use OpenAI embeddings") from exc
        self.client = OpenAI(api_key=self.api_key)

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.embeddings.create(model=self.model, input=text)
        except Exception as exc:
            raise EmbeddingError(f"OpenAI embedding request failed: {type(exc).__name__}") from exc
        return validate_vector(response.data[0].embedding, self.dimension)

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)
