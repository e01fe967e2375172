from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator


class IngestDocumentRequest(BaseModel):
    document_id: str | None = None
    chunks: list[str] | None = None
    text: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_content(self) -> IngestDocumentRequest:
        if not self.chunks and not (self.text and self.text.strip()):
            raise ValueError("Either chunks or text is required")
        return self


class DocumentSummary(BaseModel):
    document_id: str
    session_id: str
    filename: str
    chunk_count: int
    keywords: list[str]
    added_at: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
    statistics: dict[str, Any] = Field(default_factory=dict)


class IngestDocumentResponse(BaseModel):
    document: DocumentSummary


class DocumentListResponse(BaseModel):
    session_id: str
    documents: list[DocumentSummary]


class DeleteResponse(BaseModel):
    deleted: int


class SessionStatsResponse(BaseModel):
    session_id: str
    document_count: int
    chunk_count: int
    estimated_tokens: int
    unique_keywords: list[str] = Field(default_factory=list)
    last_updated: datetime | None = None
    avg_document_quality: float = 0.0


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    session_id: str | None = None
    document_ids: list[str] | None = None
    limit: int | None = Field(default=None, ge=1, le=100)
    cross_session: bool = False


class SearchResultItem(BaseModel):
    chunk_id: str
    document_id: str
    chunk_index: int
    filename: str
    text: str
    similarity: float
    factors: dict[str, float | None]


class SearchResponse(BaseModel):
    results: list[SearchResultItem]
    request_id: str


class CrossDocumentRequest(BaseModel):
    query: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    limit: int | None = Field(default=None, ge=1, le=50)


class SimilarDocumentsRequest(BaseModel):
    content: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=50)


class DocumentGroupItem(BaseModel):
    document_id: str
    filename: str
    avg_similarity: float
    max_similarity: float
    chunk_count: int
    relevance: float
    results: list[SearchResultItem]


class DocumentGroupResponse(BaseModel):
    documents: list[DocumentGroupItem]
    request_id: str


class ContextRequest(BaseModel):
    query: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    max_tokens: int | None = Field(default=None, ge=1, le=128000)


class SourceItem(BaseModel):
    document_id: str
    chunk_index: int
    filename: str
    similarity: float
    snippet: str
    keywords: list[str] = Field(default_factory=list)


class ContextResponse(BaseModel):
    context: str
    sources: list[SourceItem]
    token_count: int
    total_results: int
    confidence: float
    reason: str | None = None
    request_id: str


class AskRequest(BaseModel):
    question: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    max_tokens: int | None = Field(default=None, ge=1, le=128000)


class AskResponse(BaseModel):
    answer: str
    sources: list[SourceItem]
    confidence: float
    refusal_reason: str | None = None
    request_id: str


class StatsResponse(BaseModel):
    backend: str
    session_count: int
    document_count: int
    chunk_count: int
    embedding_dimension: int | None = None


class EmbeddingHealthResponse(BaseModel):
    provider: str
    model: str | None
    configured_dimension: int
    expected_dimension: int | None = None
    ok: bool
    status: str
    detail: str | None = None
    action: str | None = None
