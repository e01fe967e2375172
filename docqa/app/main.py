from __future__ import annotations

"""FastAPI application entrypoint for the document question-answering service."""

import logging
import uuid
from dataclasses import asdict

from fastapi import FastAPI, HTTPException, Request

from docqa.app.dependencies import get_embedding_config_report, get_pipeline
from docqa.app.metrics import (
    metrics_middleware,
    metrics_response,
    record_empty_context,
    record_ingest,
    record_search,
)
from docqa.app.schemas import (
    AskRequest,
    AskResponse,
    ContextRequest,
    ContextResponse,
    CrossDocumentRequest,
    DeleteResponse,
    DocumentGroupItem,
    DocumentGroupResponse,
    DocumentListResponse,
    DocumentSummary,
    EmbeddingHealthResponse,
    IngestDocumentRequest,
    IngestDocumentResponse,
    SearchRequest,
    SearchResponse,
    SearchResultItem,
    SessionStatsResponse,
    SimilarDocumentsRequest,
    SourceItem,
    StatsResponse,
)
from docqa.app.settings import settings
from docqa.loaders.chunking import chunk_text
from docqa.rag.errors import (
    DuplicateDocumentError,
    RetrievalError,
    SessionNotFoundError,
)
from docqa.rag.types import ContextSource, DocumentGroup, SearchResult, StoredDocument

logger = logging.getLogger(__name__)

app = FastAPI(title="DocQA Retrieval Service", version="0.1.0")


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


def _http_error(exc: RetrievalError) -> HTTPException:
    """Map retrieval errors to client-facing HTTP errors."""
    if isinstance(exc, SessionNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, DuplicateDocumentError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", str(uuid.uuid4()))


def _document_summary(document: StoredDocument) -> DocumentSummary:
    return DocumentSummary(
        document_id=document.document_id,
        session_id=document.session_id,
        filename=document.filename,
        chunk_count=len(document.chunks),
        keywords=list(document.keywords),
        added_at=document.added_at,
        metadata=dict(document.metadata),
        statistics=asdict(document.statistics),
    )


def _result_item(result: SearchResult) -> SearchResultItem:
    chunk = result.chunk
    return SearchResultItem(
        chunk_id=chunk.id,
        document_id=chunk.document_id,
        chunk_index=chunk.index,
        filename=chunk.filename,
        text=chunk.text,
        similarity=round(result.similarity, 4),
        factors=result.factors.as_dict(),
    )


def _group_item(group: DocumentGroup) -> DocumentGroupItem:
    return DocumentGroupItem(
        document_id=group.document_id,
        filename=group.filename,
        avg_similarity=round(group.avg_similarity, 4),
        max_similarity=round(group.max_similarity, 4),
        chunk_count=group.chunk_count,
        relevance=round(group.relevance, 4),
        results=[_result_item(result) for result in group.results],
    )


def _source_item(source: ContextSource) -> SourceItem:
    return SourceItem(
        document_id=source.document_id,
        chunk_index=source.chunk_index,
        filename=source.filename,
        similarity=source.similarity,
        snippet=source.snippet,
        keywords=list(source.keywords),
    )


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Simple health probe for uptime checks."""
    return {"status": "ok"}


@app.get("/stats", response_model=StatsResponse)
async def stats() -> StatsResponse:
    """Return chunk store totals."""
    return StatsResponse(**get_pipeline().store.stats())


@app.get("/stats/embedding", response_model=EmbeddingHealthResponse)
async def embedding_health() -> EmbeddingHealthResponse:
    """Return embedding configuration health checks."""
    report = get_embedding_config_report()
    return EmbeddingHealthResponse(**asdict(report))


@app.post("/sessions/{session_id}/documents", response_model=IngestDocumentResponse)
async def ingest_document(
    session_id: str, request: IngestDocumentRequest, http_request: Request
) -> IngestDocumentResponse:
    """Index a document from pre-split chunks or raw text."""
    pipeline = get_pipeline()
    chunks = request.chunks
    if not chunks:
        chunks = chunk_text(
            request.text or "",
            max_chars=settings.chunk_size,
            overlap=settings.chunk_overlap,
        )
    document_id = request.document_id or str(uuid.uuid4())
    metadata = dict(request.metadata)
    metadata.setdefault("filename", document_id)
    try:
        document = pipeline.ingest_document(session_id, document_id, chunks, metadata)
    except RetrievalError as exc:
        logger.warning(
            "ingest_rejected",
            extra={
                "request_id": _request_id(http_request),
                "session_id": session_id,
                "detail": type(exc).__name__,
            },
        )
        raise _http_error(exc) from exc
    record_ingest(len(document.chunks))
    return IngestDocumentResponse(document=_document_summary(document))


@app.get("/sessions/{session_id}/documents", response_model=DocumentListResponse)
async def list_documents(session_id: str) -> DocumentListResponse:
    """List documents registered under a session."""
    documents = get_pipeline().list_documents(session_id)
    return DocumentListResponse(
        session_id=session_id,
        documents=[_document_summary(document) for document in documents],
    )


@app.delete("/sessions/{session_id}/documents/{document_id}", response_model=DeleteResponse)
async def delete_document(session_id: str, document_id: str) -> DeleteResponse:
    """Delete a single document from a session."""
    pipeline = get_pipeline()
    document = pipeline.store.get_document(document_id)
    if document is None or document.session_id != session_id:
        raise HTTPException(status_code=404, detail="Document not found")
    deleted = pipeline.delete_document(document_id)
    return DeleteResponse(deleted=int(deleted))


@app.get("/sessions/{session_id}/stats", response_model=SessionStatsResponse)
async def session_stats(session_id: str) -> SessionStatsResponse:
    """Return document, chunk and token counts for a session."""
    stats = get_pipeline().get_session_stats(session_id)
    return SessionStatsResponse(
        session_id=session_id,
        document_count=stats.document_count,
        chunk_count=stats.chunk_count,
        estimated_tokens=stats.estimated_tokens,
        unique_keywords=list(stats.unique_keywords),
        last_updated=stats.last_updated,
        avg_document_quality=stats.avg_document_quality,
    )


@app.delete("/sessions/{session_id}", response_model=DeleteResponse)
async def delete_session(session_id: str) -> DeleteResponse:
    """Delete a session and every document in it."""
    return DeleteResponse(deleted=get_pipeline().delete_session(session_id))


@app.post("/search", response_model=SearchResponse)
async def search(request: SearchRequest, http_request: Request) -> SearchResponse:
    """Rank chunks for a query within a session or document set."""
    if request.cross_session and not settings.allow_cross_session:
        raise HTTPException(status_code=403, detail="Cross-session search is disabled")
    try:
        results = get_pipeline().search(
            request.query,
            session_id=request.session_id,
            document_ids=request.document_ids,
            limit=request.limit,
            cross_session=request.cross_session,
        )
    except RetrievalError as exc:
        raise _http_error(exc) from exc
    record_search("chunks")
    return SearchResponse(
        results=[_result_item(result) for result in results],
        request_id=_request_id(http_request),
    )


@app.post("/search/cross-document", response_model=DocumentGroupResponse)
async def cross_document_search(
    request: CrossDocumentRequest, http_request: Request
) -> DocumentGroupResponse:
    """Rank the documents of a session by aggregated relevance."""
    try:
        groups = get_pipeline().cross_document_search(
            request.query, request.session_id, limit=request.limit
        )
    except RetrievalError as exc:
        raise _http_error(exc) from exc
    record_search("cross_document")
    return DocumentGroupResponse(
        documents=[_group_item(group) for group in groups],
        request_id=_request_id(http_request),
    )


@app.post("/search/similar", response_model=DocumentGroupResponse)
async def similar_documents(
    request: SimilarDocumentsRequest, http_request: Request
) -> DocumentGroupResponse:
    """Find documents in a session that resemble the given text."""
    try:
        groups = get_pipeline().find_similar_documents(
            request.content, request.session_id, limit=request.limit
        )
    except RetrievalError as exc:
        raise _http_error(exc) from exc
    record_search("similar")
    return DocumentGroupResponse(
        documents=[_group_item(group) for group in groups],
        request_id=_request_id(http_request),
    )


@app.post("/context", response_model=ContextResponse)
async def relevant_context(request: ContextRequest, http_request: Request) -> ContextResponse:
    """Assemble a token-bounded context for downstream generation."""
    try:
        context = get_pipeline().get_relevant_context(
            request.query, request.session_id, max_tokens=request.max_tokens
        )
    except RetrievalError as exc:
        raise _http_error(exc) from exc
    record_search("context")
    record_empty_context(context.reason)
    return ContextResponse(
        context=context.text,
        sources=[_source_item(source) for source in context.sources],
        token_count=context.token_count,
        total_results=context.total_results,
        confidence=context.confidence,
        reason=context.reason,
        request_id=_request_id(http_request),
    )


@app.post("/ask", response_model=AskResponse)
async def ask(request: AskRequest, http_request: Request) -> AskResponse:
    """Answer a question from the session's documents with citations."""
    request_id = _request_id(http_request)
    try:
        response = await get_pipeline().answer(
            request.question, request.session_id, max_tokens=request.max_tokens
        )
    except RetrievalError as exc:
        raise _http_error(exc) from exc
    record_search("ask")
    record_empty_context(response.refusal_reason)
    logger.info(
        "question_answered",
        extra={
            "request_id": request_id,
            "sources": len(response.sources),
            "refusal_reason": response.refusal_reason,
        },
    )
    return AskResponse(
        answer=response.answer,
        sources=[_source_item(source) for source in response.sources],
        confidence=response.confidence,
        refusal_reason=response.refusal_reason,
        request_id=request_id,
    )
