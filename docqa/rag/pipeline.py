from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from docqa.rag.answerer import ExtractiveAnswerer
from docqa.rag.citations import append_citation_footer, build_citations
from docqa.rag.context import BELOW_THRESHOLD, NO_CANDIDATES, ContextAssembler, empty_context
from docqa.rag.errors import ContextError
from docqa.rag.guardrails import DEFAULT_REFUSAL, require_context
from docqa.rag.llm import LLMError, TextGenerator, build_prompt
from docqa.rag.search import SearchCoordinator
from docqa.rag.types import (
    AssembledContext,
    ContextSource,
    DocumentGroup,
    DocumentStats,
    SearchResult,
    StoredDocument,
)
from docqa.vectorstore.inmemory import InMemoryChunkStore

logger = logging.getLogger(__name__)


@dataclass
class RAGResponse:
    answer: str
    sources: list[ContextSource]
    confidence: float = 0.0
    refusal_reason: str | None = None


@dataclass
class RAGPipeline:
    store: InMemoryChunkStore
    coordinator: SearchCoordinator
    assembler: ContextAssembler = field(default_factory=ContextAssembler)
    answerer: ExtractiveAnswerer = field(default_factory=ExtractiveAnswerer)
    generator: TextGenerator | None = None
    search_limit: int = 10
    context_max_tokens: int = 4000
    context_search_limit: int = 20

    def ingest_document(
        self,
        session_id: str,
        document_id: str,
        chunks: Iterable[str],
        metadata: Mapping[str, Any] | None = None,
    ) -> StoredDocument:
        document = self.store.add_document(document_id, session_id, chunks, metadata)
        logger.info(
            "document_ingested",
            extra={
                "session_id": session_id,
                "document_id": document_id,
                "chunks": len(document.chunks),
            },
        )
        return document

    def search(
        self,
        query: str,
        session_id: str | None = None,
        document_ids: list[str] | None = None,
        limit: int | None = None,
        cross_session: bool | None = None,
    ) -> list[SearchResult]:
        results = self.coordinator.search(
            query,
            session_id=session_id,
            document_ids=document_ids,
            limit=self.search_limit if limit is None else limit,
            cross_session=cross_session,
        )
        logger.info(
            "retrieval_complete",
            extra={
                "results": len(results),
                "query_length": len(query),
            },
        )
        return results

    def cross_document_search(
        self, query: str, session_id: str, limit: int | None = None
    ) -> list[DocumentGroup]:
        return self.coordinator.cross_document_search(
            query, session_id, limit=self.search_limit if limit is None else limit
        )

    def find_similar_documents(
        self, content: str, session_id: str, limit: int = 5
    ) -> list[DocumentGroup]:
        return self.coordinator.find_similar_documents(content, session_id, limit=limit)

    def get_relevant_context(
        self, query: str, session_id: str, max_tokens: int | None = None
    ) -> AssembledContext:
        """Assemble a context for ``query``; empty results carry a reason."""
        budget = self.context_max_tokens if max_tokens is None else max_tokens
        if budget <= 0:
            raise ContextError("max_tokens must be positive")
        outcome = self.coordinator.run(
            query, session_id=session_id, limit=self.context_search_limit
        )
        if outcome.candidate_count == 0:
            context = empty_context(NO_CANDIDATES)
        elif not outcome.results:
            context = empty_context(BELOW_THRESHOLD)
        else:
            context = self.assembler.build_context(outcome.results, budget)
        logger.info(
            "context_assembled",
            extra={
                "session_id": session_id,
                "candidates": outcome.candidate_count,
                "sources": len(context.sources),
                "token_count": context.token_count,
                "reason": context.reason,
            },
        )
        return context

    def delete_session(self, session_id: str) -> int:
        return self.store.delete_session(session_id)

    def delete_document(self, document_id: str) -> bool:
        return self.store.delete_document(document_id)

    def get_session_stats(self, session_id: str) -> DocumentStats:
        return self.store.get_document_stats(session_id)

    def list_documents(self, session_id: str) -> list[StoredDocument]:
        return self.store.list_documents(session_id)

    async def answer(
        self, question: str, session_id: str, max_tokens: int | None = None
    ) -> RAGResponse:
        context = self.get_relevant_context(question, session_id, max_tokens=max_tokens)
        guardrail = require_context(context)
        if not guardrail.allowed:
            return RAGResponse(answer=DEFAULT_REFUSAL, sources=[], refusal_reason=guardrail.reason)
        answer = ""
        if self.generator is not None:
            try:
                answer = await self.generator.generate(build_prompt(question, context))
            except LLMError as exc:
                logger.error(
                    "llm_generation_failed",
                    extra={"session_id": session_id, "detail": type(exc).__name__},
                )
        if not answer:
            answer = self.answerer.generate(question, context)
        if not answer:
            return RAGResponse(answer=DEFAULT_REFUSAL, sources=[], refusal_reason="empty_answer")
        answer = append_citation_footer(answer, build_citations(context.sources))
        return RAGResponse(
            answer=answer,
            sources=context.sources,
            confidence=context.confidence,
        )
