from __future__ import annotations

"""Candidate selection, ranking and cross-document aggregation."""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from docqa.rag.embeddings import EmbeddingError
from docqa.rag.errors import SearchError, SessionNotFoundError
from docqa.rag.features import FeatureExtractor
from docqa.rag.similarity import SimilarityEngine
from docqa.rag.types import Chunk, DocumentGroup, SearchResult
from docqa.vectorstore.inmemory import InMemoryChunkStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOutcome:
    """Ranked results plus the size of the candidate set they came from."""
    results: list[SearchResult]
    candidate_count: int


@dataclass(frozen=True)
class GroupWeights:
    """Document-level relevance: avg * w_avg + max * w_max + ln(count + 1) * w_count."""
    average: float
    maximum: float
    count: float = 0.0


CROSS_DOCUMENT_WEIGHTS = GroupWeights(average=0.4, maximum=0.6, count=0.1)
SIMILAR_DOCUMENT_WEIGHTS = GroupWeights(average=0.6, maximum=0.4)


def group_by_document(
    results: Iterable[SearchResult], weights: GroupWeights
) -> list[DocumentGroup]:
    """Aggregate chunk results per document, most relevant document first."""
    buckets: dict[str, list[SearchResult]] = {}
    for result in results:
        buckets.setdefault(result.document_id, []).append(result)
    groups: list[DocumentGroup] = []
    for document_id, members in buckets.items():
        members.sort(key=lambda item: item.similarity, reverse=True)
        similarities = [member.similarity for member in members]
        avg_similarity = sum(similarities) / len(similarities)
        max_similarity = max(similarities)
        relevance = (
            avg_similarity * weights.average
            + max_similarity * weights.maximum
            + math.log(len(members) + 1) * weights.count
        )
        groups.append(
            DocumentGroup(
                document_id=document_id,
                filename=members[0].chunk.filename,
                results=members,
                avg_similarity=avg_similarity,
                max_similarity=max_similarity,
                chunk_count=len(members),
                relevance=relevance,
            )
        )
    groups.sort(key=lambda group: group.relevance, reverse=True)
    return groups


@dataclass
class SearchCoordinator:
    """Run queries against the chunk store.

    Without a session or document filter the whole corpus is searched only
    when ``allow_cross_session`` is set; otherwise the call is rejected.
    """
    store: InMemoryChunkStore
    engine: SimilarityEngine = field(default_factory=SimilarityEngine)
    extractor: FeatureExtractor = field(default_factory=FeatureExtractor)
    min_similarity: float = 0.1
    allow_cross_session: bool = False
    require_session: bool = False
    cross_document_multiplier: int = 2
    similar_document_multiplier: int = 3

    def search(
        self,
        query: str,
        session_id: str | None = None,
        document_ids: list[str] | None = None,
        limit: int = 10,
        cross_session: bool | None = None,
    ) -> list[SearchResult]:
        return self.run(
            query,
            session_id=session_id,
            document_ids=document_ids,
            limit=limit,
            cross_session=cross_session,
        ).results

    def run(
        self,
        query: str,
        session_id: str | None = None,
        document_ids: list[str] | None = None,
        limit: int = 10,
        cross_session: bool | None = None,
        now: datetime | None = None,
    ) -> SearchOutcome:
        """Score every candidate chunk and keep the top ``limit`` above threshold."""
        if not query or not query.strip():
            raise SearchError("query must not be empty")
        if limit < 1:
            raise SearchError("limit must be at least 1")
        candidates = self._candidates(session_id, document_ids, cross_session)
        if not candidates:
            return SearchOutcome(results=[], candidate_count=0)

        query_features = self.extractor.extract(query)
        query_embedding = None
        if self.engine.embedder is not None:
            try:
                query_embedding = self.engine.embedder.embed(query)
            except EmbeddingError as exc:
                raise SearchError("Query embedding failed") from exc
        current = now or datetime.now(timezone.utc)

        scored: list[SearchResult] = []
        for chunk in candidates:
            breakdown = self.engine.score(
                query_features,
                chunk,
                query,
                query_embedding=query_embedding,
                now=current,
            )
            if breakdown.total < self.min_similarity:
                continue
            scored.append(SearchResult(chunk=chunk, similarity=breakdown.total, factors=breakdown))
        # stable: equal scores keep ingestion order
        scored.sort(key=lambda item: item.similarity, reverse=True)
        results = scored[:limit]
        logger.info(
            "search_complete",
            extra={
                "session_id": session_id,
                "candidates": len(candidates),
                "matches": len(scored),
                "results": len(results),
                "query_length": len(query),
            },
        )
        return SearchOutcome(results=results, candidate_count=len(candidates))

    def search_in_documents(
        self,
        query: str,
        document_ids: list[str],
        session_id: str | None = None,
        limit: int = 10,
    ) -> list[SearchResult]:
        if not document_ids:
            raise SearchError("document_ids must not be empty")
        return self.search(query, session_id=session_id, document_ids=document_ids, limit=limit)

    def cross_document_search(
        self, query: str, session_id: str, limit: int = 10
    ) -> list[DocumentGroup]:
        """Rank documents in a session by aggregated chunk relevance."""
        if limit < 1:
            raise SearchError("limit must be at least 1")
        results = self.search(
            query,
            session_id=session_id,
            limit=limit * self.cross_document_multiplier,
        )
        return group_by_document(results, CROSS_DOCUMENT_WEIGHTS)[:limit]

    def find_similar_documents(
        self, content: str, session_id: str, limit: int = 5
    ) -> list[DocumentGroup]:
        """Documents in a session that resemble a piece of text."""
        if limit < 1:
            raise SearchError("limit must be at least 1")
        results = self.search(
            content,
            session_id=session_id,
            limit=limit * self.similar_document_multiplier,
        )
        return group_by_document(results, SIMILAR_DOCUMENT_WEIGHTS)[:limit]

    def _candidates(
        self,
        session_id: str | None,
        document_ids: list[str] | None,
        cross_session: bool | None,
    ) -> list[Chunk]:
        if session_id:
            if not self.store.has_session(session_id):
                if self.require_session:
                    raise SessionNotFoundError(f"Session {session_id} not found")
                return []
            chunks = self.store.get_chunks_for_session(session_id)
            if document_ids is not None:
                wanted = set(document_ids)
                chunks = [chunk for chunk in chunks if chunk.document_id in wanted]
            return chunks
        if document_ids is not None:
            return self.store.get_chunks_for_documents(document_ids)
        allowed = self.allow_cross_session if cross_session is None else cross_session
        if not allowed:
            raise SearchError(
                "session_id or document_ids is required unless cross-session search is enabled"
            )
        return self.store.get_all_chunks()
