from __future__ import annotations

"""In-memory chunk store with session scoping."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from docqa.rag.embeddings import EmbeddingError, EmbeddingProvider
from docqa.rag.errors import DuplicateDocumentError, IngestError
from docqa.rag.features import FeatureExtractor, document_quality, document_statistics
from docqa.rag.text import estimate_tokens
from docqa.rag.types import Chunk, DocumentStats, StoredDocument

logger = logging.getLogger(__name__)


def chunk_id(document_id: str, index: int) -> str:
    return f"{document_id}_{index}"


@dataclass
class InMemoryChunkStore:
    """Hold documents, their chunks and the session -> documents index.

    Documents are immutable once published. Writers build a complete
    ``StoredDocument`` before taking the lock, so readers see either all of a
    document's chunks or none of them.
    """
    extractor: FeatureExtractor = field(default_factory=FeatureExtractor)
    embedder: EmbeddingProvider | None = None
    _documents: dict[str, StoredDocument] = field(default_factory=dict, init=False, repr=False)
    _sessions: dict[str, list[str]] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False)

    def add_document(
        self,
        document_id: str,
        session_id: str,
        chunks: Iterable[str],
        metadata: Mapping[str, Any] | None = None,
        created_at: datetime | None = None,
    ) -> StoredDocument:
        """Index a pre-chunked document under a session."""
        if not document_id or not document_id.strip():
            raise IngestError("document_id is required")
        if not session_id or not session_id.strip():
            raise IngestError("session_id is required")
        texts = [text for text in chunks if isinstance(text, str) and text.strip()]
        if not texts:
            raise IngestError(f"Document {document_id} has no non-empty chunks")
        if self.get_document(document_id) is not None:
            raise DuplicateDocumentError(f"Document {document_id} already exists")

        added_at = created_at or datetime.now(timezone.utc)
        frozen_metadata = MappingProxyType(dict(metadata or {}))
        built: list[Chunk] = []
        for index, text in enumerate(texts):
            embedding = None
            if self.embedder is not None:
                try:
                    embedding = tuple(self.embedder.embed(text))
                except EmbeddingError as exc:
                    raise IngestError(f"Embedding failed for {chunk_id(document_id, index)}") from exc
            built.append(
                Chunk(
                    id=chunk_id(document_id, index),
                    document_id=document_id,
                    session_id=session_id,
                    index=index,
                    text=text,
                    features=self.extractor.extract(text),
                    created_at=added_at,
                    metadata=frozen_metadata,
                    embedding=embedding,
                )
            )
        document = StoredDocument(
            document_id=document_id,
            session_id=session_id,
            chunks=tuple(built),
            metadata=frozen_metadata,
            statistics=document_statistics(texts),
            keywords=self.extractor.document_keywords(texts),
            added_at=added_at,
        )

        with self._lock:
            if document_id in self._documents:
                raise DuplicateDocumentError(f"Document {document_id} already exists")
            self._documents[document_id] = document
            self._sessions.setdefault(session_id, []).append(document_id)
        logger.info(
            "document_indexed",
            extra={
                "document_id": document_id,
                "session_id": session_id,
                "chunks": len(built),
            },
        )
        return document

    def has_session(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def get_document(self, document_id: str) -> StoredDocument | None:
        with self._lock:
            return self._documents.get(document_id)

    def list_documents(self, session_id: str) -> list[StoredDocument]:
        """Documents registered under a session, in ingestion order."""
        with self._lock:
            return [
                self._documents[doc_id]
                for doc_id in self._sessions.get(session_id, [])
                if doc_id in self._documents
            ]

    def get_chunks_for_session(self, session_id: str) -> list[Chunk]:
        return self._flatten(self.list_documents(session_id))

    def get_chunks_for_documents(self, document_ids: Iterable[str]) -> list[Chunk]:
        wanted = set(document_ids)
        with self._lock:
            documents = [doc for doc_id, doc in self._documents.items() if doc_id in wanted]
        return self._flatten(documents)

    def get_all_chunks(self) -> list[Chunk]:
        with self._lock:
            documents = list(self._documents.values())
        return self._flatten(documents)

    def delete_session(self, session_id: str) -> int:
        """Remove every document registered under the session; returns the count."""
        with self._lock:
            document_ids = self._sessions.pop(session_id, [])
            removed = 0
            for doc_id in document_ids:
                if self._documents.pop(doc_id, None) is not None:
                    removed += 1
        logger.info(
            "session_deleted",
            extra={"session_id": session_id, "documents": removed},
        )
        return removed

    def delete_document(self, document_id: str) -> bool:
        """Remove one document and unregister it from its session."""
        with self._lock:
            document = self._documents.pop(document_id, None)
            if document is None:
                return False
            members = self._sessions.get(document.session_id, [])
            if document_id in members:
                members.remove(document_id)
            if not members:
                self._sessions.pop(document.session_id, None)
        logger.info(
            "document_deleted",
            extra={"document_id": document_id, "session_id": document.session_id},
        )
        return True

    def get_document_stats(self, session_id: str, now: datetime | None = None) -> DocumentStats:
        """Counts and token estimate for a session; zeros for unknown sessions."""
        documents = self.list_documents(session_id)
        if not documents:
            return DocumentStats()
        chunk_count = 0
        estimated_tokens = 0
        keywords: list[str] = []
        for document in documents:
            chunk_count += len(document.chunks)
            estimated_tokens += sum(estimate_tokens(chunk.text) for chunk in document.chunks)
            for keyword in document.keywords:
                if keyword not in keywords:
                    keywords.append(keyword)
        return DocumentStats(
            document_count=len(documents),
            chunk_count=chunk_count,
            estimated_tokens=estimated_tokens,
            unique_keywords=tuple(keywords[:20]),
            last_updated=max(document.added_at for document in documents),
            avg_document_quality=round(
                sum(document_quality(document, now) for document in documents) / len(documents), 4
            ),
        )

    def clear(self) -> None:
        with self._lock:
            self._documents.clear()
            self._sessions.clear()

    def stats(self) -> dict[str, int | str | None]:
        """Return basic stats for the chunk store."""
        with self._lock:
            documents = list(self._documents.values())
            session_count = len(self._sessions)
        return {
            "backend": "memory",
            "session_count": session_count,
            "document_count": len(documents),
            "chunk_count": sum(len(doc.chunks) for doc in documents),
            "embedding_dimension": self.embedder.dimension if self.embedder else None,
        }

    def health(self) -> dict[str, str | bool]:
        """Return health information for the chunk store."""
        return {
            "backend": "memory",
            "ok": True,
        }

    @staticmethod
    def _flatten(documents: Iterable[StoredDocument]) -> list[Chunk]:
        return [chunk for document in documents for chunk in document.chunks]
