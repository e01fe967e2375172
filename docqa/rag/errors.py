from __future__ import annotations

"""Error types raised across the retrieval boundary."""


class RetrievalError(RuntimeError):
    """Base class for expected retrieval failures."""
    pass


class IngestError(RetrievalError):
    """Raised when a document cannot be ingested."""
    pass


class DuplicateDocumentError(IngestError):
    """Raised when a document id is ingested twice."""
    pass


class SearchError(RetrievalError):
    """Raised for invalid queries or filter combinations."""
    pass


class SessionNotFoundError(SearchError):
    """Raised when a session is required but unknown."""
    pass


class ContextError(RetrievalError):
    """Raised when a context cannot be assembled."""
    pass
