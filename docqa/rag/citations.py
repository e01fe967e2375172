from __future__ import annotations

"""Citation helpers for attaching sources to answers."""

from dataclasses import dataclass

from docqa.rag.types import ContextSource


@dataclass(frozen=True)
class Citation:
    """Citation metadata for a single context source."""
    label: str
    document_id: str
    chunk_index: int
    filename: str
    similarity: float


def build_citations(sources: list[ContextSource]) -> list[Citation]:
    """Label sources in context order; one label per document chunk."""
    citations: list[Citation] = []
    for idx, source in enumerate(sources, start=1):
        citations.append(
            Citation(
                label=f"[{idx}]",
                document_id=source.document_id,
                chunk_index=source.chunk_index,
                filename=source.filename,
                similarity=source.similarity,
            )
        )
    return citations


def append_citation_footer(answer: str, citations: list[Citation]) -> str:
    """Append citation labels with filenames to the answer."""
    if not citations:
        return answer
    labels = " ".join(f"{citation.label} {citation.filename}" for citation in citations)
    return f"{answer}\n\nSources: {labels}"
