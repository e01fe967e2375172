from __future__ import annotations

"""Pack ranked results into a token-bounded context with source attribution."""

from dataclasses import dataclass

from docqa.rag.errors import ContextError
from docqa.rag.text import estimate_tokens
from docqa.rag.types import AssembledContext, ContextSource, SearchResult

NO_CANDIDATES = "no_candidates"
BELOW_THRESHOLD = "below_threshold"
BUDGET_EXCEEDED = "budget_exceeded"

_SEPARATOR = "\n\n"


def context_confidence(results: list[SearchResult]) -> float:
    """Blend of mean similarity, top similarity and result volume."""
    if not results:
        return 0.0
    avg_similarity = sum(result.similarity for result in results) / len(results)
    top_similarity = results[0].similarity
    volume = min(len(results) / 10, 1.0)
    return min(avg_similarity * 0.5 + top_similarity * 0.3 + volume * 0.2, 1.0)


def empty_context(reason: str, total_results: int = 0) -> AssembledContext:
    return AssembledContext(text="", sources=[], total_results=total_results, reason=reason)


@dataclass(frozen=True)
class ContextAssembler:
    """Greedy, budget-aware context builder."""
    snippet_chars: int = 150
    source_keywords: int = 5

    def format_entry(self, result: SearchResult) -> str:
        chunk = result.chunk
        header = f"[{chunk.filename} - Chunk {chunk.index} | relevance {result.similarity:.2f}]"
        return f"{header}\n{chunk.text.strip()}"

    def build_context(self, results: list[SearchResult], max_tokens: int) -> AssembledContext:
        """Append results in ranked order while they fit in ``max_tokens``.

        A result that would overflow the remaining budget is skipped whole;
        smaller results after it may still fit. Each entry is costed with its
        header and separator, so the estimate of the final text never exceeds
        the budget.
        """
        if max_tokens <= 0:
            raise ContextError("max_tokens must be positive")
        if not results:
            return empty_context(BELOW_THRESHOLD)

        entries: list[str] = []
        sources: list[ContextSource] = []
        included: list[SearchResult] = []
        seen: set[tuple[str, int]] = set()
        used = 0
        for result in results:
            key = (result.document_id, result.chunk_index)
            if key in seen:
                continue
            entry = self.format_entry(result)
            cost = estimate_tokens(entry + _SEPARATOR)
            if used + cost > max_tokens:
                continue
            seen.add(key)
            entries.append(entry)
            used += cost
            sources.append(self._source(result))
            included.append(result)

        text = _SEPARATOR.join(entries)
        return AssembledContext(
            text=text,
            sources=sources,
            token_count=estimate_tokens(text),
            total_results=len(results),
            confidence=round(context_confidence(results), 4),
            reason=None if sources else BUDGET_EXCEEDED,
            results=included,
        )

    def _source(self, result: SearchResult) -> ContextSource:
        chunk = result.chunk
        text = chunk.text.strip()
        snippet = text[: self.snippet_chars]
        if len(text) > self.snippet_chars:
            snippet += "..."
        return ContextSource(
            document_id=chunk.document_id,
            chunk_index=chunk.index,
            filename=chunk.filename,
            similarity=round(result.similarity, 2),
            snippet=snippet,
            keywords=chunk.features.keywords[: self.source_keywords],
        )
