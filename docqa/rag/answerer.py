from __future__ import annotations

"""Non-LLM answerer used when no generator is configured or generation fails."""

from dataclasses import dataclass

from docqa.rag.types import AssembledContext


@dataclass
class ExtractiveAnswerer:
    """Return a short extract from the most relevant included chunk."""
    max_chars: int = 480

    def generate(self, question: str, context: AssembledContext) -> str:
        """Generate an extractive answer from the assembled context."""
        if not context.results:
            return ""
        best = max(context.results, key=lambda result: result.similarity)
        snippet = self._truncate(best.chunk.text.strip())
        return f"Based on {best.chunk.filename}: {snippet}"

    def _truncate(self, text: str) -> str:
        """Trim text to the max character budget without cutting words."""
        if len(text) <= self.max_chars:
            return text
        return text[: self.max_chars].rsplit(" ", 1)[0] + "..."
