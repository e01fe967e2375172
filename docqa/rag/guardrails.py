from __future__ import annotations

from dataclasses import dataclass

from docqa.rag.types import AssembledContext


DEFAULT_REFUSAL = "I couldn't find relevant content in your documents for this question."


@dataclass(frozen=True)
class GuardrailResult:
    allowed: bool
    reason: str


def require_context(context: AssembledContext) -> GuardrailResult:
    if context.is_empty:
        return GuardrailResult(allowed=False, reason=context.reason or "no_context")
    if not context.text.strip():
        return GuardrailResult(allowed=False, reason="empty_context")
    return GuardrailResult(allowed=True, reason="ok")
