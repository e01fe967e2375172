from __future__ import annotations

"""Text generation collaborators and grounded prompt construction."""

from dataclasses import dataclass
import logging
from typing import Protocol

import httpx

from docqa.rag.types import AssembledContext


class LLMError(RuntimeError):
    """Raised when LLM requests fail or responses are invalid."""
    pass


logger = logging.getLogger(__name__)


_SYSTEM_PROMPT = (
    "You are a study assistant answering questions about the user's uploaded documents. "
    "Answer only from the provided context. "
    "If the context is insufficient, say that the documents do not cover the question. "
    "Do not use external knowledge. "
    "Cite the passages you rely on with their bracketed source numbers, for example [1]. "
    "Keep the answer concise and prefer a short paragraph."
)


def build_prompt(question: str, context: AssembledContext) -> str:
    """Number each context passage so the model can cite it."""
    blocks: list[str] = []
    for idx, (source, result) in enumerate(zip(context.sources, context.results), start=1):
        blocks.append(f"[{idx}] {source.filename} (chunk {source.chunk_index})\n{result.chunk.text.strip()}")
    context_block = "\n\n".join(blocks) if blocks else context.text
    return (
        f"{_SYSTEM_PROMPT}\n\n"
        f"Context:\n{context_block}\n\n"
        f"Question: {question}\n\n"
        "Answer:"
    )


class TextGenerator(Protocol):
    """Opaque text completion capability."""

    async def generate(self, prompt: str) -> str:
        """Return a completion for ``prompt``; raise LLMError on failure."""
        raise NotImplementedError


@dataclass(frozen=True)
class OllamaGenerator:
    """Text generator backed by the Ollama chat API."""
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float

    async def generate(self, prompt: str) -> str:
        """Send a single-turn chat request and return the message content."""
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/api/chat", json=payload)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise LLMError(str(exc)) from exc
        except ValueError as exc:
            raise LLMError("Invalid JSON from LLM") from exc
        message = data.get("message") or {}
        content = message.get("content")
        if not isinstance(content, str) or not content.strip():
            logger.warning("llm_empty_response", extra={"model": self.model})
            raise LLMError("Invalid LLM response")
        return content.strip()


def build_generator(
    provider: str,
    ollama_base_url: str,
    ollama_model: str,
    temperature: float,
    max_tokens: int,
    timeout: float,
) -> TextGenerator | None:
    """Return the configured generator, or None for extractive answers."""
    normalized = provider.lower().strip()
    if normalized in {"", "none", "extractive"}:
        return None
    if normalized == "ollama":
        return OllamaGenerator(
            base_url=ollama_base_url.rstrip("/"),
            model=ollama_model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )
    raise LLMError(f"Unsupported LLM provider: {provider}")
