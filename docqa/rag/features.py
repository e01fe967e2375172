from __future__ import annotations

"""Feature extraction: term frequencies, keywords, semantic flags, sentiment."""

import logging
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from docqa.rag.text import STOPWORDS, content_terms, stem, tokenize
from docqa.rag.types import DocumentStatistics, FeatureRecord, SemanticFlags, StoredDocument

logger = logging.getLogger(__name__)

_DEFINITION_RE = re.compile(r"\b(is|are|means|refers? to|defined as)\b")
_EXAMPLE_RE = re.compile(r"\b(examples?|such as|for instance|including)\b")
_COMPARISON_RE = re.compile(
    r"\b(compar(e|es|ed|ing|ison)|contrast|versus|vs|different|difference|similar)\b"
)
_PROCESS_RE = re.compile(r"\b(steps?|process(es)?|methods?|procedures?|algorithms?)\b")
_CAUSAL_RE = re.compile(r"\b(because|since|due to|caused by|result(s|ed|ing)?)\b")
_SENTENCE_RE = re.compile(r"[.!?]+")

_FOCUS_MARKERS = frozenset({"what", "which", "who", "where", "when", "how"})
_COMMAND_MARKERS = frozenset({"list", "name"})
_FOCUS_FILLERS = frozenset({"many", "much", "kind", "kinds", "type", "types", "sort", "sorts"})

POSITIVE_WORDS = frozenset(
    {"good", "great", "excellent", "effective", "successful", "important", "significant"}
)
NEGATIVE_WORDS = frozenset(
    {"bad", "poor", "failed", "problem", "issue", "difficult", "challenge"}
)


def semantic_flags(text: str) -> SemanticFlags:
    """Detect definition, example, comparison, process and causal language."""
    lower = text.lower()
    return SemanticFlags(
        has_question="?" in text,
        has_definition=bool(_DEFINITION_RE.search(lower)),
        has_example=bool(_EXAMPLE_RE.search(lower)),
        has_comparison=bool(_COMPARISON_RE.search(lower)),
        has_process=bool(_PROCESS_RE.search(lower)),
        has_causal=bool(_CAUSAL_RE.search(lower)),
    )


def sentiment_score(tokens: Iterable[str]) -> int:
    """Count positive minus negative lexicon hits; not length-normalized."""
    score = 0
    for token in tokens:
        if token in POSITIVE_WORDS:
            score += 1
        elif token in NEGATIVE_WORDS:
            score -= 1
    return score


def top_keywords(terms: list[str], limit: int) -> tuple[str, ...]:
    """Most frequent stems longer than three characters, first-seen order on ties."""
    counts = Counter(term for term in terms if len(term) > 3)
    return tuple(term for term, _ in counts.most_common(limit))


def focus_terms(tokens: list[str], is_question: bool) -> tuple[str, ...]:
    """Stem of the word a question asks about.

    Takes the first content word after a question word ("what tools ...",
    "how many tools ...", "list the tools ..."), or the first content word
    of a question that has none ("Tools used in DevOps?").
    """
    if not tokens:
        return ()
    start = 0
    if tokens[0] in _COMMAND_MARKERS:
        start = 1
    else:
        marker = next((idx for idx, token in enumerate(tokens) if token in _FOCUS_MARKERS), None)
        if marker is not None:
            start = marker + 1
        elif not is_question:
            return ()
    for candidate in tokens[start:]:
        if candidate in STOPWORDS or candidate in _FOCUS_FILLERS or len(candidate) < 3:
            continue
        return (stem(candidate),)
    return ()


@dataclass(frozen=True)
class FeatureExtractor:
    """Turn raw text into a FeatureRecord."""
    keyword_limit: int = 10

    def extract(self, text: str) -> FeatureRecord:
        """Extract features; degrades to an empty record instead of raising."""
        try:
            return self._extract(text)
        except Exception as exc:
            logger.warning(
                "feature_extraction_failed",
                extra={"detail": type(exc).__name__, "text_length": len(text or "")},
            )
            return FeatureRecord.empty()

    def _extract(self, text: str) -> FeatureRecord:
        tokens = tokenize(text)
        if not tokens:
            return FeatureRecord(flags=semantic_flags(text))
        terms = content_terms(text)
        flags = semantic_flags(text)
        return FeatureRecord(
            term_frequencies=dict(Counter(terms)),
            keywords=top_keywords(terms, self.keyword_limit),
            flags=flags,
            sentiment=sentiment_score(tokens),
            focus_terms=focus_terms(tokens, flags.has_question),
        )

    def document_keywords(self, chunks: list[str], limit: int = 20) -> tuple[str, ...]:
        terms: list[str] = []
        for chunk in chunks:
            terms.extend(content_terms(chunk))
        return top_keywords(terms, limit)


def document_statistics(chunks: list[str]) -> DocumentStatistics:
    """Compute size and readability statistics for a document's chunks."""
    if not chunks:
        return DocumentStatistics()
    full_text = " ".join(chunks)
    words = full_text.split()
    sentences = [part for part in _SENTENCE_RE.split(full_text) if part.strip()]
    if not words:
        return DocumentStatistics(total_chunks=len(chunks))
    avg_word_length = sum(len(word) for word in words) / len(words)
    lexical_diversity = len({word.lower() for word in words}) / len(words)
    readability = max(0.0, min(100.0, (100 - avg_word_length * 5) + lexical_diversity * 30))
    return DocumentStatistics(
        total_chunks=len(chunks),
        total_words=len(words),
        total_sentences=len(sentences),
        avg_words_per_chunk=round(len(words) / len(chunks)),
        avg_sentences_per_chunk=round(len(sentences) / len(chunks)),
        avg_word_length=round(avg_word_length, 2),
        lexical_diversity=round(lexical_diversity, 2),
        readability_score=round(readability, 2),
    )


def document_quality(document: StoredDocument, now: datetime | None = None) -> float:
    """Heuristic 0.5-1.0 quality: chunk size, readability and freshness."""
    stats = document.statistics
    quality = 0.5
    if 50 < stats.avg_words_per_chunk < 200:
        quality += 0.2
    if stats.readability_score > 40:
        quality += 0.2
    current = now or datetime.now(timezone.utc)
    added_at = document.added_at
    if added_at.tzinfo is None:
        added_at = added_at.replace(tzinfo=timezone.utc)
    if (current - added_at).total_seconds() < 7 * 86400:
        quality += 0.1
    return min(quality, 1.0)
