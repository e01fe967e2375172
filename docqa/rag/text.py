from __future__ import annotations

"""Text normalization helpers: tokenizing, stopwords, stemming, token estimates."""

import math
import re
from functools import lru_cache

from nltk.stem import PorterStemmer

_PUNCT_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")

MIN_TERM_LENGTH = 3

STOPWORDS = frozenset(
    {
        "a", "about", "above", "after", "again", "against", "all", "am", "an",
        "and", "any", "are", "aren", "as", "at", "be", "because", "been",
        "before", "being", "below", "between", "both", "but", "by", "can",
        "could", "couldn", "did", "didn", "do", "does", "doesn", "doing", "don",
        "down", "during", "each", "few", "for", "from", "further", "had",
        "hadn", "has", "hasn", "have", "haven", "having", "he", "her", "here",
        "hers", "herself", "him", "himself", "his", "how", "i", "if", "in",
        "into", "is", "isn", "it", "its", "itself", "just", "me", "more",
        "most", "my", "myself", "no", "nor", "not", "now", "of", "off", "on",
        "once", "only", "or", "other", "our", "ours", "ourselves", "out",
        "over", "own", "same", "she", "should", "shouldn", "so", "some",
        "such", "than", "that", "the", "their", "theirs", "them", "themselves",
        "then", "there", "these", "they", "this", "those", "through", "to",
        "too", "under", "until", "up", "very", "was", "wasn", "we", "were",
        "weren", "what", "when", "where", "which", "while", "who", "whom",
        "why", "will", "with", "won", "would", "wouldn", "you", "your",
        "yours", "yourself", "yourselves",
    }
)

_stemmer = PorterStemmer()


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs and trim."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def tokenize(text: str) -> list[str]:
    """Lowercase text, turn punctuation into whitespace and split into words."""
    if not text:
        return []
    cleaned = _PUNCT_RE.sub(" ", text.lower())
    return cleaned.split()


def remove_stopwords(tokens: list[str]) -> list[str]:
    return [token for token in tokens if token not in STOPWORDS]


@lru_cache(maxsize=65536)
def stem(token: str) -> str:
    """Return the Porter stem of a lowercase token."""
    return _stemmer.stem(token)


def content_terms(text: str) -> list[str]:
    """Stemmed, stopword-free terms long enough for frequency analysis."""
    return [
        stem(token)
        for token in remove_stopwords(tokenize(text))
        if len(token) >= MIN_TERM_LENGTH
    ]


def phrase_words(text: str) -> list[str]:
    """Unique non-stopword query words used for substring matching."""
    seen: set[str] = set()
    words: list[str] = []
    for token in remove_stopwords(tokenize(text)):
        if len(token) < MIN_TERM_LENGTH or token in seen:
            continue
        seen.add(token)
        words.append(token)
    return words


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)
