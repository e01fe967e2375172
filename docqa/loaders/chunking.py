from __future__ import annotations

"""Character chunking for raw text uploads."""

import re

_WHITESPACE_RE = re.compile(r"[ \t\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def normalize_text(text: str) -> str:
    """Normalize line endings and horizontal whitespace, keep paragraph breaks."""
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    return _BLANK_LINES_RE.sub("\n\n", cleaned).strip()


def chunk_text(text: str, max_chars: int, overlap: int) -> list[str]:
    """Split text into overlapping character-based chunks.

    Chunk ends are pulled back to the last whitespace inside the window so
    words are not split, unless the window holds a single long word.
    """
    cleaned = normalize_text(text)
    if not cleaned:
        return []
    if max_chars <= 0 or len(cleaned) <= max_chars:
        return [cleaned]
    if overlap >= max_chars:
        overlap = max(0, max_chars // 4)

    chunks: list[str] = []
    start = 0
    length = len(cleaned)
    while start < length:
        end = min(length, start + max_chars)
        if end < length:
            split_at = cleaned.rfind(" ", start + 1, end)
            newline_at = cleaned.rfind("\n", start + 1, end)
            boundary = max(split_at, newline_at)
            if boundary > start:
                end = boundary
        chunk = cleaned[start:end].strip()
        if chunk:
            chunks.append(chunk)
        if end >= length:
            break
        next_start = end - overlap
        start = next_start if next_start > start else end
    return chunks
