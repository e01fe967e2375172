from __future__ import annotations

"""Chunking behavior tests."""

from docqa.loaders.chunking import chunk_text, normalize_text


def test_chunk_text_splits_on_word_boundaries() -> None:
    content = "word " * 300

    chunks = chunk_text(content, max_chars=200, overlap=20)

    assert len(chunks) > 1
    assert all(len(chunk) <= 200 for chunk in chunks)
    assert all(part == "word" for chunk in chunks for part in chunk.split())


def test_short_text_is_single_chunk() -> None:
    assert chunk_text("  Short note.  ", max_chars=200, overlap=20) == ["Short note."]
    assert chunk_text("   ", max_chars=200, overlap=20) == []


def test_oversized_overlap_still_makes_progress() -> None:
    chunks = chunk_text("x" * 1000, max_chars=100, overlap=500)

    assert 10 <= len(chunks) < 20


def test_normalize_text_keeps_paragraph_breaks() -> None:
    assert normalize_text("One\t two\r\n\n\n\nThree") == "One two\n\nThree"
