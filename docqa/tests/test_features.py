from __future__ import annotations

from docqa.rag.features import (
    FeatureExtractor,
    document_statistics,
    semantic_flags,
    sentiment_score,
    top_keywords,
)
from docqa.rag.text import stem


def test_semantic_flags_detect_patterns() -> None:
    flags = semantic_flags("What is DevOps? For example, the process uses Docker because it is fast.")

    assert flags.has_question
    assert flags.has_definition
    assert flags.has_example
    assert flags.has_process
    assert flags.has_causal
    assert not flags.has_comparison


def test_sentiment_counts_lexicon_hits() -> None:
    assert sentiment_score(["great", "excellent", "problem"]) == 1
    assert sentiment_score(["neutral", "words"]) == 0


def test_top_keywords_prefers_frequent_long_stems() -> None:
    keywords = top_keywords(["docker", "docker", "jenkin", "tool", "ci"], limit=2)

    assert keywords == ("docker", "jenkin")


def test_extract_builds_feature_record() -> None:
    record = FeatureExtractor(keyword_limit=3).extract("Which tools deploy containers? Docker tools.")

    assert record.term_frequencies[stem("tools")] == 2
    assert len(record.keywords) <= 3
    assert record.flags.has_question
    assert record.focus_terms == (stem("tools"),)


def test_extract_empty_text_is_empty_record() -> None:
    record = FeatureExtractor().extract("   ")

    assert record.is_empty
    assert record.sentiment == 0


def test_extract_failure_degrades_to_empty_record() -> None:
    record = FeatureExtractor().extract(None)  # type: ignore[arg-type]

    assert record.is_empty


def test_document_statistics_are_bounded() -> None:
    stats = document_statistics(["One short sentence. Another one!", "Third sentence here."])

    assert stats.total_chunks == 2
    assert stats.total_words == 8
    assert stats.total_sentences == 3
    assert 0.0 <= stats.readability_score <= 100.0
    assert document_statistics([]).total_chunks == 0


def test_focus_terms_follow_question_phrasing() -> None:
    extractor = FeatureExtractor()

    assert extractor.extract("What tools are used in DevOps?").focus_terms == (stem("tools"),)
    assert extractor.extract("How many tools are used?").focus_terms == (stem("tools"),)
    assert extractor.extract("Tools used in DevOps?").focus_terms == (stem("tools"),)
    assert extractor.extract("List the tools used in DevOps").focus_terms == (stem("tools"),)
    assert extractor.extract("Docker builds images.").focus_terms == ()
