from __future__ import annotations

from datetime import datetime, timezone

import pytest

from docqa.rag.errors import SearchError, SessionNotFoundError
from docqa.rag.search import CROSS_DOCUMENT_WEIGHTS, SearchCoordinator, group_by_document
from docqa.vectorstore.inmemory import InMemoryChunkStore

DEVOPS_CHUNKS = [
    "DevOps combines development and operations.",
    "Key tools include Jenkins and Docker.",
]


def build_coordinator(**kwargs) -> SearchCoordinator:
    store = InMemoryChunkStore()
    store.add_document("devops", "s1", DEVOPS_CHUNKS, {"filename": "devops.txt"})
    return SearchCoordinator(store=store, extractor=store.extractor, **kwargs)


def test_question_returns_both_chunks_tools_first() -> None:
    coordinator = build_coordinator()

    results = coordinator.search("What tools are used in DevOps?", session_id="s1", limit=5)

    assert [result.chunk.id for result in results] == ["devops_1", "devops_0"]
    assert results[0].similarity >= results[1].similarity


def test_unrelated_query_returns_nothing() -> None:
    coordinator = build_coordinator()

    assert coordinator.search("completely unrelated xyz123", session_id="s1", limit=5) == []


def test_results_respect_limit_and_threshold() -> None:
    coordinator = build_coordinator(min_similarity=0.1)

    results = coordinator.search("Jenkins Docker DevOps", session_id="s1", limit=1)

    assert len(results) == 1
    assert all(result.similarity >= 0.1 for result in results)
    scores = [result.similarity for result in coordinator.search("DevOps tools", session_id="s1")]
    assert scores == sorted(scores, reverse=True)


def test_empty_query_and_bad_limit_are_rejected() -> None:
    coordinator = build_coordinator()

    with pytest.raises(SearchError):
        coordinator.search("  ", session_id="s1")
    with pytest.raises(SearchError):
        coordinator.search("Docker", session_id="s1", limit=0)


def test_sessions_are_isolated() -> None:
    coordinator = build_coordinator()
    coordinator.store.add_document("other", "s2", ["Docker swarm orchestrates containers."])

    results = coordinator.search("Docker", session_id="s2")

    assert {result.document_id for result in results} == {"other"}


def test_unscoped_search_requires_opt_in() -> None:
    coordinator = build_coordinator()

    with pytest.raises(SearchError):
        coordinator.search("Docker")

    results = coordinator.search("Docker", cross_session=True)
    assert results
    assert build_coordinator(allow_cross_session=True).search("Docker")


def test_document_filter_limits_candidates() -> None:
    coordinator = build_coordinator()
    coordinator.store.add_document("docker", "s1", ["Docker images are layered."])

    results = coordinator.search_in_documents("Docker", ["docker"], session_id="s1")

    assert {result.document_id for result in results} == {"docker"}
    with pytest.raises(SearchError):
        coordinator.search_in_documents("Docker", [])


def test_unknown_session_is_empty_or_error() -> None:
    assert build_coordinator().search("Docker", session_id="missing") == []

    outcome = build_coordinator().run("Docker", session_id="missing")
    assert outcome.candidate_count == 0

    with pytest.raises(SessionNotFoundError):
        build_coordinator(require_session=True).search("Docker", session_id="missing")


def test_cross_document_search_groups_unique_documents() -> None:
    coordinator = build_coordinator()
    coordinator.store.add_document(
        "containers",
        "s1",
        ["Docker and Jenkins automate DevOps pipelines.", "Containers ship software."],
        {"filename": "containers.txt"},
    )

    groups = coordinator.cross_document_search("Docker Jenkins DevOps", "s1", limit=5)

    assert {group.document_id for group in groups} == {"devops", "containers"}
    assert all(group.chunk_count >= 1 for group in groups)
    relevances = [group.relevance for group in groups]
    assert relevances == sorted(relevances, reverse=True)
    for group in groups:
        similarities = [result.similarity for result in group.results]
        assert similarities == sorted(similarities, reverse=True)
        assert group.max_similarity == similarities[0]


def test_find_similar_documents_uses_content_as_query() -> None:
    coordinator = build_coordinator()
    coordinator.store.add_document("cooking", "s1", ["Bake bread with flour and yeast."])

    groups = coordinator.find_similar_documents("Jenkins and Docker tooling", "s1", limit=5)

    assert [group.document_id for group in groups] == ["devops"]


def test_group_by_document_relevance_formula() -> None:
    coordinator = build_coordinator()
    results = coordinator.search("What tools are used in DevOps?", session_id="s1")

    [group] = group_by_document(results, CROSS_DOCUMENT_WEIGHTS)

    expected = group.avg_similarity * 0.4 + group.max_similarity * 0.6 + 0.1 * 1.0986122886681098
    assert group.chunk_count == 2
    assert group.relevance == pytest.approx(expected)


def test_equal_scores_keep_ingestion_order() -> None:
    added = datetime(2024, 5, 1, tzinfo=timezone.utc)
    store = InMemoryChunkStore()
    store.add_document("a", "s1", ["Docker images.", "Docker images."], created_at=added)
    store.add_document("b", "s1", ["Docker images."], created_at=added)
    coordinator = SearchCoordinator(store=store, extractor=store.extractor)

    results = coordinator.search("Docker images.", session_id="s1")

    assert [result.chunk.id for result in results] == ["a_0", "a_1", "b_0"]
    assert len({result.similarity for result in results}) == 1


@pytest.mark.parametrize(
    "question",
    [
        "What tools are used in DevOps?",
        "Which tools does DevOps use?",
        "How many tools are used in DevOps?",
        "Tools used in DevOps?",
        "List the tools used in DevOps",
    ],
)
def test_tool_questions_rank_tool_chunk_first(question: str) -> None:
    coordinator = build_coordinator()

    results = coordinator.search(question, session_id="s1", limit=5)

    assert [result.chunk.id for result in results] == ["devops_1", "devops_0"]
