from __future__ import annotations

import os

import httpx
import pytest

os.environ["EMBEDDING_PROVIDER"] = "none"
os.environ["RAG_LLM_PROVIDER"] = "none"
os.environ["RAG_CHUNK_SIZE"] = "1000"
os.environ["RAG_CHUNK_OVERLAP"] = "100"

from docqa.app.dependencies import reset_pipeline_cache
from docqa.app.main import app

pytestmark = pytest.mark.anyio

DEVOPS_CHUNKS = [
    "DevOps combines development and operations.",
    "Key tools include Jenkins and Docker.",
]


def get_client() -> httpx.AsyncClient:
    reset_pipeline_cache()
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


async def ingest_devops(client: httpx.AsyncClient, session_id: str = "s1") -> httpx.Response:
    return await client.post(
        f"/sessions/{session_id}/documents",
        json={
            "document_id": "devops",
            "chunks": DEVOPS_CHUNKS,
            "metadata": {"filename": "devops.txt"},
        },
    )


async def test_health_endpoint() -> None:
    async with get_client() as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]


async def test_ingest_and_search() -> None:
    async with get_client() as client:
        ingest_response = await ingest_devops(client)
        assert ingest_response.status_code == 200
        document = ingest_response.json()["document"]
        assert document["chunk_count"] == 2
        assert document["filename"] == "devops.txt"

        search_response = await client.post(
            "/search",
            json={"query": "What tools are used in DevOps?", "session_id": "s1", "limit": 5},
        )
    assert search_response.status_code == 200
    payload = search_response.json()
    assert [item["chunk_id"] for item in payload["results"]] == ["devops_1", "devops_0"]
    assert payload["results"][0]["factors"]["focus"] > 0
    assert payload["request_id"]


async def test_ingest_raw_text_is_chunked() -> None:
    async with get_client() as client:
        response = await client.post(
            "/sessions/s1/documents",
            json={"text": "Docker images are layered.\n\nJenkins runs builds."},
        )
        assert response.status_code == 200
        document = response.json()["document"]
        assert document["chunk_count"] == 1
        assert document["document_id"]

        listing = await client.get("/sessions/s1/documents")
    assert [item["document_id"] for item in listing.json()["documents"]] == [
        document["document_id"]
    ]


async def test_ingest_requires_content() -> None:
    async with get_client() as client:
        response = await client.post("/sessions/s1/documents", json={"chunks": []})
    assert response.status_code == 422


async def test_duplicate_document_conflicts() -> None:
    async with get_client() as client:
        await ingest_devops(client)
        response = await ingest_devops(client)
    assert response.status_code == 409


async def test_unscoped_search_is_rejected() -> None:
    async with get_client() as client:
        await ingest_devops(client)
        missing_scope = await client.post("/search", json={"query": "Docker"})
        cross_session = await client.post(
            "/search", json={"query": "Docker", "cross_session": True}
        )
    assert missing_scope.status_code == 400
    assert cross_session.status_code == 403


async def test_context_and_ask() -> None:
    async with get_client() as client:
        await ingest_devops(client)
        context_response = await client.post(
            "/context",
            json={"query": "What tools are used in DevOps?", "session_id": "s1", "max_tokens": 500},
        )
        ask_response = await client.post(
            "/ask", json={"question": "What tools are used in DevOps?", "session_id": "s1"}
        )
    assert context_response.status_code == 200
    context = context_response.json()
    assert context["token_count"] <= 500
    assert context["sources"][0]["filename"] == "devops.txt"
    assert context["reason"] is None

    assert ask_response.status_code == 200
    answer = ask_response.json()
    assert "Jenkins and Docker" in answer["answer"]
    assert "Sources: [1] devops.txt" in answer["answer"]
    assert answer["refusal_reason"] is None


async def test_ask_refuses_without_documents() -> None:
    async with get_client() as client:
        response = await client.post(
            "/ask", json={"question": "What is the travel policy?", "session_id": "empty"}
        )
    assert response.status_code == 200
    payload = response.json()
    assert payload["sources"] == []
    assert payload["refusal_reason"] == "no_candidates"


async def test_cross_document_and_similar_endpoints() -> None:
    async with get_client() as client:
        await ingest_devops(client)
        await client.post(
            "/sessions/s1/documents",
            json={
                "document_id": "pipelines",
                "chunks": ["Jenkins and Docker automate DevOps pipelines."],
                "metadata": {"filename": "pipelines.txt"},
            },
        )
        cross = await client.post(
            "/search/cross-document",
            json={"query": "Jenkins Docker DevOps", "session_id": "s1"},
        )
        similar = await client.post(
            "/search/similar",
            json={"content": "Jenkins and Docker", "session_id": "s1", "limit": 1},
        )
    assert cross.status_code == 200
    documents = cross.json()["documents"]
    assert {item["document_id"] for item in documents} == {"devops", "pipelines"}
    assert all(item["chunk_count"] >= 1 for item in documents)
    assert similar.status_code == 200
    assert len(similar.json()["documents"]) == 1


async def test_session_stats_and_deletes() -> None:
    async with get_client() as client:
        await ingest_devops(client)
        stats = await client.get("/sessions/s1/stats")
        wrong_session = await client.delete("/sessions/other/documents/devops")
        deleted = await client.delete("/sessions/s1")
        after = await client.get("/sessions/s1/stats")
        totals = await client.get("/stats")
    assert stats.json()["document_count"] == 1
    assert stats.json()["chunk_count"] == 2
    assert stats.json()["avg_document_quality"] == pytest.approx(0.8)
    assert wrong_session.status_code == 404
    assert deleted.json() == {"deleted": 1}
    assert after.json()["chunk_count"] == 0
    assert totals.json()["document_count"] == 0


async def test_embedding_health_and_metrics() -> None:
    async with get_client() as client:
        health = await client.get("/stats/embedding")
        metrics = await client.get("/metrics")
    assert health.status_code == 200
    assert health.json()["provider"] == "none"
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text
