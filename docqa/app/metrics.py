from __future__ import annotations

import time

from fastapi import Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.responses import Response

from docqa.app.settings import settings

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
CHUNKS_INGESTED = Counter(
    "docqa_chunks_ingested_total",
    "Chunks indexed into the chunk store",
)
SEARCHES = Counter(
    "docqa_searches_total",
    "Searches executed by kind",
    ["kind"],
)
EMPTY_CONTEXTS = Counter(
    "docqa_empty_contexts_total",
    "Context requests that found nothing to include",
    ["reason"],
)


def record_ingest(chunk_count: int) -> None:
    if settings.metrics_enabled:
        CHUNKS_INGESTED.inc(chunk_count)


def record_search(kind: str) -> None:
    if settings.metrics_enabled:
        SEARCHES.labels(kind).inc()


def record_empty_context(reason: str | None) -> None:
    if settings.metrics_enabled and reason:
        EMPTY_CONTEXTS.labels(reason).inc()


async def metrics_middleware(request: Request, call_next):
    if not settings.metrics_enabled:
        return await call_next(request)
    path = request.url.path
    if path == "/metrics":
        return await call_next(request)
    path_label = path
    start = time.monotonic()
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        route = request.scope.get("route")
        path_label = getattr(route, "path", path)
        return response
    finally:
        duration = time.monotonic() - start
        REQUEST_COUNT.labels(request.method, path_label, str(status)).inc()
        REQUEST_LATENCY.labels(request.method, path_label).observe(duration)


def metrics_response() -> Response:
    if not settings.metrics_enabled:
        return Response(status_code=404)
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
