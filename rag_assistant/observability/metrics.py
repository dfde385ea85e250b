"""Prometheus metrics for the assistant.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Query outcomes and failing pipeline stages
- Embedding and LLM request latency
- Retrieval results, fallbacks and cache efficiency
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Query Metrics
RAG_QUERY_DURATION = Histogram(
    "rag_query_duration_seconds",
    "Assistant query duration in seconds",
    ["outcome"],
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

RAG_QUERY_TOTAL = Counter(
    "rag_queries_total",
    "Total assistant queries",
    ["outcome"],
)

RAG_STAGE_FAILURES = Counter(
    "rag_stage_failures_total",
    "Pipeline failures by the stage that failed",
    ["stage", "error_code"],
)

FALLBACK_TOTAL = Counter(
    "rag_fallbacks_total",
    "Answers served without grounded context",
    ["intent", "reason"],
)

# LLM Metrics
LLM_REQUEST_DURATION = Histogram(
    "llm_request_duration_seconds",
    "LLM request duration in seconds",
    ["model", "status"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

LLM_TOKENS_TOTAL = Counter(
    "llm_tokens_total",
    "Total LLM tokens used",
    ["model", "type"],  # "type" label values: prompt, completion
)

LLM_REQUEST_TOTAL = Counter(
    "llm_requests_total",
    "Total LLM requests",
    ["model", "status"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "status"],
)

EMBEDDING_CACHE_TOTAL = Counter(
    "embedding_cache_lookups_total",
    "Embedding cache lookups",
    ["result"],
)

# Retrieval Metrics
RETRIEVAL_DOCUMENTS_RETURNED = Histogram(
    "retrieval_documents_returned",
    "Number of documents returned per retrieval",
    buckets=[0, 1, 2, 3, 5, 10, 20, 50],
)

RETRIEVAL_TOP_SIMILARITY = Histogram(
    "retrieval_top_similarity",
    "Top similarity per retrieval",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip the scrape endpoint so scrapes do not count themselves
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        # Normalized paths keep label cardinality bounded
        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        # Health checks share one label
        if path.startswith("/health"):
            return "/health"
        # Keep the versioned route, drop anything after it
        if path.startswith("/api/v1/"):
            parts = path.split("/")
            if len(parts) >= 4:
                return f"/api/v1/{parts[3]}"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_llm_request(
    model: str,
    duration: float,
    prompt_tokens: int,
    completion_tokens: int,
    success: bool = True,
) -> None:
    """Track LLM request metrics.

    Args:
        model: LLM model name.
        duration: Request duration in seconds.
        prompt_tokens: Number of prompt tokens.
        completion_tokens: Number of completion tokens.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    LLM_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    LLM_REQUEST_TOTAL.labels(model=model, status=status).inc()

    if success:
        LLM_TOKENS_TOTAL.labels(model=model, type="prompt").inc(prompt_tokens)
        LLM_TOKENS_TOTAL.labels(model=model, type="completion").inc(completion_tokens)


def track_embedding_request(
    model: str,
    duration: float,
    batch_size: int,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        batch_size: Number of texts in the batch.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, status=status).inc(batch_size)


def track_embedding_cache(hit: bool) -> None:
    """Count an embedding cache lookup."""
    EMBEDDING_CACHE_TOTAL.labels(result="hit" if hit else "miss").inc()


def track_retrieval_request(
    documents_returned: int,
    top_similarity: float,
) -> None:
    """Track retrieval request metrics.

    Args:
        documents_returned: Number of documents returned.
        top_similarity: Highest similarity, ignored when nothing was returned.
    """
    RETRIEVAL_DOCUMENTS_RETURNED.observe(documents_returned)
    if documents_returned:
        RETRIEVAL_TOP_SIMILARITY.observe(top_similarity)


def track_query(outcome: str, duration: float) -> None:
    """Record the outcome and latency of one assistant query."""
    RAG_QUERY_TOTAL.labels(outcome=outcome).inc()
    RAG_QUERY_DURATION.labels(outcome=outcome).observe(duration)


def track_stage_failure(stage: str, error_code: str) -> None:
    """Count a pipeline failure at a given stage."""
    RAG_STAGE_FAILURES.labels(stage=stage, error_code=error_code).inc()


def track_fallback(intent: str, reason: str) -> None:
    """Count an answer served without grounded context."""
    FALLBACK_TOTAL.labels(intent=intent, reason=reason).inc()
