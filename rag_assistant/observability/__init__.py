"""Observability module for metrics and monitoring."""

from rag_assistant.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_embedding_request,
    track_fallback,
    track_llm_request,
    track_query,
    track_retrieval_request,
    track_stage_failure,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_embedding_request",
    "track_fallback",
    "track_llm_request",
    "track_query",
    "track_retrieval_request",
    "track_stage_failure",
]
