"""Embedding service module."""

from rag_assistant.embeddings.cache import CachedEmbeddingService
from rag_assistant.embeddings.models import CacheStats, EmbeddingResult
from rag_assistant.embeddings.service import EmbeddingService, HTTPEmbeddingService

__all__ = [
    "CacheStats",
    "CachedEmbeddingService",
    "EmbeddingResult",
    "EmbeddingService",
    "HTTPEmbeddingService",
]
