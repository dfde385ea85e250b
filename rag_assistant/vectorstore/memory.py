"""In-process vector store with exact cosine search.

Used for local development and deterministic tests. Search semantics match
the Qdrant store: inclusive threshold, AND filters, most similar first.
"""

from typing import Any

import numpy as np

from rag_assistant.exceptions import EmbeddingDimensionError, UpstreamUnavailableError
from rag_assistant.vectorstore.models import SearchResult, VectorRecord
from rag_assistant.vectorstore.service import SERVICE_NAME, VectorStore


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two equal-length vectors, 0.0 for a zero vector.

    Raises:
        EmbeddingDimensionError: If the lengths differ.
    """
    if len(a) != len(b):
        raise EmbeddingDimensionError(len(a), len(b))

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if norm == 0:
        return 0.0
    return max(-1.0, min(1.0, float(np.dot(vec_a, vec_b)) / norm))


class InMemoryVectorStore(VectorStore):
    """Dictionary-backed vector store."""

    def __init__(self) -> None:
        self._collections: dict[str, tuple[int, dict[str, VectorRecord]]] = {}

    async def create_collection(self, name: str, dimensions: int) -> None:
        """Create an empty collection."""
        self._collections.setdefault(name, (dimensions, {}))

    async def collection_exists(self, name: str) -> bool:
        """Check if collection exists."""
        return name in self._collections

    def _collection(self, name: str) -> tuple[int, dict[str, VectorRecord]]:
        if name not in self._collections:
            raise UpstreamUnavailableError(
                f"Collection not found: {name}",
                service=SERVICE_NAME,
                details={"collection": name},
            )
        return self._collections[name]

    async def upsert(self, collection: str, records: list[VectorRecord]) -> int:
        """Insert or replace records by id.

        Every vector is checked before anything is written, so a rejected
        batch leaves the collection unchanged.
        """
        dimensions, stored = self._collection(collection)
        for record in records:
            if len(record.vector) != dimensions:
                raise EmbeddingDimensionError(dimensions, len(record.vector))
        stored.update((record.id, record) for record in records)
        return len(records)

    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = 10,
        score_threshold: float | None = None,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Exact cosine search over every stored record."""
        _, stored = self._collection(collection)
        filters = filters or {}

        results: list[SearchResult] = []
        for record in stored.values():
            if any(record.payload.get(k) != v for k, v in filters.items()):
                continue
            score = cosine_similarity(vector, record.vector)
            if score_threshold is not None and score < score_threshold:
                continue
            results.append(SearchResult(id=record.id, score=score, payload=record.payload))

        results.sort(key=lambda r: (-r.score, r.id))
        return results[:limit]
