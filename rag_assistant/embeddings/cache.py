"""TTL cache in front of an embedding service.

Repeated visitor questions ("¿Cuánto cuesta?") are embedded once per TTL
window instead of once per request.
"""

import hashlib
import time
from collections import OrderedDict
from collections.abc import Callable

from rag_assistant.embeddings.models import CacheStats, EmbeddingResult
from rag_assistant.embeddings.service import EmbeddingService, prepare_text
from rag_assistant.exceptions import EmbeddingDimensionError
from rag_assistant.logging_config import get_logger
from rag_assistant.observability.metrics import track_embedding_cache

logger = get_logger(__name__)


def cache_key(text: str) -> str:
    """Stable key for a text, insensitive to case and surrounding whitespace."""
    normalized = " ".join(text.lower().split())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class CachedEmbeddingService(EmbeddingService):
    """Wraps an embedding service with a bounded, expiring cache.

    Entries expire ``ttl_seconds`` after insertion. When full, the oldest
    entry is evicted first.
    """

    def __init__(
        self,
        inner: EmbeddingService,
        ttl_seconds: float,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            inner: Service that computes embeddings on a miss.
            ttl_seconds: Entry lifetime.
            max_entries: Capacity before eviction.
            clock: Monotonic time source (injectable for tests).

        Raises:
            ValueError: If ttl_seconds or max_entries is not positive.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self._inner = inner
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, list[float]]] = OrderedDict()
        self._hits = 0
        self._misses = 0

    @property
    def model_name(self) -> str:
        """Get the wrapped model name."""
        return self._inner.model_name

    @property
    def dimensions(self) -> int:
        """Get the wrapped embedding dimensions."""
        return self._inner.dimensions

    def get(self, text: str) -> list[float] | None:
        """Return a live cached vector, dropping it if expired."""
        key = cache_key(text)
        entry = self._entries.get(key)
        if entry is None:
            return None

        stored_at, vector = entry
        if self._clock() - stored_at > self._ttl:
            del self._entries[key]
            return None
        return vector

    def set(self, text: str, vector: list[float]) -> None:
        """Store a vector, evicting the oldest entry when full.

        Raises:
            EmbeddingDimensionError: If the vector has the wrong length.
        """
        if len(vector) != self.dimensions:
            raise EmbeddingDimensionError(self.dimensions, len(vector))

        key = cache_key(text)
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), vector)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        """Current hit/miss counters."""
        return CacheStats(hits=self._hits, misses=self._misses, size=len(self._entries))

    async def embed(self, text: str) -> EmbeddingResult:
        """Serve from cache or delegate to the wrapped service."""
        cleaned = prepare_text(text)

        vector = self.get(cleaned)
        if vector is not None:
            self._hits += 1
            track_embedding_cache(hit=True)
            return EmbeddingResult(
                text=cleaned,
                embedding=vector,
                model=self.model_name,
                dimensions=len(vector),
                cached=True,
            )

        self._misses += 1
        track_embedding_cache(hit=False)
        result = await self._inner.embed(cleaned)
        self.set(cleaned, result.embedding)
        return result

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Batch embedding bypasses the cache (used for indexing)."""
        return await self._inner.embed_batch(texts)
