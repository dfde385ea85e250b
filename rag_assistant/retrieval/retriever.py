"""Similarity retrieval over the knowledge base."""

from abc import ABC, abstractmethod

from pydantic import ValidationError

from rag_assistant.documents.models import MetadataFilters, ScoredDocument
from rag_assistant.exceptions import EmbeddingDimensionError, InvalidInputError
from rag_assistant.logging_config import get_logger
from rag_assistant.observability.metrics import track_retrieval_request
from rag_assistant.vectorstore.service import VectorStore

logger = get_logger(__name__)


class VectorRetriever(ABC):
    """Abstract base class for retrievers.

    Defines the interface for finding the passages closest to a query
    embedding.
    """

    @abstractmethod
    async def search(
        self,
        query_embedding: list[float],
        limit: int,
        threshold: float,
        filters: MetadataFilters | None = None,
    ) -> list[ScoredDocument]:
        """Retrieve documents similar to a query embedding.

        Args:
            query_embedding: The embedded query.
            limit: Maximum number of documents to return.
            threshold: Minimum similarity, inclusive.
            filters: Metadata predicates, combined with AND.

        Returns:
            Documents ordered by descending similarity. Empty when nothing
            clears the threshold. Records whose payload cannot be read
            are skipped.

        Raises:
            UpstreamUnavailableError: If the store fails. Not retried here.
        """
        ...


class StoreVectorRetriever(VectorRetriever):
    """Retriever backed by a VectorStore collection.

    The threshold, limit and ordering are enforced again on whatever the
    store returns, so the guarantees hold for any backend.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        collection: str,
        dimensions: int | None = None,
    ) -> None:
        """Initialize the retriever.

        Args:
            vector_store: Vector database for similarity search.
            collection: Name of the collection to search.
            dimensions: Expected query embedding length, if known.
        """
        self._vector_store = vector_store
        self._collection = collection
        self._dimensions = dimensions

    async def search(
        self,
        query_embedding: list[float],
        limit: int,
        threshold: float,
        filters: MetadataFilters | None = None,
    ) -> list[ScoredDocument]:
        """Retrieve documents using semantic similarity."""
        if limit < 1:
            raise InvalidInputError("limit must be at least 1", details={"limit": limit})
        if self._dimensions is not None and len(query_embedding) != self._dimensions:
            raise EmbeddingDimensionError(self._dimensions, len(query_embedding))

        predicates = filters.as_dict() if filters else {}

        search_results = await self._vector_store.search(
            collection=self._collection,
            vector=query_embedding,
            limit=limit,
            score_threshold=threshold,
            filters=predicates or None,
        )

        documents: list[ScoredDocument] = []
        for sr in search_results:
            if sr.score < threshold:
                continue
            try:
                documents.append(ScoredDocument.from_payload(sr.id, sr.payload, sr.score))
            except ValidationError as e:
                logger.warning(
                    "Skipping record with malformed payload",
                    extra={"record_id": sr.id, "error": str(e)},
                )
        documents.sort(key=lambda d: d.similarity, reverse=True)
        documents = documents[:limit]

        top = documents[0].similarity if documents else 0.0
        track_retrieval_request(len(documents), top)
        logger.debug(
            f"Retrieved {len(documents)} documents",
            extra={
                "limit": limit,
                "threshold": threshold,
                "filters": predicates,
                "returned": len(search_results),
            },
        )

        return documents
