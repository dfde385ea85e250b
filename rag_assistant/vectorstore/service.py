"""Vector store interface and Qdrant implementation."""

from abc import ABC, abstractmethod
from typing import Any
from uuid import NAMESPACE_URL, UUID, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointStruct,
    VectorParams,
)

from rag_assistant.config import QdrantSettings, get_settings
from rag_assistant.exceptions import AuthFailureError, UpstreamUnavailableError
from rag_assistant.logging_config import get_logger
from rag_assistant.vectorstore.models import SearchResult, VectorRecord

logger = get_logger(__name__)

SERVICE_NAME = "vector_store"


class VectorStore(ABC):
    """Abstract base class for the external document store.

    Search results are ordered by descending similarity, include only
    records scoring at or above ``score_threshold`` and match every filter.
    """

    @abstractmethod
    async def create_collection(
        self,
        name: str,
        dimensions: int,
    ) -> None:
        """Create a new collection using cosine distance.

        Args:
            name: Collection name.
            dimensions: Vector dimensions.
        """
        ...

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        """Check if a collection exists.

        Args:
            name: Collection name.

        Returns:
            True if collection exists.
        """
        ...

    @abstractmethod
    async def upsert(
        self,
        collection: str,
        records: list[VectorRecord],
    ) -> int:
        """Insert or update records.

        Args:
            collection: Collection name.
            records: Records to upsert.

        Returns:
            Number of records upserted.
        """
        ...

    @abstractmethod
    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = 10,
        score_threshold: float | None = None,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Search for similar vectors.

        Args:
            collection: Collection name.
            vector: Query vector.
            limit: Maximum results to return.
            score_threshold: Minimum similarity, inclusive.
            filters: Payload equality predicates, combined with AND.

        Returns:
            List of search results, most similar first.

        Raises:
            UpstreamUnavailableError: If the store cannot be reached.
            AuthFailureError: If the store rejects the credential.
        """
        ...


def point_id(record_id: str) -> str:
    """Qdrant only accepts UUIDs; derive a stable one from other ids."""
    try:
        return str(UUID(record_id))
    except ValueError:
        return str(uuid5(NAMESPACE_URL, record_id))


class QdrantVectorStore(VectorStore):
    """Qdrant vector store implementation."""

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    def _translate(self, operation: str, error: Exception, **details: Any) -> Exception:
        """Map a client error to the assistant's error taxonomy."""
        details = {"operation": operation, "error": str(error), **details}
        if isinstance(error, UnexpectedResponse) and error.status_code in (401, 403):
            return AuthFailureError(
                "Vector store rejected the credential",
                service=SERVICE_NAME,
                details=details,
            )
        return UpstreamUnavailableError(
            f"Vector store {operation} failed: {error}",
            service=SERVICE_NAME,
            details=details,
        )

    async def create_collection(
        self,
        name: str,
        dimensions: int,
    ) -> None:
        """Create a new Qdrant collection."""
        client = await self._get_client()

        try:
            await client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(
                    size=dimensions,
                    distance=Distance.COSINE,
                ),
            )
        except Exception as e:
            raise self._translate("create_collection", e, collection=name) from e

        logger.info(f"Created collection: {name}", extra={"dimensions": dimensions})

    async def collection_exists(self, name: str) -> bool:
        """Check if collection exists."""
        client = await self._get_client()
        try:
            return await client.collection_exists(name)
        except Exception as e:
            raise self._translate("collection_exists", e, collection=name) from e

    async def upsert(
        self,
        collection: str,
        records: list[VectorRecord],
    ) -> int:
        """Upsert records into collection."""
        if not records:
            return 0

        client = await self._get_client()
        points = [
            PointStruct(
                id=point_id(record.id),
                vector=record.vector,
                payload=record.payload,
            )
            for record in records
        ]

        try:
            await client.upsert(collection_name=collection, points=points)
        except Exception as e:
            raise self._translate("upsert", e, collection=collection) from e

        logger.debug(f"Upserted {len(points)} records", extra={"collection": collection})
        return len(points)

    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = 10,
        score_threshold: float | None = None,
        filters: dict[str, Any] | None = None,
    ) -> list[SearchResult]:
        """Search for similar vectors."""
        client = await self._get_client()

        query_filter = None
        if filters:
            conditions = [
                FieldCondition(key=k, match=MatchValue(value=v))
                for k, v in filters.items()
            ]
            query_filter = Filter(must=conditions)  # type: ignore[arg-type]

        try:
            results = await client.query_points(
                collection_name=collection,
                query=vector,
                limit=limit,
                query_filter=query_filter,
                score_threshold=score_threshold,
                with_payload=True,
            )
        except Exception as e:
            raise self._translate("search", e, collection=collection) from e

        return [
            SearchResult(
                id=str(point.id),
                score=point.score if point.score is not None else 0.0,
                payload=dict(point.payload) if point.payload else {},
            )
            for point in results.points
        ]
