"""Knowledge-base loading and indexing."""

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from rag_assistant.documents.models import RawDocument
from rag_assistant.embeddings.service import EmbeddingService
from rag_assistant.exceptions import InvalidInputError
from rag_assistant.logging_config import get_logger
from rag_assistant.vectorstore.models import VectorRecord
from rag_assistant.vectorstore.service import VectorStore, point_id

logger = get_logger(__name__)


class KnowledgeBase(BaseModel):
    """A JSON file of documents to index.

    Attributes:
        name: Name of the knowledge base.
        documents: Documents to index.
    """

    name: str = Field(default="knowledge_base", description="Knowledge base name")
    documents: list[RawDocument] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.documents)


def load_knowledge_base(path: Path) -> KnowledgeBase:
    """Load and validate a knowledge-base JSON file.

    Args:
        path: File holding ``{"name": ..., "documents": [...]}`` or a bare
            list of documents.

    Returns:
        The parsed KnowledgeBase.

    Raises:
        InvalidInputError: If the file is missing or malformed.
    """
    if not path.exists():
        raise InvalidInputError(
            f"Knowledge base file not found: {path}",
            details={"path": str(path)},
        )

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, list):
            data = {"name": path.stem, "documents": data}
        knowledge_base = KnowledgeBase.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise InvalidInputError(
            f"Invalid knowledge base file: {e}",
            details={"path": str(path)},
        ) from e

    ids = [doc.id for doc in knowledge_base.documents]
    if len(ids) != len(set(ids)):
        raise InvalidInputError(
            "Document ids must be unique",
            details={"path": str(path)},
        )

    logger.info(
        f"Loaded {len(knowledge_base)} documents",
        extra={"path": str(path), "name": knowledge_base.name},
    )
    return knowledge_base


class KnowledgeBaseIndexer:
    """Embeds documents and writes them to the vector store."""

    def __init__(
        self,
        embedder: EmbeddingService,
        vector_store: VectorStore,
        collection: str,
    ) -> None:
        """Initialize the indexer.

        Args:
            embedder: Embedding service, also the source of dimensionality.
            vector_store: Destination store.
            collection: Collection to write into.
        """
        self._embedder = embedder
        self._vector_store = vector_store
        self._collection = collection

    async def ensure_collection(self) -> bool:
        """Create the collection if it is missing.

        Returns:
            True if the collection was created.
        """
        if await self._vector_store.collection_exists(self._collection):
            return False
        await self._vector_store.create_collection(
            self._collection,
            self._embedder.dimensions,
        )
        logger.info(
            f"Created collection {self._collection}",
            extra={"dimensions": self._embedder.dimensions},
        )
        return True

    async def index(self, documents: list[RawDocument]) -> int:
        """Embed and upsert documents.

        Re-indexing a document with the same id replaces it.

        Args:
            documents: Documents to index.

        Returns:
            Number of records written.
        """
        if not documents:
            return 0

        await self.ensure_collection()

        results = await self._embedder.embed_batch([doc.content for doc in documents])
        records = [
            VectorRecord(
                id=point_id(doc.id),
                vector=result.embedding,
                payload=doc.to_payload(),
            )
            for doc, result in zip(documents, results, strict=True)
        ]

        count = await self._vector_store.upsert(self._collection, records)
        logger.info(
            f"Indexed {count} documents",
            extra={"collection": self._collection},
        )
        return count
