"""Vector store module."""

from rag_assistant.vectorstore.memory import InMemoryVectorStore, cosine_similarity
from rag_assistant.vectorstore.models import DocumentPayload, SearchResult, VectorRecord
from rag_assistant.vectorstore.service import QdrantVectorStore, VectorStore

__all__ = [
    "DocumentPayload",
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "SearchResult",
    "VectorRecord",
    "VectorStore",
    "cosine_similarity",
]
