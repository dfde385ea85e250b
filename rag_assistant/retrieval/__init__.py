"""Retrieval and reranking module."""

from rag_assistant.retrieval.reranker import Reranker, SignalReranker
from rag_assistant.retrieval.retriever import StoreVectorRetriever, VectorRetriever

__all__ = [
    "Reranker",
    "SignalReranker",
    "StoreVectorRetriever",
    "VectorRetriever",
]
