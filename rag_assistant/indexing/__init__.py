"""Knowledge-base indexing."""

from rag_assistant.indexing.indexer import (
    KnowledgeBase,
    KnowledgeBaseIndexer,
    load_knowledge_base,
)

__all__ = [
    "KnowledgeBase",
    "KnowledgeBaseIndexer",
    "load_knowledge_base",
]
