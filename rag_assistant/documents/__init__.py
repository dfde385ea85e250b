"""Knowledge-base document module."""

from rag_assistant.documents.models import (
    MetadataFilters,
    RankedDocument,
    RawDocument,
    ScoredDocument,
)

__all__ = [
    "MetadataFilters",
    "RankedDocument",
    "RawDocument",
    "ScoredDocument",
]
