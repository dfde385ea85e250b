"""Knowledge-base document models.

A document moves through three fully-populated shapes:
``RawDocument`` (as stored), ``ScoredDocument`` (returned by similarity
search) and ``RankedDocument`` (re-scored by the reranker). All are frozen;
the pipeline only ever holds read-only copies.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rag_assistant.vectorstore.models import DocumentPayload


class MetadataFilters(BaseModel):
    """Predicates applied as an AND by similarity search.

    Attributes:
        source: Exact source match.
        is_public: Visibility match.
        category: Exact category match.
    """

    model_config = ConfigDict(frozen=True)

    source: str | None = Field(default=None, description="Source to match")
    is_public: bool | None = Field(default=None, description="Visibility to match")
    category: str | None = Field(default=None, description="Category to match")

    def as_dict(self) -> dict[str, Any]:
        """Return only the predicates that are set."""
        return self.model_dump(exclude_none=True)

    def broadened(self) -> "MetadataFilters":
        """Drop the category and source predicates, keep visibility."""
        return MetadataFilters(is_public=self.is_public)

    def matches(self, payload: dict[str, Any]) -> bool:
        """Check a stored payload against every set predicate."""
        return all(payload.get(key) == value for key, value in self.as_dict().items())


class RawDocument(BaseModel):
    """A knowledge-base passage as stored, before any scoring.

    Attributes:
        id: Unique document identifier.
        content: Passage text.
        source: Source identifier, e.g. ``menu/copas``.
        category: Coarse category, e.g. ``precios``.
        is_public: Whether anonymous visitors may see it.
        created_at: Creation timestamp.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1, description="Unique document identifier")
    content: str = Field(description="Passage text")
    source: str = Field(description="Source identifier")
    category: str = Field(default="general", description="Document category")
    is_public: bool = Field(default=True, description="Visible to anonymous callers")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Creation timestamp",
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialise for storage next to the embedding vector."""
        return DocumentPayload(
            document_id=self.id,
            content=self.content,
            source=self.source,
            category=self.category,
            is_public=self.is_public,
            created_at=self.created_at,
        ).model_dump()

    def summary(self, max_length: int = 200) -> str:
        """Return the content, shortened with an ellipsis past max_length."""
        if len(self.content) <= max_length:
            return self.content
        return self.content[:max_length] + "..."


class ScoredDocument(RawDocument):
    """A document returned by similarity search."""

    similarity: float = Field(ge=-1.0, le=1.0, description="Cosine similarity")

    @classmethod
    def from_payload(
        cls,
        point_id: str,
        payload: dict[str, Any],
        similarity: float,
    ) -> "ScoredDocument":
        """Build from a stored payload and a search score.

        The score is clamped to [-1, 1] to absorb floating point drift.

        Raises:
            pydantic.ValidationError: If a stored field has the wrong type.
        """
        stored = DocumentPayload.model_validate(payload)
        return cls(
            id=stored.document_id or str(point_id),
            content=stored.content,
            source=stored.source or str(point_id),
            category=stored.category or "general",
            is_public=stored.is_public,
            created_at=stored.created_at or datetime.now(UTC),
            similarity=max(-1.0, min(1.0, float(similarity))),
        )


class RankedDocument(ScoredDocument):
    """A document re-scored by the reranker.

    Attributes:
        final_score: Combined score in [0, 1].
        rerank_reason: Short human-readable justification.
    """

    final_score: float = Field(ge=0.0, le=1.0, description="Combined rerank score")
    rerank_reason: str = Field(description="Why the document ranked where it did")
