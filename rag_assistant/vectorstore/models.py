"""Vector store data models.

Records carry the knowledge-base document fields as their payload. The
``DocumentPayload`` model is the stored shape; every key is optional so that
sparse records written by other tools can still be read back.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class DocumentPayload(BaseModel):
    """Document fields stored next to a vector.

    Attributes:
        document_id: Knowledge-base id; the point id stands in when absent.
        content: Passage text.
        source: Source identifier, e.g. ``menu/copas``.
        category: Coarse category used for filtering.
        is_public: Visibility used for filtering.
        created_at: Creation timestamp, stored as ISO 8601.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    document_id: str | None = None
    content: str = ""
    source: str | None = None
    category: str | None = None
    is_public: bool = True
    created_at: datetime | None = None

    @field_serializer("created_at")
    def _isoformat(self, value: datetime | None) -> str | None:
        return value.isoformat() if value else None


class VectorRecord(BaseModel):
    """A vector to upsert, keyed by a store point id."""

    id: str = Field(min_length=1, description="Point identifier")
    vector: list[float] = Field(min_length=1, description="Embedding vector")
    payload: dict[str, Any] = Field(default_factory=dict, description="Stored document fields")


class SearchResult(BaseModel):
    """One similarity hit, most similar first in a result list.

    Attributes:
        id: Record identifier as returned by the store.
        score: Cosine similarity in [-1, 1].
        payload: Stored document fields, see ``DocumentPayload``.
    """

    id: str
    score: float
    payload: dict[str, Any] = Field(default_factory=dict)
