"""Intent classification models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from rag_assistant.documents.models import MetadataFilters


class Intent(str, Enum):
    """Coarse visitor intent."""

    PRICING = "pricing"
    HOURS = "hours"
    LOCATION = "location"
    GENERAL = "general"


class Query(BaseModel):
    """A classified visitor question.

    Attributes:
        text: The (possibly truncated) question text.
        intent: Detected intent.
        tags: Topic tags such as ``copas`` or ``menu``.
        confidence: Classifier certainty in [0, 1].
        metadata_filters: Filters that narrow retrieval for this intent.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Question text")
    intent: Intent = Field(default=Intent.GENERAL, description="Detected intent")
    tags: frozenset[str] = Field(default_factory=frozenset, description="Topic tags")
    confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Certainty")
    metadata_filters: MetadataFilters = Field(
        default_factory=MetadataFilters,
        description="Retrieval filters",
    )
