"""RAG pipeline data models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from rag_assistant.documents.models import RankedDocument
from rag_assistant.intent.models import Intent
from rag_assistant.llm.models import Message


class PipelineStage(str, Enum):
    """Stages a request passes through, in order."""

    RECEIVED = "received"
    CLASSIFIED = "classified"
    EMBEDDED = "embedded"
    RETRIEVED = "retrieved"
    RERANKED = "reranked"
    GENERATED = "generated"
    COMPLETED = "completed"
    FAILED = "failed"


class AnswerOutcome(str, Enum):
    """How an answer was produced."""

    ANSWERED = "answered"
    FALLBACK = "fallback"
    DEGRADED = "degraded"


class Tone(str, Enum):
    """Register used by predefined messages."""

    FORMAL = "formal"
    FAMILIAR = "familiar"


class CallerContext(BaseModel):
    """Who is asking, as forwarded by the hosting boundary.

    The token is opaque: it is carried for authorization collaborators and
    never parsed here.

    Attributes:
        token: Bearer credential, if any.
        can_view_private: Authorization decision for non-public documents.
        user_name: Name used to greet the visitor.
        previous_interactions: Earlier turns in this conversation.
        history: Earlier user and assistant messages, oldest first.
    """

    model_config = ConfigDict(frozen=True)

    token: SecretStr | None = Field(default=None, description="Opaque caller token")
    can_view_private: bool = Field(default=False)
    user_name: str | None = Field(default=None, max_length=100)
    previous_interactions: int = Field(default=0, ge=0)
    history: tuple[Message, ...] = Field(default=())


class FallbackResponse(BaseModel):
    """A predefined reply used when there is no grounded context.

    Attributes:
        message: Text shown to the visitor.
        intent: Intent the message was chosen for.
        reason: Why the fallback was needed.
        should_escalate: Whether to offer a human.
        escalation_reason: ``urgent``, ``sensitive`` or ``low_confidence``
            when escalating.
        actions: Follow-up actions to suggest.
        tone: Register of the message.
    """

    model_config = ConfigDict(frozen=True)

    message: str
    intent: Intent
    reason: str
    should_escalate: bool = False
    escalation_reason: str | None = None
    actions: tuple[str, ...] = ()
    tone: Tone = Tone.FORMAL


class AssistantAnswer(BaseModel):
    """Result of one request through the pipeline.

    Attributes:
        text: Readable answer, never empty.
        used_documents: Context passed to generation, in rank order.
        intent: Classified intent.
        outcome: Whether the answer is grounded, a fallback or degraded.
        model: Generation model, when one answered.
        tokens_used: Tokens consumed by generation.
        last_stage: Last stage completed before the answer was produced.
        actions: Suggested follow-up actions.
        should_escalate: Whether a human should take over.
        escalation_reason: Why, when escalating.
        tone: Register the visitor is addressed in.
        cache_hit: Whether the query embedding came from the cache.
    """

    text: str = Field(min_length=1, description="Answer text")
    used_documents: list[RankedDocument] = Field(default_factory=list)
    intent: Intent = Field(default=Intent.GENERAL)
    outcome: AnswerOutcome = Field(default=AnswerOutcome.ANSWERED)
    model: str | None = Field(default=None, description="Generation model used")
    tokens_used: int = Field(default=0, ge=0)
    last_stage: PipelineStage = Field(default=PipelineStage.COMPLETED)
    actions: list[str] = Field(default_factory=list)
    should_escalate: bool = Field(default=False)
    escalation_reason: str | None = Field(default=None)
    tone: Tone = Field(default=Tone.FORMAL)
    cache_hit: bool = Field(default=False)

    @property
    def sources(self) -> list[str]:
        """Distinct sources of the used documents, in rank order."""
        return list(dict.fromkeys(doc.source for doc in self.used_documents))
