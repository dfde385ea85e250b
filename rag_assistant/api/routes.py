"""API routes for the assistant."""

from typing import Literal

from fastapi import APIRouter, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, SecretStr

from rag_assistant.exceptions import ConfigurationError
from rag_assistant.llm.models import Message, Role
from rag_assistant.logging_config import get_logger
from rag_assistant.rag.models import AssistantAnswer, CallerContext
from rag_assistant.rag.pipeline import RAGOrchestrator

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Chat"])

bearer_scheme = HTTPBearer(auto_error=False)


class ChatTurn(BaseModel):
    """An earlier message in the conversation."""

    role: Literal["user", "assistant"]
    content: str = Field(max_length=4000)


class ChatRequest(BaseModel):
    """Request body for a chat turn.

    ``previous_interactions`` defaults to the number of visitor turns in
    ``history`` when not given.
    """

    message: str = Field(description="Visitor question")
    user_name: str | None = Field(default=None, max_length=100, description="Visitor name")
    previous_interactions: int | None = Field(default=None, ge=0, description="Earlier turns")
    history: list[ChatTurn] = Field(
        default_factory=list,
        max_length=50,
        description="Earlier turns, oldest first",
    )

    def interactions(self) -> int:
        if self.previous_interactions is not None:
            return self.previous_interactions
        return sum(1 for turn in self.history if turn.role == "user")


class UsedDocument(BaseModel):
    """A context document as shown to API clients."""

    id: str
    source: str
    similarity: float
    final_score: float
    rerank_reason: str


class ChatResponse(BaseModel):
    """Response for a chat turn."""

    answer: str = Field(description="Answer text")
    used_documents: list[UsedDocument] = Field(description="Context documents, in rank order")
    intent: str = Field(description="Classified intent")
    outcome: str = Field(description="answered, fallback or degraded")
    actions: list[str] = Field(default_factory=list, description="Suggested follow-ups")
    should_escalate: bool = Field(default=False, description="Offer a human")
    escalation_reason: str | None = Field(default=None, description="Why, when escalating")
    tone: str = Field(default="formal", description="formal or familiar")
    cache_hit: bool = Field(default=False, description="Query embedding served from cache")


def get_orchestrator(request: Request) -> RAGOrchestrator:
    """Orchestrator built at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise ConfigurationError("Assistant pipeline is not configured")
    return orchestrator


def get_caller_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> SecretStr | None:
    """Bearer token, forwarded without being parsed."""
    return SecretStr(credentials.credentials) if credentials else None


def to_chat_response(answer: AssistantAnswer) -> ChatResponse:
    """Convert an internal answer to the API shape."""
    return ChatResponse(
        answer=answer.text,
        used_documents=[
            UsedDocument(
                id=doc.id,
                source=doc.source,
                similarity=doc.similarity,
                final_score=doc.final_score,
                rerank_reason=doc.rerank_reason,
            )
            for doc in answer.used_documents
        ],
        intent=answer.intent.value,
        outcome=answer.outcome.value,
        actions=answer.actions,
        should_escalate=answer.should_escalate,
        escalation_reason=answer.escalation_reason,
        tone=answer.tone.value,
        cache_hit=answer.cache_hit,
    )


@router.post("/chat", response_model=ChatResponse)
async def chat_endpoint(
    payload: ChatRequest,
    token: SecretStr | None = Depends(get_caller_token),
    orchestrator: RAGOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """Answer a visitor question.

    Empty or oversized questions are rejected with 400 and a request that
    runs past its deadline with 504. Every other failure still produces a
    readable answer.
    """
    caller = CallerContext(
        token=token,
        user_name=payload.user_name,
        previous_interactions=payload.interactions(),
        history=tuple(
            Message(role=Role(turn.role), content=turn.content) for turn in payload.history
        ),
    )
    answer = await orchestrator.answer(payload.message, caller)
    return to_chat_response(answer)
