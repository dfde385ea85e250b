"""Question answering pipeline."""

from rag_assistant.rag.fallback import FallbackResponder
from rag_assistant.rag.models import (
    AnswerOutcome,
    AssistantAnswer,
    CallerContext,
    FallbackResponse,
    PipelineStage,
)
from rag_assistant.rag.pipeline import RAGOrchestrator

__all__ = [
    "AnswerOutcome",
    "AssistantAnswer",
    "CallerContext",
    "FallbackResponder",
    "FallbackResponse",
    "PipelineStage",
    "RAGOrchestrator",
]
