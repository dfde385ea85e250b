"""Generation model client, prompts and answer generator."""

from rag_assistant.llm.client import LLMClient, OpenAICompatibleClient
from rag_assistant.llm.generator import AnswerGenerator, LLMAnswerGenerator
from rag_assistant.llm.models import GenerationResult, Message, Role
from rag_assistant.llm.prompts import RAGPromptTemplate

__all__ = [
    "AnswerGenerator",
    "GenerationResult",
    "LLMAnswerGenerator",
    "LLMClient",
    "Message",
    "OpenAICompatibleClient",
    "RAGPromptTemplate",
    "Role",
]
