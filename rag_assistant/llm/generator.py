"""Grounded answer generation."""

from abc import ABC, abstractmethod

from rag_assistant.documents.models import RankedDocument
from rag_assistant.intent.models import Query
from rag_assistant.llm.client import LLMClient
from rag_assistant.llm.models import GenerationResult, Message
from rag_assistant.llm.prompts import RAGPromptTemplate
from rag_assistant.logging_config import get_logger

logger = get_logger(__name__)


class AnswerGenerator(ABC):
    """Abstract base class for answer generators."""

    @abstractmethod
    async def generate(
        self,
        query: Query,
        documents: list[RankedDocument],
        history: list[Message] | None = None,
    ) -> GenerationResult:
        """Produce an answer grounded in the given context.

        Args:
            query: The classified question.
            documents: Context passages in rank order.
            history: Earlier turns of the conversation, oldest first.

        Returns:
            GenerationResult whose ``content`` is the answer text.

        Raises:
            AuthFailureError: If the model rejects the credential.
            RateLimitedError: If the model is rate limited.
            UpstreamUnavailableError: If the model cannot be reached.
        """
        ...


class LLMAnswerGenerator(AnswerGenerator):
    """Generator that prompts an LLM with a bounded context block.

    A single call is made per answer. Errors from the client are raised
    unchanged.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        prompt_template: RAGPromptTemplate | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            llm_client: Client for the generation model.
            prompt_template: Prompt builder, defaults to the Spanish template.
        """
        self._llm_client = llm_client
        self._prompt_template = prompt_template or RAGPromptTemplate()

    async def generate(
        self,
        query: Query,
        documents: list[RankedDocument],
        history: list[Message] | None = None,
    ) -> GenerationResult:
        """Build the messages and call the model once."""
        messages = self._prompt_template.build_messages(
            question=query.text,
            documents=documents,
            history=history,
        )

        result = await self._llm_client.generate(messages)

        logger.debug(
            "Generated answer",
            extra={
                "model": result.model,
                "context_documents": len(documents),
                "history_turns": len(messages) - 2,
                "total_tokens": result.total_tokens,
            },
        )
        return result
