"""Prompt construction for grounded answers."""

from rag_assistant.documents.models import RankedDocument
from rag_assistant.llm.models import Message, Role

TRUNCATION_MARK = " [...]"


class RAGPromptTemplate:
    """Builds the system and user prompts for a grounded answer.

    Context passages are laid out in rank order as ``[FUENTE: source]: text``
    and the block is kept under ``max_context_chars``. The top passage is
    always present, truncated if it alone exceeds the budget; lower ranked
    passages are truncated or left out.

    Earlier conversation turns go between the system and user prompts. The
    most recent turns are kept within ``max_history_chars``.
    """

    DEFAULT_SYSTEM_PROMPT = """Eres el asistente de la web. Respondes en español, de forma breve y amable.

Reglas:
- Responde SOLO con la información del contexto
- Si el contexto no contiene la respuesta, dilo y sugiere contactar con nosotros
- NUNCA inventes precios, horarios ni direcciones
- Cita la fuente cuando sea posible"""

    DEFAULT_USER_TEMPLATE = """Contexto:
{context}

Pregunta: {question}

Respuesta:"""

    SEPARATOR = "\n\n"

    def __init__(
        self,
        max_context_chars: int = 6000,
        max_history_chars: int = 2000,
        system_prompt: str | None = None,
        user_template: str | None = None,
    ) -> None:
        """Initialize the template.

        Args:
            max_context_chars: Character budget for the context block.
            max_history_chars: Character budget for earlier turns.
            system_prompt: Custom system prompt.
            user_template: Custom user template with ``{context}`` and
                ``{question}`` placeholders.
        """
        if max_context_chars < 1:
            raise ValueError("max_context_chars must be positive")
        if max_history_chars < 0:
            raise ValueError("max_history_chars must not be negative")
        self.max_context_chars = max_context_chars
        self.max_history_chars = max_history_chars
        self.system_prompt = system_prompt or self.DEFAULT_SYSTEM_PROMPT
        self.user_template = user_template or self.DEFAULT_USER_TEMPLATE

    @staticmethod
    def format_passage(document: RankedDocument) -> str:
        return f"[FUENTE: {document.source}]: {document.content}"

    def _fit(self, passage: str, room: int) -> str | None:
        if len(passage) <= room:
            return passage
        keep = room - len(TRUNCATION_MARK)
        if keep <= 0:
            return None
        return passage[:keep].rstrip() + TRUNCATION_MARK

    def format_context(self, documents: list[RankedDocument]) -> str:
        """Join passages in rank order within the character budget."""
        parts: list[str] = []
        used = 0

        for index, document in enumerate(documents):
            room = self.max_context_chars - used
            if parts:
                room -= len(self.SEPARATOR)
            passage = self.format_passage(document)

            if index == 0:
                fitted = self._fit(passage, room) or passage[:room]
            else:
                fitted = self._fit(passage, room) if room > 0 else None

            if fitted is None:
                break
            parts.append(fitted)
            used += len(fitted) + (len(self.SEPARATOR) if index else 0)

        return self.SEPARATOR.join(parts)

    def build_prompt(
        self,
        question: str,
        documents: list[RankedDocument],
    ) -> tuple[str, str]:
        """Build the prompts for a question.

        Returns:
            Tuple of (system_prompt, user_prompt).
        """
        context = self.format_context(documents)
        user_prompt = self.user_template.format(context=context, question=question)
        return self.system_prompt, user_prompt

    def fit_history(self, history: list[Message]) -> list[Message]:
        """Keep the latest user and assistant turns within the history budget.

        System messages in the history are dropped. Turns are kept whole,
        newest first, until the next one would exceed the budget.
        """
        kept: list[Message] = []
        used = 0
        for message in reversed(history):
            if message.role is Role.SYSTEM or not message.content.strip():
                continue
            if used + len(message.content) > self.max_history_chars:
                break
            kept.append(message)
            used += len(message.content)
        kept.reverse()
        return kept

    def build_messages(
        self,
        question: str,
        documents: list[RankedDocument],
        history: list[Message] | None = None,
    ) -> list[Message]:
        """Build the chat messages: system prompt, earlier turns, then the question."""
        system_prompt, user_prompt = self.build_prompt(question, documents)
        return [
            Message(role=Role.SYSTEM, content=system_prompt),
            *self.fit_history(history or []),
            Message(role=Role.USER, content=user_prompt),
        ]
