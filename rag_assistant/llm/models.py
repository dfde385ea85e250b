"""Chat message and completion models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Speaker of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """One chat message sent to the generation model."""

    model_config = ConfigDict(frozen=True)

    role: Role = Field(description="Message role")
    content: str = Field(description="Message content")


class GenerationResult(BaseModel):
    """A completion returned by the generation model.

    Attributes:
        content: The answer text.
        model: Model that produced it.
        prompt_tokens: Tokens consumed by the prompt.
        completion_tokens: Tokens in the completion.
        total_tokens: Tokens billed for the call.
    """

    content: str = Field(description="Generated text")
    model: str = Field(description="Model used")
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    @property
    def is_empty(self) -> bool:
        """True when the model returned only whitespace."""
        return not self.content.strip()
