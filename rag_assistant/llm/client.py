"""LLM client interface and implementations."""

import time
from abc import ABC, abstractmethod

import httpx

from rag_assistant.config import LLMSettings, get_settings
from rag_assistant.exceptions import (
    AuthFailureError,
    RateLimitedError,
    UpstreamUnavailableError,
)
from rag_assistant.llm.models import GenerationResult, Message, Role
from rag_assistant.logging_config import get_logger
from rag_assistant.observability.metrics import track_llm_request

logger = get_logger(__name__)

SERVICE_NAME = "llm"


class LLMClient(ABC):
    """Abstract base class for LLM clients.

    Defines the interface for generating text with LLMs.
    """

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text from messages.

        Args:
            messages: Conversation messages.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens override.

        Returns:
            GenerationResult with generated text.

        Raises:
            AuthFailureError: If the credential is rejected.
            RateLimitedError: If the model is rate limited.
            UpstreamUnavailableError: On timeouts, network errors or 5xx.
        """
        ...

    async def generate_text(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text from a simple prompt.

        Args:
            prompt: User prompt.
            system_prompt: Optional system prompt.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens override.

        Returns:
            GenerationResult with generated text.
        """
        messages: list[Message] = []

        if system_prompt:
            messages.append(Message(role=Role.SYSTEM, content=system_prompt))

        messages.append(Message(role=Role.USER, content=prompt))

        return await self.generate(
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name."""
        ...


class OpenAICompatibleClient(LLMClient):
    """LLM client for OpenAI-compatible APIs.

    Works with:
    - Ollama (localhost:11434/v1)
    - vLLM
    - OpenAI API
    - Any OpenAI-compatible endpoint
    """

    def __init__(
        self,
        settings: LLMSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the OpenAI-compatible client.

        Args:
            settings: LLM configuration.
            client: HTTP client (for testing).
        """
        self._settings = settings or get_settings().llm
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text using chat completions API."""
        started = time.perf_counter()
        try:
            result = await self._complete(messages, temperature, max_tokens)
        except Exception:
            track_llm_request(self.model_name, time.perf_counter() - started, 0, 0, False)
            raise

        track_llm_request(
            result.model,
            time.perf_counter() - started,
            result.prompt_tokens,
            result.completion_tokens,
        )
        return result

    async def _complete(
        self,
        messages: list[Message],
        temperature: float | None,
        max_tokens: int | None,
    ) -> GenerationResult:
        client = await self._get_client()
        url = f"{self._settings.base_url}/chat/completions"

        payload = {
            "model": self._settings.model,
            "messages": [
                {"role": msg.role.value, "content": msg.content} for msg in messages
            ],
            "temperature": (
                temperature if temperature is not None else self._settings.temperature
            ),
            "max_tokens": max_tokens or self._settings.max_tokens,
        }

        headers = {}
        api_key = self._settings.api_key.get_secret_value()
        if api_key != "not-required":
            headers["Authorization"] = f"Bearer {api_key}"

        try:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()

        except httpx.TimeoutException as e:
            logger.error(f"LLM request timed out: {e}")
            raise UpstreamUnavailableError(
                "LLM request timed out",
                service=SERVICE_NAME,
                details={"timeout": self._settings.timeout},
            ) from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"LLM request failed: {status}")

            if status in (401, 403):
                raise AuthFailureError(
                    "LLM service rejected the credential",
                    service=SERVICE_NAME,
                    details={"status_code": status},
                ) from e

            if status == 429:
                raise RateLimitedError(
                    "Rate limit exceeded",
                    service=SERVICE_NAME,
                    details={"status_code": status},
                ) from e

            raise UpstreamUnavailableError(
                f"LLM service returned {status}",
                service=SERVICE_NAME,
                details={"status_code": status},
            ) from e

        except httpx.RequestError as e:
            logger.error(f"LLM connection error: {e}")
            raise UpstreamUnavailableError(
                f"Failed to connect to LLM service: {e}",
                service=SERVICE_NAME,
                details={"url": url},
            ) from e

        try:
            data = response.json()
            message = data["choices"][0]["message"]
            usage = data.get("usage") or {}

            return GenerationResult(
                content=message["content"] or "",
                model=data.get("model", self._settings.model),
                prompt_tokens=usage.get("prompt_tokens", 0),
                completion_tokens=usage.get("completion_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            )

        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamUnavailableError(
                f"Invalid response from LLM: {e}",
                service=SERVICE_NAME,
                details={"error": str(e)},
            ) from e
