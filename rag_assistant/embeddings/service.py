"""Embedding service interface and implementations."""

import time
from abc import ABC, abstractmethod

import httpx

from rag_assistant.config import EmbeddingSettings, get_settings
from rag_assistant.embeddings.models import EmbeddingResult
from rag_assistant.exceptions import (
    AuthFailureError,
    EmbeddingDimensionError,
    InvalidInputError,
    RateLimitedError,
    UpstreamUnavailableError,
)
from rag_assistant.logging_config import get_logger
from rag_assistant.observability.metrics import track_embedding_request

logger = get_logger(__name__)

SERVICE_NAME = "embedding"


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Implementations must fail fast with InvalidInputError on empty text,
    without making a network call.
    """

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text.

        Args:
            text: Text to embed.

        Returns:
            EmbeddingResult with vector.

        Raises:
            InvalidInputError: If text is empty.
            AuthFailureError: If the credential is missing or rejected.
            UpstreamUnavailableError: On network errors or 5xx.
        """
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts.

        Args:
            texts: List of texts to embed.

        Returns:
            List of EmbeddingResult objects.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...


def prepare_text(text: str) -> str:
    """Trim text and reject it if nothing is left."""
    cleaned = text.strip() if text else ""
    if not cleaned:
        raise InvalidInputError("Cannot embed empty text")
    return cleaned


class HTTPEmbeddingService(EmbeddingService):
    """Embedding service using an OpenAI-style ``/embeddings`` HTTP API.

    Every vector is checked against the configured dimensionality so that
    query and document embeddings are always comparable.
    """

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._settings.model

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions."""
        return self._settings.dimensions

    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text."""
        results = await self.embed_batch([text])
        return results[0]

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts, in configured batch sizes."""
        if not texts:
            return []

        cleaned = [prepare_text(t) for t in texts]

        client = await self._get_client()
        url = f"{self._settings.base_url}/embeddings"

        all_results: list[EmbeddingResult] = []
        batch_size = self._settings.batch_size

        for i in range(0, len(cleaned), batch_size):
            batch = cleaned[i : i + batch_size]
            started = time.perf_counter()
            try:
                batch_results = await self._embed_batch_request(client, url, batch)
            except Exception:
                track_embedding_request(
                    self.model_name, time.perf_counter() - started, len(batch), False
                )
                raise
            track_embedding_request(
                self.model_name, time.perf_counter() - started, len(batch)
            )
            all_results.extend(batch_results)

        return all_results

    def _headers(self) -> dict[str, str]:
        """Build request headers, including the bearer credential if set."""
        if self._settings.api_key is None:
            return {}
        return {"Authorization": f"Bearer {self._settings.api_key.get_secret_value()}"}

    async def _embed_batch_request(
        self,
        client: httpx.AsyncClient,
        url: str,
        texts: list[str],
    ) -> list[EmbeddingResult]:
        """Make embedding request for a batch.

        Raises:
            AuthFailureError: On 401/403.
            RateLimitedError: On 429.
            InvalidInputError: On other 4xx.
            UpstreamUnavailableError: On 5xx, timeouts and connection errors.
        """
        payload = {
            "input": texts,
            "model": self._settings.model,
        }

        try:
            response = await client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(
                f"Embedding request failed: {status}",
                extra={"url": url, "status": status},
            )
            details = {"status_code": status}
            if status in (401, 403):
                raise AuthFailureError(
                    "Embedding service rejected the credential",
                    service=SERVICE_NAME,
                    details=details,
                ) from e
            if status == 429:
                raise RateLimitedError(
                    "Embedding service rate limit exceeded",
                    service=SERVICE_NAME,
                    details=details,
                ) from e
            if status < 500:
                raise InvalidInputError(
                    f"Embedding service rejected the input ({status})",
                    details=details,
                ) from e
            raise UpstreamUnavailableError(
                f"Embedding service returned {status}",
                service=SERVICE_NAME,
                details=details,
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Embedding request error: {e}", extra={"url": url})
            raise UpstreamUnavailableError(
                f"Failed to connect to embedding service: {e}",
                service=SERVICE_NAME,
                details={"url": url},
            ) from e

        try:
            data = response.json()
            embeddings = data["data"]
            if len(embeddings) != len(texts):
                raise ValueError(
                    f"expected {len(texts)} embeddings, got {len(embeddings)}"
                )

            results: list[EmbeddingResult] = []
            for text, emb_data in zip(texts, embeddings):
                embedding = [float(v) for v in emb_data["embedding"]]
                if len(embedding) != self.dimensions:
                    raise EmbeddingDimensionError(self.dimensions, len(embedding))
                results.append(
                    EmbeddingResult(
                        text=text,
                        embedding=embedding,
                        model=self._settings.model,
                        dimensions=len(embedding),
                    )
                )
            return results

        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise UpstreamUnavailableError(
                f"Invalid response from embedding service: {e}",
                service=SERVICE_NAME,
                details={"error": str(e)},
            ) from e
