"""Application exception hierarchy.

All custom exceptions inherit from AssistantError.
Each exception has an error code for structured error handling.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # Request errors (1xxx)
    INTERNAL_ERROR = "RAG-1000"
    CONFIGURATION_ERROR = "RAG-1001"
    INVALID_INPUT = "RAG-1002"
    AUTH_FAILURE = "RAG-1003"
    CANCELLED = "RAG-1004"

    # Upstream errors (3xxx)
    UPSTREAM_UNAVAILABLE = "RAG-3000"
    RATE_LIMITED = "RAG-3001"
    EMBEDDING_DIMENSION_MISMATCH = "RAG-3002"

    # Retrieval errors (6xxx)
    RETRIEVAL_UNAVAILABLE = "RAG-6000"


class AssistantError(Exception):
    """Base exception for all assistant errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            }
        }


class ConfigurationError(AssistantError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class InvalidInputError(AssistantError):
    """Empty or oversized input, rejected before any network call."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


class AuthFailureError(AssistantError):
    """Missing or rejected credential for an upstream service."""

    def __init__(
        self,
        message: str,
        service: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.service = service
        super().__init__(
            message,
            ErrorCode.AUTH_FAILURE,
            {"service": service, **(details or {})},
        )


class UpstreamUnavailableError(AssistantError):
    """Network failure, timeout or 5xx from an upstream service.

    Retryable: the orchestrator decides whether to retry.
    """

    def __init__(
        self,
        message: str,
        service: str,
        code: ErrorCode = ErrorCode.UPSTREAM_UNAVAILABLE,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.service = service
        super().__init__(message, code, {"service": service, **(details or {})})


class RateLimitedError(UpstreamUnavailableError):
    """Upstream refused the call with 429; retried with a longer backoff."""

    def __init__(
        self,
        message: str,
        service: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, service, ErrorCode.RATE_LIMITED, details)


class EmbeddingDimensionError(AssistantError):
    """Embedding vector does not have the expected dimensionality."""

    def __init__(
        self,
        expected: int,
        actual: int,
    ) -> None:
        super().__init__(
            f"Expected {expected}-dimensional embedding, got {actual}",
            ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
            {"expected": expected, "actual": actual},
        )


class RetrievalUnavailableError(AssistantError):
    """Retrieval could not complete after the allowed retries."""

    def __init__(
        self,
        message: str,
        stage: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.stage = stage
        super().__init__(
            message,
            ErrorCode.RETRIEVAL_UNAVAILABLE,
            {"stage": stage, **(details or {})},
        )


class RequestCancelledError(AssistantError):
    """Request was aborted by its deadline or by the caller."""

    def __init__(
        self,
        message: str,
        stage: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.stage = stage
        super().__init__(
            message,
            ErrorCode.CANCELLED,
            {"stage": stage, **(details or {})},
        )
