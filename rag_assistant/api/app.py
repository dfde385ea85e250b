"""FastAPI application entry point.

Configures the application with logging, exception handling, metrics and
health checks, and wires the assistant pipeline at startup.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from rag_assistant import __version__
from rag_assistant.api.routes import router
from rag_assistant.config import Environment, Settings, get_settings
from rag_assistant.embeddings.cache import CachedEmbeddingService
from rag_assistant.embeddings.service import HTTPEmbeddingService
from rag_assistant.exceptions import AssistantError, ErrorCode
from rag_assistant.intent.classifier import (
    IntentClassifier,
    KeywordIntentClassifier,
    LLMIntentClassifier,
)
from rag_assistant.llm.client import OpenAICompatibleClient
from rag_assistant.llm.generator import LLMAnswerGenerator
from rag_assistant.llm.prompts import RAGPromptTemplate
from rag_assistant.logging_config import get_logger, setup_logging
from rag_assistant.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)
from rag_assistant.rag.fallback import FallbackResponder
from rag_assistant.rag.pipeline import RAGOrchestrator
from rag_assistant.retrieval.reranker import SignalReranker
from rag_assistant.retrieval.retriever import StoreVectorRetriever
from rag_assistant.vectorstore.service import QdrantVectorStore

logger = get_logger(__name__)


@dataclass
class AssistantServices:
    """Long-lived clients shared by all requests."""

    orchestrator: RAGOrchestrator
    embedder: HTTPEmbeddingService
    vector_store: QdrantVectorStore
    llm_client: OpenAICompatibleClient

    async def close(self) -> None:
        await self.embedder.close()
        await self.vector_store.close()
        await self.llm_client.close()


def build_services(settings: Settings) -> AssistantServices:
    """Wire the pipeline from configuration.

    Args:
        settings: Application settings.

    Returns:
        The orchestrator and the clients it owns.
    """
    embedder = HTTPEmbeddingService(settings.embedding)
    vector_store = QdrantVectorStore(settings.qdrant)
    llm_client = OpenAICompatibleClient(settings.llm)
    retrieval = settings.retrieval

    classifier: IntentClassifier = KeywordIntentClassifier()
    if retrieval.use_llm_classifier:
        classifier = LLMIntentClassifier(llm_client)

    orchestrator = RAGOrchestrator(
        classifier=classifier,
        embedder=CachedEmbeddingService(
            embedder,
            ttl_seconds=settings.embedding.cache_ttl_seconds,
            max_entries=settings.embedding.cache_max_entries,
        ),
        retriever=StoreVectorRetriever(
            vector_store,
            collection=settings.qdrant.collection_name,
            dimensions=settings.embedding.dimensions,
        ),
        reranker=SignalReranker(settings.rerank),
        generator=LLMAnswerGenerator(
            llm_client,
            RAGPromptTemplate(
                max_context_chars=retrieval.max_context_chars,
                max_history_chars=retrieval.max_history_chars,
            ),
        ),
        fallback=FallbackResponder(),
        settings=retrieval,
    )
    return AssistantServices(
        orchestrator=orchestrator,
        embedder=embedder,
        vector_store=vector_store,
        llm_client=llm_client,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the pipeline on startup and closes its clients on shutdown.
    """
    settings = get_settings()
    setup_logging(
        level=settings.log_level,
        json_output=settings.environment != Environment.DEVELOPMENT,
    )
    logger.info(
        "Starting assistant",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
        },
    )

    services = build_services(settings)
    app.state.services = services
    app.state.orchestrator = services.orchestrator

    yield

    logger.info("Shutting down assistant")
    await services.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Knowledge-Base Assistant",
        description="Retrieval-augmented answers for the marketing site",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(AssistantError, assistant_exception_handler)  # type: ignore[arg-type]

    app.include_router(router)
    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)

    return app


STATUS_CODES: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.AUTH_FAILURE: 401,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.CONFIGURATION_ERROR: 503,
    ErrorCode.UPSTREAM_UNAVAILABLE: 503,
    ErrorCode.EMBEDDING_DIMENSION_MISMATCH: 503,
    ErrorCode.RETRIEVAL_UNAVAILABLE: 503,
    ErrorCode.CANCELLED: 504,
}


def get_status_code(code: ErrorCode) -> int:
    """Map an error code to an HTTP status code, 500 when unmapped."""
    return STATUS_CODES.get(code, 500)


async def assistant_exception_handler(
    request: Request,
    exc: AssistantError,
) -> JSONResponse:
    """Handle AssistantError exceptions.

    Converts exceptions to structured JSON responses. Registered for
    ``AssistantError`` only, so other exceptions never reach it.
    """
    status_code = get_status_code(exc.code)
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=exc.to_dict(),
    )


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check.

    Ready when the pipeline is wired and the knowledge-base collection is
    reachable.
    """
    checks: dict[str, str] = {"config": "ok"}

    services: AssistantServices | None = getattr(request.app.state, "services", None)
    if services is None:
        checks["pipeline"] = "not_configured"
    else:
        checks["pipeline"] = "ok"
        collection = get_settings().qdrant.collection_name
        try:
            exists = await services.vector_store.collection_exists(collection)
        except AssistantError as e:
            logger.warning(
                "Readiness check failed for vector store",
                extra={"error_code": e.code.value},
            )
            checks["vector_store"] = "unavailable"
        else:
            checks["vector_store"] = "ok" if exists else "missing_collection"

    all_ok = all(v == "ok" for v in checks.values())

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "checks": checks,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


async def liveness_check() -> dict[str, str]:
    """Liveness check.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


app = create_app()
