"""RAG pipeline orchestrator."""

import asyncio
import time

from rag_assistant.config import RetrievalSettings
from rag_assistant.documents.models import (
    MetadataFilters,
    RankedDocument,
    ScoredDocument,
)
from rag_assistant.embeddings.models import EmbeddingResult
from rag_assistant.embeddings.service import EmbeddingService
from rag_assistant.exceptions import (
    AssistantError,
    InvalidInputError,
    RateLimitedError,
    RequestCancelledError,
    RetrievalUnavailableError,
    UpstreamUnavailableError,
)
from rag_assistant.intent.classifier import IntentClassifier
from rag_assistant.intent.models import Query
from rag_assistant.llm.generator import AnswerGenerator
from rag_assistant.logging_config import get_logger
from rag_assistant.observability.metrics import track_query, track_stage_failure
from rag_assistant.rag.fallback import (
    NO_CONTEXT,
    RETRIEVAL_UNAVAILABLE,
    FallbackResponder,
)
from rag_assistant.rag.models import (
    AnswerOutcome,
    AssistantAnswer,
    CallerContext,
    PipelineStage,
)
from rag_assistant.retrieval.reranker import Reranker
from rag_assistant.retrieval.retriever import VectorRetriever

logger = get_logger(__name__)


class _Progress:
    """Where a single request is in the pipeline.

    ``last_successful`` survives a move to ``FAILED`` for diagnostics.
    ``cache_hit`` records whether the query embedding was served from cache.
    """

    def __init__(self) -> None:
        self.stage = PipelineStage.RECEIVED
        self.last_successful = PipelineStage.RECEIVED
        self.cache_hit = False

    def advance(self, stage: PipelineStage) -> None:
        self.stage = stage
        self.last_successful = stage

    def fail(self) -> None:
        self.stage = PipelineStage.FAILED


class RAGOrchestrator:
    """Runs one question through classify, embed, retrieve, rerank, generate.

    The orchestrator is the only layer that turns errors into readable
    answers:

    - embedding failures are retried once, then answered with the
      retrieval-unavailable fallback
    - store failures are not retried and get the same fallback
    - empty retrieval is broadened once (when enabled), then answered with
      the no-context fallback
    - generation failures are not retried and yield a degraded answer that
      lists the context sources

    Only ``InvalidInputError`` and ``RequestCancelledError`` reach the
    caller. Each request keeps its own state, so one orchestrator serves
    concurrent requests.
    """

    def __init__(
        self,
        classifier: IntentClassifier,
        embedder: EmbeddingService,
        retriever: VectorRetriever,
        reranker: Reranker,
        generator: AnswerGenerator,
        fallback: FallbackResponder | None = None,
        settings: RetrievalSettings | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            classifier: Intent classifier.
            embedder: Query embedder.
            retriever: Similarity retriever.
            reranker: Second-pass scorer.
            generator: Answer generator.
            fallback: Responder for ungrounded requests.
            settings: Limits, thresholds, timeouts and retry policy.
        """
        self._classifier = classifier
        self._embedder = embedder
        self._retriever = retriever
        self._reranker = reranker
        self._generator = generator
        self._fallback = fallback or FallbackResponder()
        self._settings = settings or RetrievalSettings()

    @property
    def settings(self) -> RetrievalSettings:
        return self._settings

    def validate(self, text: str) -> str:
        """Trim the question and reject empty or oversized input.

        Raises:
            InvalidInputError: If the text is empty or too long.
        """
        cleaned = text.strip() if text else ""
        if not cleaned:
            raise InvalidInputError("Question must not be empty")
        if len(cleaned) > self._settings.max_query_length:
            raise InvalidInputError(
                "Question is too long",
                details={
                    "length": len(cleaned),
                    "max_length": self._settings.max_query_length,
                },
            )
        return cleaned

    async def answer(
        self,
        text: str,
        caller: CallerContext | None = None,
    ) -> AssistantAnswer:
        """Answer a visitor question.

        Args:
            text: Raw question text.
            caller: Caller context, anonymous when omitted.

        Returns:
            AssistantAnswer with readable text and the documents used.

        Raises:
            InvalidInputError: If the question is empty or too long.
            RequestCancelledError: If the request deadline passes.
        """
        started = time.perf_counter()
        caller = caller or CallerContext()

        try:
            cleaned = self.validate(text)
        except InvalidInputError:
            track_query("invalid", time.perf_counter() - started)
            raise

        progress = _Progress()
        try:
            async with asyncio.timeout(self._settings.request_timeout):
                result = await self._run(cleaned, caller, progress)
        except InvalidInputError as e:
            progress.fail()
            self._log_failure(progress, e.code.value, e.message)
            track_query("invalid", time.perf_counter() - started)
            raise
        except TimeoutError as e:
            progress.fail()
            self._log_failure(progress, "cancelled", "request deadline exceeded")
            track_query("cancelled", time.perf_counter() - started)
            raise RequestCancelledError(
                "Request timed out",
                stage=progress.last_successful.value,
                details={"timeout": self._settings.request_timeout},
            ) from e
        except asyncio.CancelledError:
            progress.fail()
            self._log_failure(progress, "cancelled", "cancelled by caller")
            track_query("cancelled", time.perf_counter() - started)
            raise

        duration = time.perf_counter() - started
        track_query(result.outcome.value, duration)
        logger.info(
            "Question answered",
            extra={
                "intent": result.intent.value,
                "outcome": result.outcome.value,
                "documents": len(result.used_documents),
                "should_escalate": result.should_escalate,
                "tone": result.tone.value,
                "cache_hit": result.cache_hit,
                "duration": round(duration, 3),
            },
        )
        return result

    async def _run(
        self,
        text: str,
        caller: CallerContext,
        progress: _Progress,
    ) -> AssistantAnswer:
        query = await self._classifier.classify(text)
        progress.advance(PipelineStage.CLASSIFIED)

        try:
            embedded = await self._embed(query.text)
            progress.cache_hit = embedded.cached
            progress.advance(PipelineStage.EMBEDDED)
            documents = await self._retrieve(query, embedded.embedding, caller)
        except RetrievalUnavailableError as e:
            self._log_failure(progress, e.code.value, e.message)
            return self._fallback_answer(query, caller, progress, RETRIEVAL_UNAVAILABLE)
        progress.advance(PipelineStage.RETRIEVED)

        if not documents:
            return self._fallback_answer(query, caller, progress, NO_CONTEXT)

        ranked = self._reranker.rerank(query, documents)
        progress.advance(PipelineStage.RERANKED)
        context = ranked[: self._settings.max_context_documents]

        return await self._generate(query, context, caller, progress)

    async def _embed(self, text: str) -> EmbeddingResult:
        """Embed the query, retrying once on an unavailable upstream.

        Raises:
            InvalidInputError: If the embedding service rejects the text.
            RetrievalUnavailableError: If no embedding could be obtained.
        """
        try:
            return await self._embed_once(text)
        except UpstreamUnavailableError as e:
            backoff = (
                self._settings.rate_limit_backoff
                if isinstance(e, RateLimitedError)
                else self._settings.retry_backoff
            )
            logger.warning(
                f"Embedding failed, retrying in {backoff}s",
                extra={"error_code": e.code.value},
            )
            await asyncio.sleep(backoff)

        try:
            return await self._embed_once(text)
        except UpstreamUnavailableError as e:
            raise RetrievalUnavailableError(
                "Embedding service unavailable after retry",
                stage=PipelineStage.EMBEDDED.value,
                details={"error_code": e.code.value, "attempts": 2},
            ) from e

    async def _embed_once(self, text: str) -> EmbeddingResult:
        try:
            result = await self._embedder.embed(text)
        except (InvalidInputError, UpstreamUnavailableError):
            raise
        except AssistantError as e:
            raise RetrievalUnavailableError(
                f"Embedding failed: {e.message}",
                stage=PipelineStage.EMBEDDED.value,
                details={"error_code": e.code.value},
            ) from e
        return result

    def _filters_for(self, query: Query, caller: CallerContext) -> MetadataFilters:
        """Filters for the first search.

        Low-confidence classifications keep only visibility. Authorized
        callers see private documents too.
        """
        filters = query.metadata_filters
        if query.confidence < self._settings.low_confidence_floor:
            filters = filters.broadened()
        if caller.can_view_private:
            filters = filters.model_copy(update={"is_public": None})
        else:
            filters = filters.model_copy(update={"is_public": True})
        return filters

    async def _search(
        self,
        embedding: list[float],
        threshold: float,
        filters: MetadataFilters,
    ) -> list[ScoredDocument]:
        try:
            return await self._retriever.search(
                embedding,
                limit=self._settings.retrieval_limit,
                threshold=threshold,
                filters=filters,
            )
        except InvalidInputError:
            raise
        except AssistantError as e:
            raise RetrievalUnavailableError(
                f"Document store unavailable: {e.message}",
                stage=PipelineStage.RETRIEVED.value,
                details={"error_code": e.code.value},
            ) from e

    async def _retrieve(
        self,
        query: Query,
        embedding: list[float],
        caller: CallerContext,
    ) -> list[ScoredDocument]:
        """Search, then broaden once when nothing clears the threshold."""
        threshold = self._settings.similarity_threshold
        filters = self._filters_for(query, caller)
        documents = await self._search(embedding, threshold, filters)

        if documents or not self._settings.broaden_on_empty:
            return documents

        broad_filters = filters.broadened()
        broad_threshold = min(threshold, self._settings.broadened_similarity_threshold)
        if broad_filters == filters and broad_threshold == threshold:
            return documents

        logger.info(
            "No documents found, broadening search",
            extra={
                "intent": query.intent.value,
                "filters": broad_filters.as_dict(),
                "threshold": broad_threshold,
            },
        )
        return await self._search(embedding, broad_threshold, broad_filters)

    async def _generate(
        self,
        query: Query,
        context: list[RankedDocument],
        caller: CallerContext,
        progress: _Progress,
    ) -> AssistantAnswer:
        try:
            result = await self._generator.generate(query, context, list(caller.history))
        except AssistantError as e:
            self._log_failure(progress, e.code.value, e.message)
            return self._degraded_answer(query, context, caller, progress)

        if result.is_empty:
            self._log_failure(progress, "empty_generation", "model returned no text")
            return self._degraded_answer(query, context, caller, progress)

        progress.advance(PipelineStage.GENERATED)
        progress.advance(PipelineStage.COMPLETED)
        return AssistantAnswer(
            text=result.content.strip(),
            used_documents=context,
            intent=query.intent,
            outcome=AnswerOutcome.ANSWERED,
            model=result.model,
            tokens_used=result.total_tokens,
            last_stage=progress.last_successful,
            tone=self._fallback.tone(caller),
            cache_hit=progress.cache_hit,
        )

    def _fallback_answer(
        self,
        query: Query,
        caller: CallerContext,
        progress: _Progress,
        reason: str,
    ) -> AssistantAnswer:
        response = self._fallback.respond(query, caller, reason)
        return AssistantAnswer(
            text=response.message,
            used_documents=[],
            intent=query.intent,
            outcome=AnswerOutcome.FALLBACK,
            last_stage=progress.last_successful,
            actions=list(response.actions),
            should_escalate=response.should_escalate,
            escalation_reason=response.escalation_reason,
            tone=response.tone,
            cache_hit=progress.cache_hit,
        )

    def _degraded_answer(
        self,
        query: Query,
        context: list[RankedDocument],
        caller: CallerContext,
        progress: _Progress,
    ) -> AssistantAnswer:
        return AssistantAnswer(
            text=self._fallback.degraded(context),
            used_documents=context,
            intent=query.intent,
            outcome=AnswerOutcome.DEGRADED,
            last_stage=progress.last_successful,
            actions=["contact"],
            tone=self._fallback.tone(caller),
            cache_hit=progress.cache_hit,
        )

    def _log_failure(self, progress: _Progress, error_code: str, message: str) -> None:
        """Record the stage that failed and the last one that succeeded."""
        failed_stage = _next_stage(progress.last_successful)
        track_stage_failure(failed_stage.value, error_code)
        logger.warning(
            f"Pipeline stage failed: {message}",
            extra={
                "stage": failed_stage.value,
                "last_successful_stage": progress.last_successful.value,
                "error_code": error_code,
            },
        )


_ORDER = [
    PipelineStage.RECEIVED,
    PipelineStage.CLASSIFIED,
    PipelineStage.EMBEDDED,
    PipelineStage.RETRIEVED,
    PipelineStage.RERANKED,
    PipelineStage.GENERATED,
    PipelineStage.COMPLETED,
]


def _next_stage(stage: PipelineStage) -> PipelineStage:
    """The stage that was running when ``stage`` was the last completed."""
    index = _ORDER.index(stage)
    return _ORDER[min(index + 1, len(_ORDER) - 1)]

