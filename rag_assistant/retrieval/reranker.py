"""Second-pass scoring of retrieved documents.

The default reranker combines store similarity with three independent
signals using fixed non-negative weights:

    final = (ws * (similarity + 1) / 2 + wl * lexical + wr * recency + wt * trust)
            / (ws + wl + wr + wt)

``lexical`` is the fraction of query content words found in the passage,
``recency`` halves every ``recency_half_life_days`` and ``trust`` is a
per-source weight. Every term lies in [0, 1] and ``ws > 0``, so the result
is in [0, 1] and never decreases when similarity increases.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime

from rag_assistant.config import RerankSettings
from rag_assistant.documents.models import RankedDocument, ScoredDocument
from rag_assistant.intent.models import Query
from rag_assistant.logging_config import get_logger
from rag_assistant.text import tokenize

logger = get_logger(__name__)


class Reranker(ABC):
    """Abstract base class for rerankers.

    Implementations reorder and re-score; they never drop documents.
    """

    @abstractmethod
    def rerank(
        self,
        query: Query,
        documents: list[ScoredDocument],
    ) -> list[RankedDocument]:
        """Re-score documents against the query.

        Args:
            query: The classified query.
            documents: Retrieved candidates.

        Returns:
            The same documents, ordered by non-increasing final_score.
        """
        ...


class SignalReranker(Reranker):
    """Deterministic weighted combination of similarity and side signals."""

    def __init__(
        self,
        settings: RerankSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the reranker.

        Args:
            settings: Signal weights and trust table.
            clock: Source of "now" for the recency signal.
        """
        self._settings = settings or RerankSettings()
        self._clock = clock or (lambda: datetime.now(UTC))

    def lexical_overlap(self, query_text: str, content: str) -> float:
        """Fraction of the query's content words present in the passage."""
        query_terms = tokenize(query_text)
        if not query_terms:
            return 0.0
        return len(query_terms & tokenize(content)) / len(query_terms)

    def recency(self, created_at: datetime, now: datetime) -> float:
        """1.0 for a brand new document, halving every half-life."""
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        age_days = max(0.0, (now - created_at).total_seconds() / 86400)
        return 0.5 ** (age_days / self._settings.recency_half_life_days)

    def trust(self, source: str) -> float:
        """Trust for an exact source, else for its prefix, else the default."""
        table = self._settings.source_trust
        if source in table:
            return table[source]
        prefix = source.split("/", 1)[0]
        return table.get(prefix, self._settings.default_trust)

    def rerank(
        self,
        query: Query,
        documents: list[ScoredDocument],
    ) -> list[RankedDocument]:
        """Score every document and sort by final score."""
        s = self._settings
        total_weight = (
            s.similarity_weight + s.lexical_weight + s.recency_weight + s.trust_weight
        )
        now = self._clock()

        ranked: list[RankedDocument] = []
        for doc in documents:
            similarity = (doc.similarity + 1) / 2
            lexical = self.lexical_overlap(query.text, doc.content)
            recency = self.recency(doc.created_at, now)
            trust = self.trust(doc.source)

            score = (
                s.similarity_weight * similarity
                + s.lexical_weight * lexical
                + s.recency_weight * recency
                + s.trust_weight * trust
            ) / total_weight

            ranked.append(
                RankedDocument(
                    **doc.model_dump(),
                    final_score=max(0.0, min(1.0, score)),
                    rerank_reason=(
                        f"similarity={doc.similarity:.2f} lexical={lexical:.2f} "
                        f"recency={recency:.2f} trust={trust:.2f}"
                    ),
                )
            )

        ranked.sort(key=lambda d: (-d.final_score, -d.similarity, d.id))

        if ranked:
            logger.debug(
                f"Reranked {len(ranked)} documents",
                extra={"top_id": ranked[0].id, "top_score": ranked[0].final_score},
            )
        return ranked
