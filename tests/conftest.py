"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime

import pytest
from httpx import ASGITransport, AsyncClient

from rag_assistant.api.app import app
from rag_assistant.documents.models import RankedDocument, ScoredDocument

NOW = datetime(2025, 6, 1, tzinfo=UTC)


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return NOW


@pytest.fixture
def scored_document() -> Callable[..., ScoredDocument]:
    """Factory for retrieved documents with stable defaults."""

    def make(
        doc_id: str,
        similarity: float,
        content: str = "Información de la web",
        source: str = "faq/general",
        category: str = "general",
        created_at: datetime = NOW,
        is_public: bool = True,
    ) -> ScoredDocument:
        return ScoredDocument(
            id=doc_id,
            content=content,
            source=source,
            category=category,
            created_at=created_at,
            is_public=is_public,
            similarity=similarity,
        )

    return make


@pytest.fixture
def ranked_document(
    scored_document: Callable[..., ScoredDocument],
) -> Callable[..., RankedDocument]:
    """Factory for reranked documents."""

    def make(
        doc_id: str,
        final_score: float = 0.8,
        content: str = "Información de la web",
        source: str = "faq/general",
    ) -> RankedDocument:
        base = scored_document(doc_id, final_score, content=content, source=source)
        return RankedDocument(
            **base.model_dump(),
            final_score=final_score,
            rerank_reason="test",
        )

    return make
