"""Tests for application configuration."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from rag_assistant.config import (
    EmbeddingSettings,
    Environment,
    LLMSettings,
    QdrantSettings,
    RerankSettings,
    RetrievalSettings,
    Settings,
    get_settings,
)


class TestLLMSettings:
    """Tests for LLM configuration."""

    def test_default_values(self) -> None:
        """Default values point to local Ollama."""
        settings = LLMSettings()
        assert settings.base_url == "http://localhost:11434/v1"
        assert settings.model == "llama3:8b"
        assert settings.max_tokens == 512

    def test_api_key_is_secret(self) -> None:
        """API key should be masked when printed."""
        settings = LLMSettings()
        assert "not-required" not in str(settings.api_key)
        assert settings.api_key.get_secret_value() == "not-required"

    def test_env_override(self) -> None:
        """Environment variables override defaults."""
        with patch.dict(os.environ, {"LLM_MODEL": "mistral:latest"}):
            settings = LLMSettings()
            assert settings.model == "mistral:latest"


class TestEmbeddingSettings:
    """Tests for embedding configuration."""

    def test_default_values(self) -> None:
        """Defaults match the 768-dimensional model and a one week cache."""
        settings = EmbeddingSettings()
        assert settings.dimensions == 768
        assert settings.cache_ttl_seconds == 7 * 24 * 3600
        assert settings.api_key is None

    def test_env_override(self) -> None:
        """Environment variables override defaults."""
        with patch.dict(os.environ, {"EMBEDDING_BATCH_SIZE": "64"}):
            settings = EmbeddingSettings()
            assert settings.batch_size == 64

    def test_dimensions_must_be_positive(self) -> None:
        """Zero dimensions are rejected."""
        with pytest.raises(ValidationError):
            EmbeddingSettings(dimensions=0)


class TestQdrantSettings:
    """Tests for Qdrant configuration."""

    def test_default_values(self) -> None:
        """Default values for Qdrant."""
        settings = QdrantSettings()
        assert settings.url == "http://localhost:6333"
        assert settings.collection_name == "knowledge_base"

    def test_api_key_is_secret_when_set(self) -> None:
        """API key should be masked when set."""
        with patch.dict(os.environ, {"QDRANT_API_KEY": "secret-key"}):
            settings = QdrantSettings()
            assert settings.api_key is not None
            assert "secret-key" not in str(settings.api_key)
            assert settings.api_key.get_secret_value() == "secret-key"


class TestRetrievalSettings:
    """Tests for the pipeline policy settings."""

    def test_default_values(self) -> None:
        """Defaults: top 5, threshold 0.3, broadening on."""
        settings = RetrievalSettings()
        assert settings.retrieval_limit == 5
        assert settings.similarity_threshold == 0.3
        assert settings.max_context_documents == 3
        assert settings.broaden_on_empty is True
        assert settings.use_llm_classifier is False

    def test_context_documents_clamped_to_limit(self) -> None:
        """The generator never gets more documents than retrieval returns."""
        settings = RetrievalSettings(retrieval_limit=2, max_context_documents=10)
        assert settings.max_context_documents == 2

    def test_limit_bounds(self) -> None:
        """Limit must be at least one."""
        with pytest.raises(ValidationError):
            RetrievalSettings(retrieval_limit=0)

    def test_env_prefix(self) -> None:
        """Policy can be tuned from the environment."""
        with patch.dict(os.environ, {"RAG_SIMILARITY_THRESHOLD": "0.5"}):
            assert RetrievalSettings().similarity_threshold == 0.5


class TestRerankSettings:
    """Tests for reranker weights."""

    def test_similarity_weight_must_be_positive(self) -> None:
        """A zero similarity weight would break monotonicity."""
        with pytest.raises(ValidationError):
            RerankSettings(similarity_weight=0.0)

    def test_default_trust_table(self) -> None:
        """FAQ pages are trusted most."""
        settings = RerankSettings()
        assert settings.source_trust["faq"] == 1.0
        assert settings.default_trust == 0.5


class TestSettings:
    """Tests for main application settings."""

    def test_default_environment(self) -> None:
        """Default environment is development."""
        settings = Settings()
        assert settings.environment == Environment.DEVELOPMENT

    def test_nested_settings_loaded(self) -> None:
        """Nested settings are initialized."""
        settings = Settings()
        assert isinstance(settings.llm, LLMSettings)
        assert isinstance(settings.embedding, EmbeddingSettings)
        assert isinstance(settings.qdrant, QdrantSettings)
        assert isinstance(settings.retrieval, RetrievalSettings)
        assert isinstance(settings.rerank, RerankSettings)

    def test_environment_enum(self) -> None:
        """Environment can be set via string."""
        with patch.dict(os.environ, {"ENVIRONMENT": "production"}):
            settings = Settings()
            assert settings.environment == Environment.PRODUCTION


class TestGetSettings:
    """Tests for settings singleton."""

    def test_caching(self) -> None:
        """Settings are cached."""
        get_settings.cache_clear()
        settings1 = get_settings()
        settings2 = get_settings()
        assert settings1 is settings2
