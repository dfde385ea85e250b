"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LLMSettings(BaseSettings):
    """Generation model configuration.

    Any OpenAI-compatible chat completions endpoint (Ollama, vLLM, OpenAI).
    """

    model_config = SettingsConfigDict(env_prefix="LLM_")

    base_url: str = Field(
        default="http://localhost:11434/v1",
        description="LLM API base URL (Ollama default)",
    )
    model: str = Field(
        default="llama3:8b",
        description="Model name to use for generation",
    )
    api_key: SecretStr = Field(
        default=SecretStr("not-required"),
        description="API key (not required for Ollama)",
    )
    timeout: float = Field(
        default=60.0,
        description="Request timeout in seconds",
    )
    max_tokens: int = Field(
        default=512,
        description="Maximum tokens in response",
    )
    temperature: float = Field(
        default=0.3,
        description="Sampling temperature (lower = more deterministic)",
    )


class EmbeddingSettings(BaseSettings):
    """Embedding service configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    base_url: str = Field(
        default="http://localhost:8080",
        description="Embedding service base URL",
    )
    model: str = Field(
        default="text-embedding-004",
        description="Embedding model name",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Bearer credential for the embedding service",
    )
    timeout: float = Field(
        default=15.0,
        description="Request timeout in seconds",
    )
    batch_size: int = Field(
        default=32,
        description="Batch size for embedding requests",
    )
    dimensions: int = Field(
        default=768,
        gt=0,
        description="Expected embedding dimensionality",
    )
    cache_ttl_seconds: float = Field(
        default=7 * 24 * 3600.0,
        gt=0,
        description="Time to live for cached query embeddings",
    )
    cache_max_entries: int = Field(
        default=1000,
        gt=0,
        description="Maximum number of cached embeddings",
    )


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="knowledge_base",
        description="Knowledge base collection name",
    )


class RetrievalSettings(BaseSettings):
    """Per-request pipeline policy passed to the orchestrator."""

    model_config = SettingsConfigDict(env_prefix="RAG_")

    retrieval_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum documents returned by similarity search",
    )
    similarity_threshold: float = Field(
        default=0.3,
        ge=-1.0,
        le=1.0,
        description="Minimum similarity for a document to be retrieved",
    )
    max_context_documents: int = Field(
        default=3,
        ge=1,
        description="Documents handed to the generator (clamped to retrieval_limit)",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Overall per-request deadline in seconds",
    )
    low_confidence_floor: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Below this classifier confidence, category/source filters are dropped",
    )
    broaden_on_empty: bool = Field(
        default=True,
        description="Retry retrieval once without category/source filters when empty",
    )
    broadened_similarity_threshold: float = Field(
        default=0.3,
        ge=-1.0,
        le=1.0,
        description="Threshold ceiling used by the broadened retrieval",
    )
    retry_backoff: float = Field(
        default=0.5,
        ge=0.0,
        description="Delay before retrying an unavailable embedding service",
    )
    rate_limit_backoff: float = Field(
        default=2.0,
        ge=0.0,
        description="Delay before retrying a rate-limited embedding service",
    )
    max_query_length: int = Field(
        default=2000,
        gt=0,
        description="Queries longer than this are rejected",
    )
    max_context_chars: int = Field(
        default=6000,
        gt=0,
        description="Character budget for context passed to the generator",
    )
    max_history_chars: int = Field(
        default=2000,
        ge=0,
        description="Character budget for earlier conversation turns",
    )
    use_llm_classifier: bool = Field(
        default=False,
        description="Classify intent with the generation model instead of keywords",
    )

    @model_validator(mode="after")
    def _clamp_context_documents(self) -> "RetrievalSettings":
        """Never hand more documents to the generator than retrieval returns."""
        if self.max_context_documents > self.retrieval_limit:
            self.max_context_documents = self.retrieval_limit
        return self


class RerankSettings(BaseSettings):
    """Weights for the signal-combining reranker."""

    model_config = SettingsConfigDict(env_prefix="RERANK_")

    similarity_weight: float = Field(default=0.7, gt=0.0)
    lexical_weight: float = Field(default=0.2, ge=0.0)
    recency_weight: float = Field(default=0.05, ge=0.0)
    trust_weight: float = Field(default=0.05, ge=0.0)
    recency_half_life_days: float = Field(
        default=180.0,
        gt=0,
        description="Age at which the recency signal halves",
    )
    source_trust: dict[str, float] = Field(
        default_factory=lambda: {"faq": 1.0, "menu": 0.9, "web": 0.6},
        description="Trust weight in [0, 1] per source prefix",
    )
    default_trust: float = Field(default=0.5, ge=0.0, le=1.0)


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    rerank: RerankSettings = Field(default_factory=RerankSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
