"""Configuration management using pydantic-settings."""

import logging
import warnings
from enum import Enum
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class ProviderName(str, Enum):
    """Closed set of embedding/generation providers."""

    GEMINI = "gemini"
    OPENAI = "openai"


class ProviderSettings(BaseSettings):
    """Credentials and endpoints for the external model providers."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    gemini_api_key: Optional[str] = Field(
        default=None, description="Google Gemini API key. Env var: GEMINI_API_KEY"
    )
    # Alternate env var name used by older deployments
    google_gemini_api_key: Optional[str] = Field(
        default=None,
        description="Alternate Gemini API key env var name. Env var: GOOGLE_GEMINI_API_KEY",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST base URL. Env var: GEMINI_BASE_URL",
    )
    openai_api_key: Optional[str] = Field(
        default=None, description="OpenAI API key. Env var: OPENAI_API_KEY"
    )
    openai_base_url: Optional[str] = Field(
        default=None, description="Optional OpenAI base URL (advanced). Env var: OPENAI_BASE_URL"
    )

    @model_validator(mode="after")
    def normalize_gemini_env_vars(self) -> "ProviderSettings":
        """Accept GOOGLE_GEMINI_API_KEY as an alias for GEMINI_API_KEY."""
        if not self.gemini_api_key and self.google_gemini_api_key:
            self.gemini_api_key = self.google_gemini_api_key
        return self

    def has_credentials(self, provider: Optional[ProviderName]) -> bool:
        """Check whether credentials for a provider are present."""
        if provider == ProviderName.GEMINI:
            return bool(self.gemini_api_key)
        if provider == ProviderName.OPENAI:
            return bool(self.openai_api_key)
        return False


class EmbeddingSettings(BaseSettings):
    """Embedding configuration (provider-agnostic)."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    embedding_provider: ProviderName = Field(
        default=ProviderName.GEMINI,
        description="Embedding provider: gemini or openai. Env var: EMBEDDING_PROVIDER",
    )
    embedding_model: Optional[str] = Field(
        default=None,
        description=(
            "Embedding model name. Defaults to embedding-001 (gemini) or "
            "text-embedding-3-small (openai). Env var: EMBEDDING_MODEL"
        ),
    )
    embedding_dimension: int = Field(
        default=768,
        description="Embedding dimension expected by the vector store. Env var: EMBEDDING_DIMENSION",
    )
    embedding_timeout: float = Field(
        default=30.0, description="Embedding request timeout in seconds. Env var: EMBEDDING_TIMEOUT"
    )
    embedding_max_retries: int = Field(
        default=3, description="Retries for embedding requests. Env var: EMBEDDING_MAX_RETRIES"
    )

    @property
    def resolved_model_name(self) -> str:
        """Get the effective embedding model name."""
        if self.embedding_model:
            return self.embedding_model
        if self.embedding_provider == ProviderName.OPENAI:
            return "text-embedding-3-small"
        return "embedding-001"


class GenerationSettings(BaseSettings):
    """LLM generation configuration (primary + optional fallback provider)."""

    model_config = SettingsConfigDict(env_prefix="GENERATION_", case_sensitive=False)

    primary_provider: Optional[ProviderName] = Field(
        default=ProviderName.GEMINI,
        description="Primary generation provider. Env var: GENERATION_PRIMARY_PROVIDER",
    )
    fallback_provider: Optional[ProviderName] = Field(
        default=ProviderName.OPENAI,
        description="Fallback provider used on overload/rate limit. Env var: GENERATION_FALLBACK_PROVIDER",
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash", description="Gemini model. Env var: GENERATION_GEMINI_MODEL"
    )
    openai_model: str = Field(
        default="gpt-4o-mini", description="OpenAI model. Env var: GENERATION_OPENAI_MODEL"
    )
    temperature: float = Field(default=0.7, description="Env var: GENERATION_TEMPERATURE")
    max_tokens: int = Field(default=1500, description="Env var: GENERATION_MAX_TOKENS")
    timeout: float = Field(default=60.0, description="Request timeout in seconds. Env var: GENERATION_TIMEOUT")
    primary_max_retries: int = Field(
        default=3, description="Retries for the primary provider. Env var: GENERATION_PRIMARY_MAX_RETRIES"
    )
    fallback_max_retries: int = Field(
        default=2, description="Retries for the fallback provider. Env var: GENERATION_FALLBACK_MAX_RETRIES"
    )
    system_prompt: str = Field(
        default="You are a helpful assistant that answers questions based on provided document context.",
        description="System prompt for chat-style providers. Env var: GENERATION_SYSTEM_PROMPT",
    )

    @field_validator("primary_provider", "fallback_provider", mode="before")
    @classmethod
    def empty_provider_is_none(cls, v):
        """Treat an empty env var as 'no provider'."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class RetrySettings(BaseSettings):
    """Backoff configuration shared by provider calls."""

    model_config = SettingsConfigDict(env_prefix="RETRY_", case_sensitive=False)

    base_delay: float = Field(
        default=1.0, description="Base delay in seconds for exponential backoff. Env var: RETRY_BASE_DELAY"
    )
    max_delay: float = Field(
        default=30.0, description="Upper bound for the exponential part of a delay. Env var: RETRY_MAX_DELAY"
    )


class ChunkingSettings(BaseSettings):
    """Text chunking configuration."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    chunk_size: int = Field(default=1000, description="Max chunk size in characters. Env var: CHUNK_SIZE")
    chunk_overlap: int = Field(
        default=200, description="Overlap between chunks in characters. Env var: CHUNK_OVERLAP"
    )
    min_chunk_length: int = Field(
        default=50, description="Chunks shorter than this are discarded. Env var: MIN_CHUNK_LENGTH"
    )

    @model_validator(mode="after")
    def validate_overlap(self) -> "ChunkingSettings":
        """Overlap must be smaller than the chunk size."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("CHUNK_OVERLAP must be less than CHUNK_SIZE")
        return self


class IngestionSettings(BaseSettings):
    """Ingestion pipeline configuration."""

    model_config = SettingsConfigDict(env_prefix="INGESTION_", case_sensitive=False)

    batch_size: int = Field(
        default=5, ge=1, description="Chunks embedded concurrently per batch. Env var: INGESTION_BATCH_SIZE"
    )
    batch_delay: float = Field(
        default=0.5, ge=0, description="Pause between batches in seconds. Env var: INGESTION_BATCH_DELAY"
    )
    min_text_length: int = Field(
        default=10,
        description="Extracted text shorter than this marks the document unreadable. Env var: INGESTION_MIN_TEXT_LENGTH",
    )
    max_upload_size_mb: int = Field(
        default=10, description="Maximum accepted file size. Env var: INGESTION_MAX_UPLOAD_SIZE_MB"
    )

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


class RetrievalSettings(BaseSettings):
    """Similarity retrieval configuration."""

    model_config = SettingsConfigDict(env_prefix="RETRIEVAL_", case_sensitive=False)

    similarity_threshold: float = Field(
        default=0.5, description="Minimum cosine similarity. Env var: RETRIEVAL_SIMILARITY_THRESHOLD"
    )
    limit: int = Field(default=5, ge=1, description="Max chunks per query. Env var: RETRIEVAL_LIMIT")


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_", case_sensitive=False)

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL, or ':memory:' for an embedded store",
    )
    api_key: Optional[str] = Field(
        default=None, description="Qdrant API key (for Qdrant Cloud). Env var: QDRANT_api_key"
    )
    timeout: int = Field(default=30, description="Request timeout in seconds")
    collection_name: str = Field(
        default="document_chunks", description="Collection holding chunk vectors. Env var: QDRANT_collection_name"
    )

    @property
    def is_in_memory(self) -> bool:
        return self.url == ":memory:"


class DatabaseSettings(BaseSettings):
    """Relational database configuration."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", case_sensitive=False)

    url: str = Field(
        default="sqlite+aiosqlite:///./document_chat.db",
        description="SQLAlchemy database URL. Env var: DATABASE_URL",
    )
    echo: bool = Field(default=False, description="Log SQL statements. Env var: DATABASE_ECHO")


class StorageBackend(str, Enum):
    """Blob storage backend."""

    LOCAL = "local"
    AZURE = "azure"


class StorageSettings(BaseSettings):
    """Document blob storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_", case_sensitive=False)

    backend: StorageBackend = Field(
        default=StorageBackend.LOCAL, description="local or azure. Env var: STORAGE_BACKEND"
    )
    local_root: str = Field(
        default="./storage/documents", description="Root directory for the local backend"
    )
    container: str = Field(default="documents", description="Blob container holding uploaded documents")
    account_name: Optional[str] = Field(default=None, description="Azure Storage Account name")
    connection_string: Optional[str] = Field(
        default=None, description="Azure Storage connection string (use Managed Identity instead)"
    )
    use_managed_identity: bool = Field(
        default=True, description="Use Managed Identity for authentication (recommended)"
    )

    @property
    def is_configured(self) -> bool:
        """Check if storage is configured."""
        if self.backend == StorageBackend.LOCAL:
            return bool(self.local_root)
        return bool(self.connection_string) or (
            bool(self.account_name) and self.use_managed_identity
        )


class ServerSettings(BaseSettings):
    """Server configuration."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    host: str = Field(default="0.0.0.0", description="Server host. Env var: HOST")
    port: int = Field(default=8004, description="HTTP server port. Env var: PORT")
    reload: bool = Field(default=False, description="Enable auto-reload (development only). Env var: RELOAD")


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="document-chat", description="Application name. Env var: APP_NAME")
    environment: Environment = Field(
        default=Environment.DEVELOPMENT, description="Application environment. Env var: ENVIRONMENT"
    )
    debug: bool = Field(default=False, description="Enable debug mode. Env var: DEBUG")
    log_level: str = Field(default="INFO", description="Logging level. Env var: LOG_LEVEL")
    cors_origins: List[str] = Field(
        default=["*"], description="Allowed CORS origins. Env var: CORS_ORIGINS (JSON list)"
    )

    # Sub-settings
    providers: Optional[ProviderSettings] = None
    embedding: Optional[EmbeddingSettings] = None
    generation: Optional[GenerationSettings] = None
    retry: Optional[RetrySettings] = None
    chunking: Optional[ChunkingSettings] = None
    ingestion: Optional[IngestionSettings] = None
    retrieval: Optional[RetrievalSettings] = None
    qdrant: Optional[QdrantSettings] = None
    database: Optional[DatabaseSettings] = None
    storage: Optional[StorageSettings] = None
    server: Optional[ServerSettings] = None

    @model_validator(mode="after")
    def initialize_nested_settings(self) -> "Settings":
        """Initialize nested settings to ensure they read from environment."""
        if self.providers is None:
            self.providers = ProviderSettings()
        if self.embedding is None:
            self.embedding = EmbeddingSettings()
        if self.generation is None:
            self.generation = GenerationSettings()
        if self.retry is None:
            self.retry = RetrySettings()
        if self.chunking is None:
            self.chunking = ChunkingSettings()
        if self.ingestion is None:
            self.ingestion = IngestionSettings()
        if self.retrieval is None:
            self.retrieval = RetrievalSettings()
        if self.qdrant is None:
            self.qdrant = QdrantSettings()
        if self.database is None:
            self.database = DatabaseSettings()
        if self.storage is None:
            self.storage = StorageSettings()
        if self.server is None:
            self.server = ServerSettings()
        return self

    @field_validator("environment", mode="before")
    @classmethod
    def parse_environment(cls, v):
        """Parse environment from string."""
        if isinstance(v, str):
            try:
                return Environment(v.lower())
            except ValueError:
                return Environment.DEVELOPMENT
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_embedding_configured(self) -> bool:
        """Check if the selected embedding provider has credentials."""
        return self.providers.has_credentials(self.embedding.embedding_provider)

    @property
    def is_generation_configured(self) -> bool:
        """At least one configured generation provider has credentials."""
        return any(
            self.providers.has_credentials(p)
            for p in (self.generation.primary_provider, self.generation.fallback_provider)
        )

    def validate_configuration(self) -> None:
        """Warn about missing provider configuration."""
        if not self.is_embedding_configured:
            warnings.warn(
                "Embeddings are not configured. Set EMBEDDING_PROVIDER=gemini and GEMINI_API_KEY, "
                "or EMBEDDING_PROVIDER=openai and OPENAI_API_KEY.",
                UserWarning,
            )
        if not self.is_generation_configured:
            warnings.warn(
                "No generation provider is configured. Set GEMINI_API_KEY and/or OPENAI_API_KEY.",
                UserWarning,
            )

    def validate_production_settings(self) -> None:
        """Validate that production settings are complete."""
        if self.is_production:
            if self.debug:
                raise ValueError("DEBUG must be False in production")
            if not self.is_embedding_configured:
                raise ValueError("Embeddings must be configured in production")
            if not self.is_generation_configured:
                raise ValueError("At least one generation provider must be configured in production")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.validate_configuration()
        try:
            _settings.validate_production_settings()
        except ValueError as e:
            logging.error(f"Configuration validation failed: {e}")
            if _settings.is_production:
                raise  # Fail fast in production
    return _settings
