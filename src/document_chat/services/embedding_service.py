"""Embedding generation service (provider-agnostic)."""

from __future__ import annotations

from typing import List, Optional

from document_chat.config import Settings, get_settings
from document_chat.providers.base import EmbeddingProvider
from document_chat.providers.factory import create_embedding_provider
from document_chat.utils.errors import ConfigurationError
from document_chat.utils.logging import get_logger
from document_chat.utils.retry import RetryPolicy

logger = get_logger("embedding_service")


class EmbeddingService:
    """
    Generate embeddings for text using the configured provider.

    Transient provider failures (429, 500, 503, network) are retried with
    exponential backoff. There is no failover between embedding providers:
    vectors from different models are not comparable.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        provider: Optional[EmbeddingProvider] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._provider = provider  # lazy
        self._retry_policy = retry_policy or RetryPolicy.from_settings(
            self.settings.embedding.embedding_max_retries, self.settings
        )

    @property
    def dimension(self) -> int:
        return self.settings.embedding.embedding_dimension

    def _get_provider(self) -> EmbeddingProvider:
        if self._provider is None:
            self._provider = create_embedding_provider(self.settings)
        return self._provider

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Args:
            text: Text to embed

        Returns:
            Vector of length ``EMBEDDING_DIMENSION``

        Raises:
            ConfigurationError: Provider lacks credentials or returned the wrong dimension
            EmbeddingError: Provider failed after retries
        """
        provider = self._get_provider()
        vector = await self._retry_policy.run(lambda: provider.embed(text))

        if len(vector) != self.dimension:
            raise ConfigurationError(
                "Embedding dimension mismatch",
                details={
                    "provider": provider.name,
                    "expected_dimension": self.dimension,
                    "actual_dimension": len(vector),
                },
            )

        logger.debug(f"Embedding generated: provider={provider.name}, dimension={len(vector)}")
        return vector

    async def close(self) -> None:
        """Close the provider if one was built."""
        if self._provider is not None:
            await self._provider.close()
