"""Build provider instances from settings."""

from typing import Optional

from document_chat.config import ProviderName, Settings
from document_chat.providers.base import EmbeddingProvider, GenerationProvider
from document_chat.providers.gemini import GeminiEmbeddingProvider, GeminiGenerationProvider
from document_chat.providers.openai import OpenAIEmbeddingProvider, OpenAIGenerationProvider
from document_chat.utils.errors import ConfigurationError


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """
    Create the configured embedding provider.

    Raises:
        ConfigurationError: if the provider has no credentials
    """
    provider = settings.embedding.embedding_provider
    if not settings.providers.has_credentials(provider):
        key_name = "GEMINI_API_KEY" if provider == ProviderName.GEMINI else "OPENAI_API_KEY"
        raise ConfigurationError(
            f"Embeddings are not configured: {key_name} is required when EMBEDDING_PROVIDER={provider.value}",
            details={"provider": provider.value},
        )

    if provider == ProviderName.OPENAI:
        return OpenAIEmbeddingProvider(
            api_key=settings.providers.openai_api_key,
            model=settings.embedding.resolved_model_name,
            dimensions=settings.embedding.embedding_dimension,
            base_url=settings.providers.openai_base_url,
            timeout=settings.embedding.embedding_timeout,
        )
    return GeminiEmbeddingProvider(
        api_key=settings.providers.gemini_api_key,
        model=settings.embedding.resolved_model_name,
        base_url=settings.providers.gemini_base_url,
        timeout=settings.embedding.embedding_timeout,
    )


def create_generation_provider(
    settings: Settings, provider: Optional[ProviderName]
) -> Optional[GenerationProvider]:
    """Create a generation provider, or None when it is unset or lacks credentials."""
    if provider is None or not settings.providers.has_credentials(provider):
        return None

    gen = settings.generation
    if provider == ProviderName.OPENAI:
        return OpenAIGenerationProvider(
            api_key=settings.providers.openai_api_key,
            model=gen.openai_model,
            system_prompt=gen.system_prompt,
            temperature=gen.temperature,
            max_tokens=gen.max_tokens,
            base_url=settings.providers.openai_base_url,
            timeout=gen.timeout,
        )
    # Gemini runs with its service defaults for sampling
    return GeminiGenerationProvider(
        api_key=settings.providers.gemini_api_key,
        model=gen.gemini_model,
        base_url=settings.providers.gemini_base_url,
        timeout=gen.timeout,
    )
