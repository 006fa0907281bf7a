"""Answer generation with retry and provider failover."""

from typing import Optional

from document_chat.config import Settings, get_settings
from document_chat.models.generation import GenerationResult
from document_chat.providers.base import GenerationProvider
from document_chat.providers.factory import create_generation_provider
from document_chat.utils.errors import ConfigurationError, FailureKind, ProviderError
from document_chat.utils.logging import get_logger
from document_chat.utils.retry import RetryPolicy

logger = get_logger("generation_service")

# Failures that signal the primary is temporarily saturated rather than broken
FAILOVER_KINDS = frozenset({FailureKind.OVERLOADED, FailureKind.RATE_LIMITED})


class GenerationService:
    """Service for generating answers with automatic fallback.

    The primary provider is tried first under its own retry policy. If it
    ends in an overload or rate-limit failure and a fallback provider is
    configured, the fallback is tried under a separate policy. Any other
    primary failure, or a failed fallback, re-raises the primary error.

    When neither provider is passed in, both are built from settings.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        primary: Optional[GenerationProvider] = None,
        fallback: Optional[GenerationProvider] = None,
        primary_retry: Optional[RetryPolicy] = None,
        fallback_retry: Optional[RetryPolicy] = None,
    ) -> None:
        self.settings = settings or get_settings()
        gen = self.settings.generation

        if primary is None and fallback is None:
            primary = create_generation_provider(self.settings, gen.primary_provider)
            fallback = create_generation_provider(self.settings, gen.fallback_provider)

        self.primary = primary
        self.fallback = fallback
        self.primary_retry = primary_retry or RetryPolicy.from_settings(
            gen.primary_max_retries, self.settings
        )
        self.fallback_retry = fallback_retry or RetryPolicy.from_settings(
            gen.fallback_max_retries, self.settings
        )

    @property
    def is_configured(self) -> bool:
        return self.primary is not None or self.fallback is not None

    async def generate(self, prompt: str) -> GenerationResult:
        """
        Generate an answer for a fully assembled prompt.

        Returns:
            GenerationResult with the text and the provider that produced it

        Raises:
            ConfigurationError: No provider is configured
            GenerationError: Providers failed after retries (and failover, if applicable)
        """
        if not self.is_configured:
            raise ConfigurationError(
                "No generation provider is configured. Set GEMINI_API_KEY and/or OPENAI_API_KEY."
            )

        if self.primary is None:
            # Only the secondary has credentials; it serves as the sole provider
            logger.info(f"Primary provider unavailable, using {self.fallback.name}")
            text = await self.fallback_retry.run(lambda: self.fallback.generate(prompt))
            return GenerationResult(text=text, provider_used=self.fallback.name)

        try:
            logger.info(f"Attempting generation with primary provider: {self.primary.name}")
            text = await self.primary_retry.run(lambda: self.primary.generate(prompt))
            return GenerationResult(text=text, provider_used=self.primary.name)
        except ProviderError as primary_error:
            if self.fallback is None or primary_error.kind not in FAILOVER_KINDS:
                logger.error(
                    f"Primary provider {self.primary.name} failed: {primary_error.message}",
                    extra={"extra_fields": {"kind": primary_error.kind.value}},
                )
                raise

            logger.warning(
                f"Primary provider {self.primary.name} {primary_error.kind.value}, "
                f"failing over to {self.fallback.name}"
            )
            try:
                text = await self.fallback_retry.run(lambda: self.fallback.generate(prompt))
            except ProviderError as fallback_error:
                logger.error(
                    f"Fallback provider {self.fallback.name} also failed: {fallback_error.message}"
                )
                raise primary_error from fallback_error

            logger.info(f"Fallback provider {self.fallback.name} succeeded")
            return GenerationResult(
                text=text,
                provider_used=f"{self.fallback.name} (fallback)",
                used_fallback=True,
            )

    async def close(self) -> None:
        for provider in (self.primary, self.fallback):
            if provider is not None:
                await provider.close()
