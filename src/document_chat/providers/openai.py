"""OpenAI providers built on the official async SDK."""

from typing import List, Optional

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from document_chat.providers.base import EmbeddingProvider, GenerationProvider
from document_chat.utils.errors import EmbeddingError, FailureKind, GenerationError, ProviderError
from document_chat.utils.logging import get_logger

logger = get_logger("providers.openai")


def _translate(error: Exception, error_cls) -> ProviderError:
    """Map SDK exceptions onto classified provider errors."""
    if isinstance(error, APIStatusError):
        return error_cls.from_status("OpenAI", error.status_code, str(error))
    if isinstance(error, APIConnectionError):
        return error_cls(f"OpenAI request failed: {error}", provider="OpenAI", kind=FailureKind.NETWORK)
    return error_cls(f"OpenAI request failed: {error}", provider="OpenAI")


def _build_client(api_key: str, base_url: Optional[str], timeout: float) -> AsyncOpenAI:
    # Retries are owned by RetryPolicy, so the SDK's own retry loop is disabled
    return AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Embeddings via the OpenAI embeddings endpoint."""

    name = "OpenAI"

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        dimensions: Optional[int] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self.dimensions = dimensions
        self._client = client or _build_client(api_key, base_url, timeout)

    async def embed(self, text: str) -> List[float]:
        kwargs = {"model": self.model, "input": text}
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions
        try:
            resp = await self._client.embeddings.create(**kwargs)
        except (APIStatusError, APIConnectionError) as e:
            logger.error(f"OpenAI embedding error: {e}")
            raise _translate(e, EmbeddingError) from e

        if not resp.data or not resp.data[0].embedding:
            raise EmbeddingError(
                "Embedding response did not contain a vector",
                provider=self.name,
                kind=FailureKind.MALFORMED_RESPONSE,
            )
        return list(resp.data[0].embedding)

    async def close(self) -> None:
        await self._client.close()


class OpenAIGenerationProvider(GenerationProvider):
    """Chat completions with a fixed system prompt."""

    name = "OpenAI"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        system_prompt: str = "You are a helpful assistant that answers questions based on provided document context.",
        temperature: float = 0.7,
        max_tokens: int = 1500,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.model = model
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or _build_client(api_key, base_url, timeout)

    async def generate(self, prompt: str) -> str:
        logger.debug(f"Calling OpenAI model {self.model}")
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": self.system_prompt},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except (APIStatusError, APIConnectionError) as e:
            logger.error(f"OpenAI generation error: {e}")
            raise _translate(e, GenerationError) from e

        text = resp.choices[0].message.content if resp.choices else None
        if not text:
            raise GenerationError(
                "No response generated from OpenAI",
                provider=self.name,
                kind=FailureKind.MALFORMED_RESPONSE,
            )
        logger.info(f"Generated OpenAI response, length={len(text)}")
        return text

    async def close(self) -> None:
        await self._client.close()
