"""Google Gemini REST providers."""

from typing import Any, Dict, List, Optional

import httpx

from document_chat.providers.base import EmbeddingProvider, GenerationProvider
from document_chat.utils.errors import EmbeddingError, FailureKind, GenerationError
from document_chat.utils.logging import get_logger

logger = get_logger("providers.gemini")


class _GeminiClient:
    """Shared request plumbing for the Gemini REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def post(self, path: str, payload: Dict[str, Any], error_cls) -> Dict[str, Any]:
        url = f"{self.base_url}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, params={"key": self._api_key}, json=payload)
        except httpx.RequestError as e:
            logger.error(f"Gemini request error: {type(e).__name__}: {e}")
            raise error_cls(
                f"Gemini request failed: {e}", provider="Gemini", kind=FailureKind.NETWORK
            ) from e

        if response.status_code >= 400:
            logger.error(f"Gemini API error: status={response.status_code}, body={response.text[:500]}")
            raise error_cls.from_status("Gemini", response.status_code, response.text)

        try:
            return response.json()
        except ValueError as e:
            raise error_cls(
                "Gemini returned a non-JSON response",
                provider="Gemini",
                kind=FailureKind.MALFORMED_RESPONSE,
            ) from e


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Embeddings via ``models/{model}:embedContent``."""

    name = "Gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "embedding-001",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.model = model
        self._client = _GeminiClient(api_key, base_url, timeout, transport)

    async def embed(self, text: str) -> List[float]:
        data = await self._client.post(
            f"models/{self.model}:embedContent",
            {"model": f"models/{self.model}", "content": {"parts": [{"text": text}]}},
            EmbeddingError,
        )
        values = (data.get("embedding") or {}).get("values")
        if not values:
            logger.error(f"No embedding returned: keys={list(data.keys())}")
            raise EmbeddingError(
                "Embedding response did not contain a vector",
                provider=self.name,
                kind=FailureKind.MALFORMED_RESPONSE,
            )
        return [float(v) for v in values]


class GeminiGenerationProvider(GenerationProvider):
    """Text generation via ``models/{model}:generateContent``."""

    name = "Gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = _GeminiClient(api_key, base_url, timeout, transport)

    def _payload(self, prompt: str) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
        generation_config: Dict[str, Any] = {}
        if self.temperature is not None:
            generation_config["temperature"] = self.temperature
        if self.max_tokens is not None:
            generation_config["maxOutputTokens"] = self.max_tokens
        if generation_config:
            payload["generationConfig"] = generation_config
        return payload

    async def generate(self, prompt: str) -> str:
        logger.debug(f"Calling Gemini model {self.model}")
        data = await self._client.post(
            f"models/{self.model}:generateContent", self._payload(prompt), GenerationError
        )
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not text:
            raise GenerationError(
                "No response generated from Gemini",
                provider=self.name,
                kind=FailureKind.MALFORMED_RESPONSE,
            )
        logger.info(f"Generated Gemini response, length={len(text)}")
        return text
