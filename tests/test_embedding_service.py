"""Tests for embedding generation."""

import json

import httpx
import pytest

from document_chat.config import EmbeddingSettings, ProviderName, ProviderSettings
from document_chat.dependencies import get_embedding_service
from document_chat.providers.factory import create_embedding_provider
from document_chat.providers.gemini import GeminiEmbeddingProvider
from document_chat.providers.openai import OpenAIEmbeddingProvider
from document_chat.services.embedding_service import EmbeddingService
from document_chat.utils.errors import ConfigurationError, EmbeddingError, FailureKind
from document_chat.utils.retry import RetryPolicy

from fakes import TEST_DIMENSION, KeywordEmbeddingProvider, ScriptedEmbeddingProvider, embedding_error, make_settings


def gemini_transport(responses):
    """MockTransport replaying ``(status, json_body)`` pairs and recording requests."""
    queue = list(responses)
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status_code, body = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status_code, json=body)

    transport = httpx.MockTransport(handler)
    transport.requests = seen
    return transport


def ok_embedding(dimension: int = TEST_DIMENSION):
    return (200, {"embedding": {"values": [0.1] * dimension}})


class TestGeminiEmbeddingWithRetry:
    """Embedding calls against a mocked Gemini endpoint."""

    async def test_recovers_from_two_overloaded_responses(self, settings):
        """Two 503 responses followed by a success return the vector without failover."""
        overloaded = (503, {"error": {"message": "The model is overloaded"}})
        transport = gemini_transport([overloaded, overloaded, ok_embedding()])
        provider = GeminiEmbeddingProvider(api_key="key", transport=transport)
        service = EmbeddingService(settings, provider=provider)

        vector = await service.embed("hello world")

        assert vector == [0.1] * TEST_DIMENSION
        assert len(transport.requests) == 3
        assert all(r.url.host == "generativelanguage.googleapis.com" for r in transport.requests)

    async def test_request_shape(self, settings):
        transport = gemini_transport([ok_embedding()])
        provider = GeminiEmbeddingProvider(api_key="secret", model="embedding-001", transport=transport)

        await EmbeddingService(settings, provider=provider).embed("some text")

        request = transport.requests[0]
        assert request.url.path.endswith("/models/embedding-001:embedContent")
        assert request.url.params["key"] == "secret"
        body = json.loads(request.content)
        assert body["content"]["parts"][0]["text"] == "some text"
        assert body["model"] == "models/embedding-001"

    async def test_gives_up_after_max_retries(self, settings):
        transport = gemini_transport([(503, {"error": "overloaded"})])
        provider = GeminiEmbeddingProvider(api_key="key", transport=transport)

        with pytest.raises(EmbeddingError) as exc_info:
            await EmbeddingService(settings, provider=provider).embed("text")

        assert exc_info.value.kind == FailureKind.OVERLOADED
        assert exc_info.value.upstream_status == 503
        assert len(transport.requests) == settings.embedding.embedding_max_retries + 1

    async def test_permanent_error_fails_fast(self, settings):
        transport = gemini_transport([(400, {"error": "bad request"})])
        provider = GeminiEmbeddingProvider(api_key="key", transport=transport)

        with pytest.raises(EmbeddingError) as exc_info:
            await EmbeddingService(settings, provider=provider).embed("text")

        assert exc_info.value.kind == FailureKind.PERMANENT
        assert len(transport.requests) == 1

    async def test_missing_vector_is_malformed(self, settings):
        transport = gemini_transport([(200, {"embedding": {}})])
        provider = GeminiEmbeddingProvider(api_key="key", transport=transport)

        with pytest.raises(EmbeddingError) as exc_info:
            await EmbeddingService(settings, provider=provider).embed("text")

        assert exc_info.value.kind == FailureKind.MALFORMED_RESPONSE
        assert len(transport.requests) == 1

    async def test_network_error_is_retried(self, settings):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"embedding": {"values": [0.5] * TEST_DIMENSION}})

        provider = GeminiEmbeddingProvider(api_key="key", transport=httpx.MockTransport(handler))

        vector = await EmbeddingService(settings, provider=provider).embed("text")

        assert vector == [0.5] * TEST_DIMENSION
        assert len(calls) == 2


class TestEmbeddingService:
    """Service-level behavior independent of the provider."""

    async def test_dimension_mismatch_is_configuration_error(self, settings):
        service = EmbeddingService(settings, provider=KeywordEmbeddingProvider(dimension=4))

        with pytest.raises(ConfigurationError) as exc_info:
            await service.embed("alpha")

        assert exc_info.value.details["expected_dimension"] == TEST_DIMENSION
        assert exc_info.value.details["actual_dimension"] == 4

    async def test_uses_injected_retry_policy(self, settings):
        provider = ScriptedEmbeddingProvider([embedding_error(FailureKind.RATE_LIMITED)] * 2)
        service = EmbeddingService(settings, provider=provider, retry_policy=RetryPolicy(max_retries=1, base_delay=0))

        with pytest.raises(EmbeddingError):
            await service.embed("alpha")

        assert provider.calls == 2

    async def test_missing_credentials_raise_configuration_error(self):
        settings = make_settings(providers=ProviderSettings(gemini_api_key=None, openai_api_key=None))
        service = EmbeddingService(settings)

        with pytest.raises(ConfigurationError):
            await service.embed("alpha")


class TestEmbeddingProviderFactory:
    """Provider selection from settings."""

    def test_gemini_by_default(self, settings):
        provider = create_embedding_provider(settings)
        assert isinstance(provider, GeminiEmbeddingProvider)
        assert provider.model == "embedding-001"

    def test_openai_when_selected(self):
        settings = make_settings(
            embedding=EmbeddingSettings(embedding_provider=ProviderName.OPENAI, embedding_dimension=TEST_DIMENSION)
        )
        provider = create_embedding_provider(settings)
        assert isinstance(provider, OpenAIEmbeddingProvider)
        assert provider.model == "text-embedding-3-small"
        assert provider.dimensions == TEST_DIMENSION

    def test_selected_provider_without_key(self):
        settings = make_settings(
            providers=ProviderSettings(gemini_api_key="key", openai_api_key=None),
            embedding=EmbeddingSettings(embedding_provider=ProviderName.OPENAI),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            create_embedding_provider(settings)
        assert "OPENAI_API_KEY" in exc_info.value.message

    async def test_close_releases_built_provider(self):
        settings = make_settings(
            embedding=EmbeddingSettings(embedding_provider=ProviderName.OPENAI, embedding_dimension=TEST_DIMENSION)
        )
        service = EmbeddingService(settings)
        await service.close()
        assert service._provider is None

        provider = service._get_provider()
        await service.close()

        assert provider._client.is_closed()

    async def test_request_dependency_closes_service(self):
        settings = make_settings(
            embedding=EmbeddingSettings(embedding_provider=ProviderName.OPENAI, embedding_dimension=TEST_DIMENSION)
        )
        dependency = get_embedding_service(settings)
        service = await dependency.__anext__()
        provider = service._get_provider()

        with pytest.raises(StopAsyncIteration):
            await dependency.__anext__()

        assert provider._client.is_closed()
