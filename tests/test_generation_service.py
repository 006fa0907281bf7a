"""Tests for answer generation and provider failover."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from document_chat.config import GenerationSettings, ProviderName, ProviderSettings
from document_chat.dependencies import get_generation_service
from document_chat.providers.factory import create_generation_provider
from document_chat.providers.gemini import GeminiGenerationProvider
from document_chat.providers.openai import OpenAIGenerationProvider
from document_chat.services.generation_service import GenerationService
from document_chat.utils.errors import ConfigurationError, FailureKind, GenerationError
from document_chat.utils.retry import RetryPolicy

from fakes import ScriptedGenerationProvider, generation_error, make_settings


def fast_policy(max_retries: int) -> RetryPolicy:
    return RetryPolicy(max_retries=max_retries, base_delay=0.0, max_delay=0.0)


def openai_status_error(status_code: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    response = httpx.Response(status_code, request=request)
    return openai.APIStatusError(f"status {status_code}", response=response, body=None)


def openai_completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class TestFailover:
    """Primary/fallback orchestration."""

    async def test_overloaded_primary_fails_over_to_fallback(self, settings):
        """A 503 from the primary is answered by the fallback, labeled as such."""
        primary = ScriptedGenerationProvider("Gemini", [generation_error("Gemini", FailureKind.OVERLOADED, 503)])
        fallback = ScriptedGenerationProvider("OpenAI", ["fallback answer"])
        service = GenerationService(
            settings, primary=primary, fallback=fallback,
            primary_retry=fast_policy(3), fallback_retry=fast_policy(2),
        )

        result = await service.generate("prompt")

        assert result.text == "fallback answer"
        assert result.provider_used == "OpenAI (fallback)"
        assert result.used_fallback is True
        # the primary exhausted its own retries before failing over
        assert len(primary.prompts) == 4
        assert len(fallback.prompts) == 1

    async def test_rate_limited_primary_fails_over(self, settings):
        primary = ScriptedGenerationProvider("Gemini", [generation_error("Gemini", FailureKind.RATE_LIMITED, 429)])
        fallback = ScriptedGenerationProvider("OpenAI", ["ok"])
        service = GenerationService(settings, primary=primary, fallback=fallback)

        result = await service.generate("prompt")

        assert result.provider_used == "OpenAI (fallback)"

    async def test_primary_success_does_not_touch_fallback(self, settings):
        primary = ScriptedGenerationProvider("Gemini", ["primary answer"])
        fallback = ScriptedGenerationProvider("OpenAI", ["unused"])
        service = GenerationService(settings, primary=primary, fallback=fallback)

        result = await service.generate("prompt")

        assert result.text == "primary answer"
        assert result.provider_used == "Gemini"
        assert result.used_fallback is False
        assert fallback.prompts == []

    async def test_primary_recovers_within_retries(self, settings):
        primary = ScriptedGenerationProvider(
            "Gemini", [generation_error("Gemini", FailureKind.SERVER_ERROR, 500), "second try"]
        )
        fallback = ScriptedGenerationProvider("OpenAI", ["unused"])
        service = GenerationService(settings, primary=primary, fallback=fallback)

        result = await service.generate("prompt")

        assert result.text == "second try"
        assert result.provider_used == "Gemini"

    async def test_server_error_does_not_fail_over(self, settings):
        error = generation_error("Gemini", FailureKind.SERVER_ERROR, 500)
        primary = ScriptedGenerationProvider("Gemini", [error])
        fallback = ScriptedGenerationProvider("OpenAI", ["unused"])
        service = GenerationService(settings, primary=primary, fallback=fallback)

        with pytest.raises(GenerationError) as exc_info:
            await service.generate("prompt")

        assert exc_info.value is error
        assert fallback.prompts == []

    async def test_permanent_error_does_not_fail_over(self, settings):
        primary = ScriptedGenerationProvider("Gemini", [generation_error("Gemini", FailureKind.PERMANENT, 400)])
        fallback = ScriptedGenerationProvider("OpenAI", ["unused"])
        service = GenerationService(settings, primary=primary, fallback=fallback)

        with pytest.raises(GenerationError):
            await service.generate("prompt")

        assert len(primary.prompts) == 1
        assert fallback.prompts == []

    async def test_failed_fallback_reraises_primary_error(self, settings):
        primary_error = generation_error("Gemini", FailureKind.OVERLOADED, 503)
        fallback_error = generation_error("OpenAI", FailureKind.OVERLOADED, 503)
        primary = ScriptedGenerationProvider("Gemini", [primary_error])
        fallback = ScriptedGenerationProvider("OpenAI", [fallback_error])
        service = GenerationService(
            settings, primary=primary, fallback=fallback,
            primary_retry=fast_policy(0), fallback_retry=fast_policy(2),
        )

        with pytest.raises(GenerationError) as exc_info:
            await service.generate("prompt")

        assert exc_info.value is primary_error
        assert exc_info.value.__cause__ is fallback_error
        assert len(fallback.prompts) == 3

    async def test_overloaded_primary_without_fallback_raises(self, settings):
        error = generation_error("Gemini", FailureKind.OVERLOADED, 503)
        primary = ScriptedGenerationProvider("Gemini", [error])
        service = GenerationService(settings, primary=primary, primary_retry=fast_policy(0))

        with pytest.raises(GenerationError) as exc_info:
            await service.generate("prompt")

        assert exc_info.value is error

    async def test_fallback_only_is_used_as_sole_provider(self, settings):
        fallback = ScriptedGenerationProvider("OpenAI", ["only answer"])
        service = GenerationService(settings, primary=None, fallback=fallback)

        result = await service.generate("prompt")

        assert result.text == "only answer"
        assert result.provider_used == "OpenAI"
        assert result.used_fallback is False

    async def test_no_providers_is_configuration_error(self):
        settings = make_settings(providers=ProviderSettings(gemini_api_key=None, openai_api_key=None))
        service = GenerationService(settings)

        assert not service.is_configured
        with pytest.raises(ConfigurationError):
            await service.generate("prompt")


class TestProviderConstruction:
    """Providers built from settings."""

    def test_both_providers_from_settings(self, settings):
        service = GenerationService(settings)
        assert isinstance(service.primary, GeminiGenerationProvider)
        assert isinstance(service.fallback, OpenAIGenerationProvider)
        assert service.primary_retry.max_retries == 3
        assert service.fallback_retry.max_retries == 2

    def test_provider_without_key_is_skipped(self):
        settings = make_settings(providers=ProviderSettings(gemini_api_key=None, openai_api_key="key"))
        service = GenerationService(settings)
        assert service.primary is None
        assert isinstance(service.fallback, OpenAIGenerationProvider)

    def test_unset_fallback(self):
        settings = make_settings(generation=GenerationSettings(fallback_provider=""))
        assert settings.generation.fallback_provider is None
        assert create_generation_provider(settings, settings.generation.fallback_provider) is None

    def test_openai_provider_uses_generation_settings(self):
        settings = make_settings(
            generation=GenerationSettings(primary_provider=ProviderName.OPENAI, openai_model="gpt-test", max_tokens=99)
        )
        provider = create_generation_provider(settings, ProviderName.OPENAI)
        assert provider.model == "gpt-test"
        assert provider.max_tokens == 99

    async def test_close_releases_sdk_client(self, settings):
        service = GenerationService(settings)
        client = service.fallback._client

        await service.close()

        assert client.is_closed()

    async def test_request_dependency_closes_service(self, settings):
        dependency = get_generation_service(settings)
        service = await dependency.__anext__()
        client = service.fallback._client
        assert not client.is_closed()

        with pytest.raises(StopAsyncIteration):
            await dependency.__anext__()

        assert client.is_closed()


class TestGeminiGeneration:
    """Gemini generateContent over a mocked transport."""

    async def test_returns_candidate_text(self):
        def handler(request):
            return httpx.Response(
                200, json={"candidates": [{"content": {"parts": [{"text": "The answer."}]}}]}
            )

        provider = GeminiGenerationProvider(api_key="key", transport=httpx.MockTransport(handler))

        assert await provider.generate("question") == "The answer."

    async def test_empty_candidates_are_malformed(self):
        provider = GeminiGenerationProvider(
            api_key="key", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"candidates": []}))
        )

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("question")

        assert exc_info.value.message == "No response generated from Gemini"
        assert exc_info.value.kind == FailureKind.MALFORMED_RESPONSE

    async def test_overloaded_status_is_classified(self):
        provider = GeminiGenerationProvider(
            api_key="key", transport=httpx.MockTransport(lambda r: httpx.Response(503, text="overloaded"))
        )

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("question")

        assert exc_info.value.kind == FailureKind.OVERLOADED
        assert exc_info.value.provider == "Gemini"

    async def test_generation_config_is_sent_when_set(self):
        captured = []

        def handler(request):
            captured.append(request)
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "x"}]}}]})

        provider = GeminiGenerationProvider(
            api_key="key", temperature=0.2, max_tokens=100, transport=httpx.MockTransport(handler)
        )
        await provider.generate("question")

        assert b"maxOutputTokens" in captured[0].content


class TestOpenAIGeneration:
    """OpenAI chat completions with a mocked SDK client."""

    def make_client(self, side_effect=None, return_value=None):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(side_effect=side_effect, return_value=return_value)
        return client

    async def test_sends_system_and_user_messages(self):
        client = self.make_client(return_value=openai_completion("Answer"))
        provider = OpenAIGenerationProvider(api_key="key", system_prompt="Be helpful.", client=client)

        assert await provider.generate("question") == "Answer"

        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages == [
            {"role": "system", "content": "Be helpful."},
            {"role": "user", "content": "question"},
        ]

    @pytest.mark.parametrize(
        "status_code, kind",
        [(429, FailureKind.RATE_LIMITED), (503, FailureKind.OVERLOADED), (401, FailureKind.PERMANENT)],
    )
    async def test_status_errors_are_classified(self, status_code, kind):
        client = self.make_client(side_effect=openai_status_error(status_code))
        provider = OpenAIGenerationProvider(api_key="key", client=client)

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("question")

        assert exc_info.value.kind == kind
        assert exc_info.value.upstream_status == status_code

    async def test_empty_content_is_malformed(self):
        client = self.make_client(return_value=openai_completion(None))
        provider = OpenAIGenerationProvider(api_key="key", client=client)

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("question")

        assert exc_info.value.kind == FailureKind.MALFORMED_RESPONSE
