"""Tests for the OpenRouter (OpenAI-compatible) LLM adapter.

Tests use a mocked AsyncOpenAI client; no network calls are made.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest
from conftest import make_settings
from pydantic import SecretStr

from presswire.providers import factory
from presswire.providers.errors import (
    AuthenticationError,
    ContentFilterError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from presswire.providers.llm.base import LLMMessage, TaskType
from presswire.providers.llm.openai_adapter import OpenRouterAdapter

_REQUEST = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")


@pytest.fixture
def settings():
    return make_settings(openrouter_api_key=SecretStr("or-test-key"))


@pytest.fixture
def mock_response():
    response = MagicMock()
    choice = MagicMock()
    choice.message.content = '{"headline": "Hello"}'
    choice.finish_reason = "stop"
    response.choices = [choice]
    response.usage = MagicMock(prompt_tokens=12, completion_tokens=34)
    return response


def _adapter(settings, create: AsyncMock) -> OpenRouterAdapter:
    client = MagicMock()
    client.chat.completions.create = create
    return OpenRouterAdapter(settings, client=client)


def _status_error(cls, status: int, message: str, headers: dict | None = None):
    return cls(
        message=message,
        response=httpx.Response(status, headers=headers, request=_REQUEST),
        body={"error": {"message": message}},
    )


class TestInit:
    def test_client_points_at_openrouter(self, settings):
        with patch("presswire.providers.llm.openai_adapter.AsyncOpenAI") as mock_client:
            OpenRouterAdapter(settings)
        kwargs = mock_client.call_args.kwargs
        assert kwargs["api_key"] == "or-test-key"
        assert kwargs["base_url"] == "https://openrouter.ai/api/v1"
        assert kwargs["max_retries"] == 0
        assert kwargs["default_headers"]["X-Title"] == "PressWire.ie"

    def test_model_comes_from_settings(self, settings):
        adapter = _adapter(settings, AsyncMock())
        assert adapter.get_model_for_task(TaskType.PRESS_RELEASE) == settings.llm_model
        assert adapter.provider_name == "openrouter"


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_llm_response(self, settings, mock_response):
        create = AsyncMock(return_value=mock_response)
        adapter = _adapter(settings, create)

        result = await adapter.complete(
            [LLMMessage(role="user", content="Write")], TaskType.PRESS_RELEASE
        )

        assert result.content == '{"headline": "Hello"}'
        assert result.input_tokens == 12
        assert result.output_tokens == 34
        assert result.finish_reason == "stop"
        kwargs = create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "Write"}]
        assert kwargs["max_tokens"] == 2000
        assert kwargs["temperature"] == 0.7
        assert "response_format" not in kwargs

    @pytest.mark.asyncio
    async def test_json_mode_requests_json_object(self, settings, mock_response):
        create = AsyncMock(return_value=mock_response)
        adapter = _adapter(settings, create)

        await adapter.complete(
            [LLMMessage(role="user", content="Write")], TaskType.PRESS_RELEASE, json_mode=True
        )

        assert create.call_args.kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_no_choices_is_provider_error(self, settings):
        response = MagicMock(choices=[], usage=None)
        adapter = _adapter(settings, AsyncMock(return_value=response))
        with pytest.raises(ProviderError):
            await adapter.complete([LLMMessage(role="user", content="x")], TaskType.PRESS_RELEASE)


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_rate_limit_with_retry_after(self, settings):
        error = _status_error(
            openai.RateLimitError, 429, "Rate limit exceeded", {"retry-after": "7"}
        )
        adapter = _adapter(settings, AsyncMock(side_effect=error))

        with pytest.raises(RateLimitError, match="Rate limit exceeded") as exc_info:
            await adapter.complete([LLMMessage(role="user", content="x")], TaskType.PRESS_RELEASE)
        assert exc_info.value.retry_after_seconds == 7.0

    @pytest.mark.asyncio
    async def test_authentication_error(self, settings):
        error = _status_error(openai.AuthenticationError, 401, "Invalid API key")
        adapter = _adapter(settings, AsyncMock(side_effect=error))
        with pytest.raises(AuthenticationError):
            await adapter.complete([LLMMessage(role="user", content="x")], TaskType.PRESS_RELEASE)

    @pytest.mark.asyncio
    async def test_content_policy_error(self, settings):
        error = _status_error(openai.BadRequestError, 400, "Blocked by content_policy")
        adapter = _adapter(settings, AsyncMock(side_effect=error))
        with pytest.raises(ContentFilterError):
            await adapter.complete([LLMMessage(role="user", content="x")], TaskType.PRESS_RELEASE)

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self, settings):
        error = openai.APIConnectionError(message="Connection failed", request=_REQUEST)
        adapter = _adapter(settings, AsyncMock(side_effect=error))
        with pytest.raises(TransientError, match="Connection failed"):
            await adapter.complete([LLMMessage(role="user", content="x")], TaskType.PRESS_RELEASE)

    @pytest.mark.asyncio
    async def test_other_bad_request_is_generic(self, settings):
        error = _status_error(openai.BadRequestError, 400, "Invalid request parameters")
        adapter = _adapter(settings, AsyncMock(side_effect=error))
        with pytest.raises(ProviderError) as exc_info:
            await adapter.complete([LLMMessage(role="user", content="x")], TaskType.PRESS_RELEASE)
        assert type(exc_info.value) is ProviderError


class TestFactory:
    def test_no_key_means_no_provider(self):
        assert factory.get_llm_provider(make_settings()) is None

    def test_key_builds_openrouter_adapter(self, settings):
        with patch("presswire.providers.llm.openai_adapter.AsyncOpenAI"):
            provider = factory.get_llm_provider(settings)
        assert isinstance(provider, OpenRouterAdapter)
        assert factory.get_llm_provider(settings) is provider
