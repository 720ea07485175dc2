"""OpenRouter adapter built on the OpenAI SDK.

OpenRouter exposes the OpenAI chat-completions API, so AsyncOpenAI works
unchanged with base_url pointed at it. The default route is the free
Gemini Flash model; settings.llm_model overrides it.
"""

import contextlib
import time

import openai
import structlog
from openai import AsyncOpenAI

from presswire.core.config import Settings
from presswire.providers.errors import (
    AuthenticationError,
    ContentFilterError,
    ProviderError,
    RateLimitError,
    TransientError,
)
from presswire.providers.llm.base import LLMMessage, LLMProvider, LLMResponse, TaskType

logger = structlog.get_logger()

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.7


def _retry_after(error: openai.RateLimitError) -> float | None:
    response = getattr(error, "response", None)
    if response is None:
        return None
    header = response.headers.get("retry-after")
    if header is None:
        return None
    with contextlib.suppress(TypeError, ValueError):
        return float(header)
    return None


def _classify_openai_error(error: openai.OpenAIError) -> ProviderError:
    """Translate an SDK exception into a ProviderError subclass."""
    message = str(error)
    if isinstance(error, openai.RateLimitError):
        return RateLimitError(message, retry_after_seconds=_retry_after(error))
    if isinstance(error, openai.AuthenticationError):
        return AuthenticationError(message)
    if isinstance(error, openai.BadRequestError) and "content_policy" in message.lower():
        return ContentFilterError(message)
    # APITimeoutError subclasses APIConnectionError
    if isinstance(error, (openai.APIConnectionError, openai.InternalServerError)):
        return TransientError(message)
    return ProviderError(message)


class OpenRouterAdapter(LLMProvider):
    """LLMProvider backed by OpenRouter.

    Args:
        settings: API key, base URL, model and timeout.
        client: Pre-built client; tests pass a mock.
    """

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None) -> None:
        self.settings = settings
        # SDK retries are off: a failed call falls back to the template
        self.client = client or AsyncOpenAI(
            api_key=settings.openrouter_api_key.get_secret_value(),
            base_url=settings.openrouter_base_url,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
            default_headers={
                "HTTP-Referer": settings.public_base_url,
                "X-Title": "PressWire.ie",
            },
        )

    @property
    def provider_name(self) -> str:
        return "openrouter"

    def get_model_for_task(self, task: TaskType) -> str:
        return self.settings.llm_model

    async def complete(
        self,
        messages: list[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Run one completion against OpenRouter.

        Raises:
            ProviderError: SDK failure (classified) or an empty choice list.
        """
        model = self.get_model_for_task(task)
        log = logger.bind(provider=self.provider_name, model=model, task=task.value)

        request: dict = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "max_tokens": DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        log.info("completion_requested", message_count=len(messages))
        started = time.monotonic()
        try:
            response = await self.client.chat.completions.create(**request)
        except openai.OpenAIError as e:
            log.error("completion_failed", error_type=type(e).__name__, error=str(e))
            raise _classify_openai_error(e) from e
        latency_ms = (time.monotonic() - started) * 1000

        if not response.choices:
            log.error("completion_empty")
            raise ProviderError("Completion returned no choices")

        choice = response.choices[0]
        usage = response.usage
        result = LLMResponse(
            content=choice.message.content,
            model=model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            finish_reason=choice.finish_reason or "stop",
            latency_ms=latency_ms,
        )
        log.info(
            "completion_received",
            input_tokens=result.input_tokens,
            output_tokens=result.output_tokens,
            latency_ms=round(latency_ms),
        )
        return result
