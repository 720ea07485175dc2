"""In-process LLM provider for tests."""

from typing import Any

from presswire.providers.errors import ProviderError
from presswire.providers.llm.base import LLMMessage, LLMProvider, LLMResponse, TaskType


class MockLLMProvider(LLMProvider):
    """Returns canned completions and records what it was asked.

    Attributes:
        responses: Completion text per task; unknown tasks get a placeholder.
        calls: One entry per complete() call (messages, task, kwargs).
        error: When set, complete() raises it after recording the call.
    """

    def __init__(
        self,
        responses: dict[TaskType, str] | None = None,
        error: ProviderError | None = None,
    ) -> None:
        self.responses: dict[TaskType, str] = dict(responses or {})
        self.calls: list[dict[str, Any]] = []
        self.error = error

    @property
    def provider_name(self) -> str:
        return "mock"

    def set_response(self, task: TaskType, content: str) -> None:
        self.responses[task] = content

    async def complete(
        self,
        messages: list[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        self.calls.append(
            {
                "messages": messages,
                "task": task,
                "kwargs": {
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                    "json_mode": json_mode,
                },
            }
        )
        if self.error is not None:
            raise self.error
        return LLMResponse(
            content=self.responses.get(task, f"Mock {task.value} completion"),
            model="mock-model",
            input_tokens=0,
            output_tokens=0,
            finish_reason="stop",
            latency_ms=0.0,
        )

    def get_model_for_task(self, task: TaskType) -> str:
        return "mock-model"
