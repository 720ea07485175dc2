"""LLM provider interface.

Generation code talks to this interface only; OpenRouterAdapter implements
it for production and MockLLMProvider for tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class TaskType(Enum):
    """What a completion is for (selects the model)."""

    PRESS_RELEASE = "press_release"


@dataclass
class LLMMessage:
    role: str  # "system" | "user" | "assistant"
    content: str


@dataclass
class LLMResponse:
    """One completion.

    content is None when the provider returned an empty message.
    """

    content: str | None
    model: str
    input_tokens: int
    output_tokens: int
    finish_reason: str
    latency_ms: float


class LLMProvider(ABC):
    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Short name used in log events."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        task: TaskType,
        max_tokens: int | None = None,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Run one chat completion.

        Args:
            messages: System prompt first, then the user prompt.
            task: Selects the model.
            max_tokens: None uses the adapter default.
            temperature: None uses the adapter default.
            json_mode: Ask for a JSON object response.

        Raises:
            ProviderError: The completion failed (subclass says why).
        """
        ...

    @abstractmethod
    def get_model_for_task(self, task: TaskType) -> str:
        ...
