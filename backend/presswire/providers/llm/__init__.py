"""LLM provider interface and adapters."""

from presswire.providers.llm.base import LLMMessage, LLMProvider, LLMResponse, TaskType

__all__ = ["LLMMessage", "LLMProvider", "LLMResponse", "TaskType"]
