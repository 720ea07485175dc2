"""Errors raised by LLM adapters.

Press-release generation treats every ProviderError the same way (fall back
to the template), but the subclasses keep the log lines useful.
"""

__all__ = [
    "ProviderError",
    "RateLimitError",
    "AuthenticationError",
    "ContentFilterError",
    "TransientError",
]


class ProviderError(Exception):
    """Any failed completion."""


class RateLimitError(ProviderError):
    """Quota exhausted. Free OpenRouter routes hit this regularly.

    Attributes:
        retry_after_seconds: Provider's retry hint, when it sent one.
    """

    def __init__(self, message: str, retry_after_seconds: float | None = None) -> None:
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class AuthenticationError(ProviderError):
    """OPENROUTER_API_KEY rejected."""


class ContentFilterError(ProviderError):
    """Prompt or output refused by the provider's content policy."""


class TransientError(ProviderError):
    """Connection failure, timeout or 5xx."""
