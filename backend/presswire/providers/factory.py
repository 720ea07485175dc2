"""Process-wide LLM provider.

One OpenRouterAdapter (and its HTTP connection pool) is shared by all
requests. Without an API key there is no provider and generation uses the
template.
"""

from presswire.core.config import Settings, settings as default_settings
from presswire.providers.llm.base import LLMProvider
from presswire.providers.llm.openai_adapter import OpenRouterAdapter

_llm_provider: LLMProvider | None = None


def get_llm_provider(settings: Settings | None = None) -> LLMProvider | None:
    """Return the shared provider, building it on first use.

    Args:
        settings: Defaults to the module settings.

    Returns:
        The provider, or None when OPENROUTER_API_KEY is unset.
    """
    global _llm_provider

    if _llm_provider is not None:
        return _llm_provider
    settings = settings or default_settings
    if not settings.openrouter_api_key.get_secret_value():
        return None
    _llm_provider = OpenRouterAdapter(settings)
    return _llm_provider


def reset_providers() -> None:
    """Forget the shared provider (tests inject and reset their own)."""
    global _llm_provider
    _llm_provider = None
