"""Shared fixtures.

Every test gets its own in-memory store, dispatcher and controllable clock;
the API client is wired to them through dependency overrides so a test can
look at (or tamper with) exactly the state the endpoints touched.
"""

from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

from presswire.api import deps
from presswire.core.config import Settings, settings
from presswire.core.dispatch import SideEffectDispatcher
from presswire.core.rate_limiting import reset_rate_limiter
from presswire.core.store import InMemoryKeyValueStore
from presswire.main import create_app
from presswire.providers import factory
from presswire.providers.llm.base import TaskType
from presswire.providers.llm.mock_adapter import MockLLMProvider
from presswire.services.content_store import InMemoryContentStore

# Security: test-only secrets
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105
TEST_ADMIN_TOKEN = "test-admin-token"  # nosec B105
TEST_WEBHOOK_SECRET = "whsec_test_secret"  # nosec B105

START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeMxResolver:
    """MX lookup stub: domains in `domains` have MX records."""

    def __init__(self, domains: set[str] | None = None, error: Exception | None = None) -> None:
        self.domains = set(domains or ())
        self.error = error
        self.calls: list[str] = []

    async def has_mx(self, domain: str) -> bool:
        self.calls.append(domain)
        if self.error is not None:
            raise self.error
        return domain in self.domains


class RecordingEmailSender:
    """Email stub that records sends and can be told to fail."""

    def __init__(self, error: Exception | None = None) -> None:
        self.sent: list[dict] = []
        self.error = error

    async def send(self, *, to: str, subject: str, html: str, text: str) -> None:
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        if self.error is not None:
            raise self.error


def make_settings(**overrides) -> Settings:
    """Settings isolated from the environment and any .env file."""
    values = {
        "environment": "test",
        "auth_secret": SecretStr(TEST_AUTH_SECRET),
        "admin_token": SecretStr(TEST_ADMIN_TOKEN),
        "stripe_webhook_secret": SecretStr(TEST_WEBHOOK_SECRET),
        "email_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def dispatcher() -> SideEffectDispatcher:
    return SideEffectDispatcher()


@pytest.fixture
def mx_resolver() -> FakeMxResolver:
    return FakeMxResolver({"company.com", "irishco.ie"})


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def mock_llm() -> Iterator[MockLLMProvider]:
    """MockLLMProvider injected into the factory singleton, reset afterwards."""
    mock = MockLLMProvider(
        {
            TaskType.PRESS_RELEASE: (
                '{"headline": "Acme expands to Cork", '
                '"summary": "Acme opens a second office.", '
                '"content": "Acme Ltd today announced...\\n\\nThe office opens in May.", '
                '"boilerplate": "Acme Ltd is a Dublin software company."}'
            )
        }
    )
    factory._llm_provider = mock
    yield mock
    factory.reset_providers()


@pytest.fixture
def app(test_settings, clock, store, dispatcher, mx_resolver, email_sender, content_store):
    """Application wired to the per-test collaborators (no LLM by default)."""
    application = create_app()
    application.dependency_overrides.update(
        {
            deps.get_settings: lambda: test_settings,
            deps.get_clock: lambda: clock,
            deps.get_store: lambda: store,
            deps.get_dispatcher: lambda: dispatcher,
            deps.get_mx_resolver: lambda: mx_resolver,
            deps.get_email_sender: lambda: email_sender,
            deps.get_content_store: lambda: content_store,
            deps.get_llm: lambda: None,
        }
    )
    return application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def reset_singletons() -> Iterator[None]:
    """Fresh singletons for every test."""
    deps.reset_dependencies()
    reset_rate_limiter()
    factory.reset_providers()
    yield
    deps.reset_dependencies()
    reset_rate_limiter()
    factory.reset_providers()


@pytest.fixture(autouse=True)
def disable_rate_limiting(monkeypatch) -> None:
    """Rate limiting is tested separately; re-enable it with enable_rate_limiting."""
    monkeypatch.setattr(settings, "rate_limit_enabled", False)


@pytest.fixture
def enable_rate_limiting(monkeypatch) -> None:
    monkeypatch.setattr(settings, "rate_limit_enabled", True)
