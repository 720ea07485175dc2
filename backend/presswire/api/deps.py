"""Shared dependencies for API endpoints.

Process-wide collaborators (store, dispatcher, email sender, content store)
are lazily built singletons; services are assembled per request from them.
Tests swap any of these through app.dependency_overrides, or call
reset_dependencies() between cases.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Header

from presswire.core.config import Settings, settings
from presswire.core.dispatch import SideEffectDispatcher
from presswire.core.email import ResendEmailSender
from presswire.core.errors import ForbiddenError, UnauthorizedError
from presswire.core.store import Clock, InMemoryKeyValueStore, KeyValueStore, utc_now
from presswire.providers.factory import get_llm_provider
from presswire.providers.llm.base import LLMProvider
from presswire.services.analytics import AnalyticsService
from presswire.services.content_store import (
    ContentStore,
    GitHubContentStore,
    InMemoryContentStore,
)
from presswire.services.discount_codes import DiscountCodeService
from presswire.services.domain_verification import DomainVerificationService, MxResolver
from presswire.services.management_tokens import ManagementTokenStore
from presswire.services.payments import PaymentService
from presswire.services.press_release_generation import (
    PressReleaseGenerator,
    PressReleasePublisher,
)
from presswire.services.publish_gate import PublishGate, bearer_from_header

_store: KeyValueStore | None = None
_dispatcher: SideEffectDispatcher | None = None
_content_store: ContentStore | None = None


# =============================================================================
# Collaborators
# =============================================================================


def get_settings() -> Settings:
    return settings


def get_clock() -> Clock:
    return utc_now


def get_store() -> KeyValueStore:
    global _store
    if _store is None:
        _store = InMemoryKeyValueStore()
    return _store


def get_dispatcher() -> SideEffectDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = SideEffectDispatcher()
    return _dispatcher


def get_content_store() -> ContentStore:
    """GitHub when a token is configured, in-memory otherwise."""
    global _content_store
    if _content_store is None:
        if settings.github_token.get_secret_value():
            _content_store = GitHubContentStore(settings)
        else:
            _content_store = InMemoryContentStore()
    return _content_store


def reset_dependencies() -> None:
    """Drop all singletons. Used in tests to isolate cases."""
    global _store, _dispatcher, _content_store
    _store = None
    _dispatcher = None
    _content_store = None


SettingsDep = Annotated[Settings, Depends(get_settings)]
ClockDep = Annotated[Clock, Depends(get_clock)]
Store = Annotated[KeyValueStore, Depends(get_store)]
Dispatcher = Annotated[SideEffectDispatcher, Depends(get_dispatcher)]


def get_email_sender(app_settings: SettingsDep) -> ResendEmailSender:
    return ResendEmailSender(app_settings)


def get_mx_resolver(app_settings: SettingsDep) -> MxResolver:
    return MxResolver(app_settings.dns_timeout_seconds)


def get_llm(app_settings: SettingsDep) -> LLMProvider | None:
    return get_llm_provider(app_settings)


EmailSender = Annotated[ResendEmailSender, Depends(get_email_sender)]


# =============================================================================
# Services
# =============================================================================


def get_verification_service(
    app_settings: SettingsDep,
    store: Store,
    dispatcher: Dispatcher,
    email_sender: EmailSender,
    mx_resolver: Annotated[MxResolver, Depends(get_mx_resolver)],
    clock: ClockDep,
) -> DomainVerificationService:
    return DomainVerificationService(
        app_settings, store, dispatcher, email_sender, mx_resolver, clock=clock
    )


def get_publish_gate(app_settings: SettingsDep, store: Store, clock: ClockDep) -> PublishGate:
    return PublishGate(app_settings, store, clock=clock)


def get_management_store(
    app_settings: SettingsDep, store: Store, clock: ClockDep
) -> ManagementTokenStore:
    return ManagementTokenStore(app_settings, store, clock=clock)


def get_discount_service(store: Store, clock: ClockDep) -> DiscountCodeService:
    return DiscountCodeService(store, clock=clock)


def get_analytics_service(store: Store, clock: ClockDep) -> AnalyticsService:
    return AnalyticsService(store, clock=clock)


Gate = Annotated[PublishGate, Depends(get_publish_gate)]
Discounts = Annotated[DiscountCodeService, Depends(get_discount_service)]


def get_payment_service(
    app_settings: SettingsDep, store: Store, gate: Gate, discounts: Discounts, clock: ClockDep
) -> PaymentService:
    return PaymentService(app_settings, store, gate, discounts, clock=clock)


def get_publisher(
    app_settings: SettingsDep,
    gate: Gate,
    llm: Annotated[LLMProvider | None, Depends(get_llm)],
    content_store: Annotated[ContentStore, Depends(get_content_store)],
    management: Annotated[ManagementTokenStore, Depends(get_management_store)],
    dispatcher: Dispatcher,
    email_sender: EmailSender,
    clock: ClockDep,
) -> PressReleasePublisher:
    return PressReleasePublisher(
        app_settings,
        gate,
        PressReleaseGenerator(llm, clock=clock),
        content_store,
        management,
        dispatcher,
        email_sender,
        clock=clock,
    )


# =============================================================================
# Auth
# =============================================================================


def get_bearer(authorization: Annotated[str | None, Header()] = None) -> str:
    """Bearer token from the Authorization header (401 if absent)."""
    return bearer_from_header(authorization)


def require_admin(app_settings: SettingsDep, bearer: Annotated[str, Depends(get_bearer)]) -> None:
    """Check the static admin token.

    Raises:
        UnauthorizedError: No bearer (raised by get_bearer).
        ForbiddenError: Wrong admin token.
    """
    expected = app_settings.admin_token.get_secret_value()
    if not expected:
        raise UnauthorizedError("Admin access is not configured")
    if not hmac.compare_digest(bearer.encode(), expected.encode()):
        raise ForbiddenError("Invalid admin token")


Bearer = Annotated[str, Depends(get_bearer)]
VerificationServiceDep = Annotated[
    DomainVerificationService, Depends(get_verification_service)
]
ManagementStore = Annotated[ManagementTokenStore, Depends(get_management_store)]
Analytics = Annotated[AnalyticsService, Depends(get_analytics_service)]
Payments = Annotated[PaymentService, Depends(get_payment_service)]
Publisher = Annotated[PressReleasePublisher, Depends(get_publisher)]
AdminAccess = Annotated[None, Depends(require_admin)]
