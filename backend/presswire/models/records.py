"""Stored records.

All records are frozen dataclasses kept in the KeyValueStore. Services never
mutate a record in place: they build a replacement with dataclasses.replace
and write it with compare_and_swap, so equality doubles as a version check.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class GrantKind(str, Enum):
    """How a publish bearer was obtained."""

    VERIFICATION_DERIVED = "VerificationDerived"
    ADMIN_BYPASS = "AdminBypass"
    PAYMENT_VERIFIED = "PaymentVerified"
    DEMO_TOKEN = "DemoToken"


@dataclass(frozen=True)
class VerificationCode:
    """One-time numeric code issued to an email address.

    Attributes:
        email: Normalized email address (store key).
        code: Six digit string, leading zeros preserved.
        issued_at: When the code was issued.
        expires_at: issued_at + code TTL.
        domain: Domain part of the email.
        is_trusted_tld: Whether the domain ends in the trusted suffix.
    """

    email: str
    code: str
    issued_at: datetime
    expires_at: datetime
    domain: str
    is_trusted_tld: bool


@dataclass(frozen=True)
class VerificationToken:
    """Bearer token minted from a verified code."""

    token: str
    email: str
    domain: str
    is_trusted_tld: bool
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class PublishIdentity:
    """Normalized identity a publish bearer resolves to."""

    email: str
    domain: str
    is_trusted_tld: bool
    grant_kind: GrantKind
    # Opaque verification token, when grant_kind is VERIFICATION_DERIVED
    token: str | None = None


@dataclass(frozen=True)
class CompanyInfo:
    """Company details supplied with a press release."""

    name: str
    cro_number: str = ""
    status: str = ""
    type: str = ""


@dataclass(frozen=True)
class ManagementRecord:
    """Published release plus the state guarded by its management token.

    Attributes:
        management_token: 64 hex chars (store key).
        slug: URL slug of the published artifact.
        created_at: Publish time; anchors the edit and access windows.
        edit_count: Successful edits so far (monotonic).
        published: False once unpublished.
        extended: True once management access has been paid for.
        expires_at: End of the paid extension (only meaningful if extended).
    """

    management_token: str
    slug: str
    created_at: datetime
    headline: str
    summary: str
    content: str
    contact: str
    company: CompanyInfo
    url: str = ""
    verified_domain: str = ""
    package: str = "starter"
    key_points: str = ""
    boilerplate: str = ""
    edit_count: int = 0
    published: bool = True
    extended: bool = False
    expires_at: datetime | None = None
    last_edited: datetime | None = None
    unpublished_at: datetime | None = None
    unpublish_reason: str | None = None
    extension_date: datetime | None = None


@dataclass(frozen=True)
class PaidSession:
    """Checkout session confirmed by a verified payment webhook."""

    session_id: str
    email: str
    package: str
    amount_total: int | None
    currency: str | None
    paid_at: datetime
    claimed: bool = False


@dataclass(frozen=True)
class DiscountCode:
    """Percentage discount applied at checkout."""

    code: str
    discount_percent: int
    description: str
    valid_until: datetime | None
    usage_limit: int | None = None
    usage_count: int = 0
    active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True)
class ReleaseAnalytics:
    """View counters for one published release."""

    slug: str
    views: int = 0
    sessions: frozenset[str] = field(default_factory=frozenset)
    referrers: dict[str, int] = field(default_factory=dict)
    daily_views: dict[str, int] = field(default_factory=dict)
    last_updated: datetime | None = None

    @property
    def unique_visitors(self) -> int:
        return len(self.sessions)
