"""Publish-token gate.

Resolves the bearer presented to the press-release endpoint to a
PublishIdentity. Precedence:

1. payment-verified-<ms>-<session>-<sig>  (valid 5 minutes)
2. admin-pr-<ms>-<nonce>-<sig>             (valid 1 hour)
3. demo-...                                (non-production only)
4. opaque verification token               (valid until its expires_at)

Marker bearers embed their issuance time in milliseconds and are signed
with AUTH_SECRET, so a client cannot forge or re-date them.

No rate limiting happens here; the rate limit dependency runs first.
"""

import hashlib
import hmac
import logging
import secrets
from datetime import UTC, datetime, timedelta

from presswire.core.config import Settings
from presswire.core.errors import TokenExpiredError, TokenNotFoundError, UnauthorizedError
from presswire.core.store import Clock, KeyValueStore, utc_now
from presswire.models.records import GrantKind, PaidSession, PublishIdentity, VerificationToken
from presswire.services.domain_verification import token_key

logger = logging.getLogger(__name__)

PAYMENT_PREFIX = "payment-verified-"
ADMIN_PREFIX = "admin-pr-"
DEMO_PREFIX = "demo-"

PAYMENT_BEARER_TTL = timedelta(minutes=5)
ADMIN_BEARER_TTL = timedelta(hours=1)

_SIGNATURE_HEX_LENGTH = 32

ADMIN_IDENTITY_EMAIL = "admin@presswire.ie"
DEMO_IDENTITY_EMAIL = "demo@company.ie"

PAYMENT_KEY_PREFIX = "payment:"


def payment_key(session_id: str) -> str:
    return f"{PAYMENT_KEY_PREFIX}{session_id}"


def bearer_from_header(authorization: str | None) -> str:
    """Extract the token from an Authorization header.

    Raises:
        UnauthorizedError: If the header is missing or not a Bearer header.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("No authorization token provided")
    token = authorization[len("Bearer ") :].strip()
    if not token:
        raise UnauthorizedError("No authorization token provided")
    return token


class BearerSigner:
    """Mints and verifies signed, time-stamped marker bearers.

    Args:
        secret: HMAC key.
    """

    def __init__(self, secret: str) -> None:
        self._key = secret.encode()

    def _sign(self, body: str) -> str:
        digest = hmac.new(self._key, body.encode(), hashlib.sha256).hexdigest()
        return digest[:_SIGNATURE_HEX_LENGTH]

    def mint(self, prefix: str, reference: str, issued_at: datetime) -> str:
        """Build <prefix><ms>-<reference>-<sig>."""
        issued_ms = int(issued_at.timestamp() * 1000)
        body = f"{prefix}{issued_ms}-{reference}"
        return f"{body}-{self._sign(body)}"

    def verify(self, prefix: str, bearer: str) -> tuple[datetime, str]:
        """Check a marker bearer's shape and signature.

        Returns:
            (issued_at, reference)

        Raises:
            TokenNotFoundError: Malformed bearer or bad signature.
        """
        body, sep, signature = bearer.rpartition("-")
        if not sep or not hmac.compare_digest(
            signature.encode(), self._sign(body).encode()
        ):
            raise TokenNotFoundError()
        stamp, sep, reference = body[len(prefix) :].partition("-")
        if not sep or not reference or not (stamp.isascii() and stamp.isdigit()):
            raise TokenNotFoundError()
        issued_at = datetime.fromtimestamp(int(stamp) / 1000, tz=UTC)
        return issued_at, reference


class PublishGate:
    """Authorizes press-release creation.

    Args:
        settings: Application settings (environment, secret, consumption flag).
        store: Key-value store holding verification tokens and paid sessions.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock
        self._signer = BearerSigner(settings.auth_secret.get_secret_value())

    # =========================================================================
    # Minting
    # =========================================================================

    def mint_admin_bearer(self) -> str:
        """Issue an admin bypass bearer valid for one hour."""
        return self._signer.mint(ADMIN_PREFIX, secrets.token_hex(8), self._clock())

    def mint_payment_bearer(self, session_id: str) -> str:
        """Issue a payment-verified bearer for a confirmed checkout session."""
        return self._signer.mint(PAYMENT_PREFIX, session_id, self._clock())

    # =========================================================================
    # Resolution
    # =========================================================================

    def authorize(self, bearer: str) -> PublishIdentity:
        """Resolve a bearer to the identity allowed to publish.

        Raises:
            TokenNotFoundError: Unknown, malformed or forged bearer.
            TokenExpiredError: Bearer past its validity window.
        """
        if bearer.startswith(PAYMENT_PREFIX):
            return self._authorize_payment(bearer)
        if bearer.startswith(ADMIN_PREFIX):
            return self._authorize_admin(bearer)
        if bearer.startswith(DEMO_PREFIX) and not self._settings.is_production:
            return PublishIdentity(
                email=DEMO_IDENTITY_EMAIL,
                domain=DEMO_IDENTITY_EMAIL.split("@")[1],
                is_trusted_tld=True,
                grant_kind=GrantKind.DEMO_TOKEN,
            )
        return self._authorize_verification_token(bearer)

    def _check_window(self, issued_at: datetime, ttl: timedelta) -> None:
        if self._clock() - issued_at > ttl:
            raise TokenExpiredError()

    def _authorize_payment(self, bearer: str) -> PublishIdentity:
        issued_at, session_id = self._signer.verify(PAYMENT_PREFIX, bearer)
        self._check_window(issued_at, PAYMENT_BEARER_TTL)
        session: PaidSession | None = self._store.get(payment_key(session_id))
        if session is None:
            raise TokenNotFoundError()
        domain = session.email.rpartition("@")[2]
        return PublishIdentity(
            email=session.email,
            domain=domain,
            is_trusted_tld=domain.endswith(self._settings.trusted_suffix),
            grant_kind=GrantKind.PAYMENT_VERIFIED,
        )

    def _authorize_admin(self, bearer: str) -> PublishIdentity:
        issued_at, _ = self._signer.verify(ADMIN_PREFIX, bearer)
        self._check_window(issued_at, ADMIN_BEARER_TTL)
        return PublishIdentity(
            email=ADMIN_IDENTITY_EMAIL,
            domain=ADMIN_IDENTITY_EMAIL.split("@")[1],
            is_trusted_tld=True,
            grant_kind=GrantKind.ADMIN_BYPASS,
        )

    def _authorize_verification_token(self, bearer: str) -> PublishIdentity:
        key = token_key(bearer)
        stored: VerificationToken | None = self._store.get(key)
        if stored is None:
            raise TokenNotFoundError()
        if self._clock() > stored.expires_at:
            self._store.compare_and_swap(key, stored, None)
            raise TokenExpiredError()
        return PublishIdentity(
            email=stored.email,
            domain=stored.domain,
            is_trusted_tld=stored.is_trusted_tld,
            grant_kind=GrantKind.VERIFICATION_DERIVED,
            token=stored.token,
        )

    def consume(self, identity: PublishIdentity) -> None:
        """Retire a verification token after a successful publish.

        No-op unless consume_verification_token is enabled; by default a
        verified identity may publish repeatedly until its token expires.
        """
        if not self._settings.consume_verification_token:
            return
        if identity.grant_kind is GrantKind.VERIFICATION_DERIVED and identity.token:
            self._store.delete(token_key(identity.token))
            logger.info("Verification token consumed for %s", identity.domain)
