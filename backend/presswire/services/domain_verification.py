"""Domain verification: code issuance and consumption.

Issuer: request_code() checks the email domain (denylist, trusted suffix,
MX records), stores a six digit code per email and emails it in the
background.

Consumer: submit_code() checks the code (exists, not expired, matches),
deletes it and mints a one hour bearer token for publishing.

Store keys:
- code:<email>   -> VerificationCode (at most one live code per email)
- vtoken:<token> -> VerificationToken
"""

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

import dns.asyncresolver
import dns.exception

from presswire.core.config import Settings
from presswire.core.dispatch import SideEffectDispatcher
from presswire.core.email import ResendEmailSender, verification_code_email
from presswire.core.errors import (
    CodeExpiredError,
    CodeMismatchError,
    DomainUnreachableError,
    FreeProviderBlockedError,
    InvalidEmailError,
    NoCodeFoundError,
    UpstreamTimeoutError,
)
from presswire.core.store import Clock, KeyValueStore, utc_now
from presswire.models.records import VerificationCode, VerificationToken

logger = logging.getLogger(__name__)

CODE_KEY_PREFIX = "code:"
TOKEN_KEY_PREFIX = "vtoken:"


def code_key(email: str) -> str:
    return f"{CODE_KEY_PREFIX}{email}"


def token_key(token: str) -> str:
    return f"{TOKEN_KEY_PREFIX}{token}"


def normalize_email(email: str | None) -> tuple[str, str]:
    """Lower-case an email and split off its domain.

    Returns:
        (email, domain)

    Raises:
        InvalidEmailError: If there is no '@' or either side is empty.
    """
    if not email or "@" not in email:
        raise InvalidEmailError()
    normalized = email.strip().lower()
    local, _, domain = normalized.rpartition("@")
    if not local or not domain:
        raise InvalidEmailError()
    return normalized, domain


def generate_code() -> str:
    """Uniform six digit code, leading zeros preserved."""
    return f"{secrets.randbelow(10**6):06d}"


class MxResolver:
    """Checks that a domain publishes mail exchange records.

    Args:
        timeout_seconds: Total lifetime of one lookup.
    """

    def __init__(self, timeout_seconds: float) -> None:
        self._timeout = timeout_seconds

    async def has_mx(self, domain: str) -> bool:
        """Whether domain has at least one MX record.

        Raises:
            UpstreamTimeoutError: If the lookup exceeds its lifetime.
        """
        resolver = dns.asyncresolver.Resolver()
        try:
            answers = await resolver.resolve(domain, "MX", lifetime=self._timeout)
        except dns.exception.Timeout as exc:
            logger.warning("MX lookup timed out for %s", domain)
            raise UpstreamTimeoutError("Domain lookup timed out, please retry") from exc
        except dns.exception.DNSException:
            # NXDOMAIN, NoAnswer, NoNameservers, or a malformed name
            # (EmptyLabel, LabelTooLong) rejected before any query
            return False
        return len(answers) > 0


@dataclass(frozen=True)
class CodeIssued:
    """Result of request_code().

    Attributes:
        domain: Email domain.
        is_trusted_tld: Whether the domain ends in the trusted suffix.
        code: The raw code; only set outside production.
        expires_at: When the code stops being accepted.
    """

    domain: str
    is_trusted_tld: bool
    code: str | None
    expires_at: datetime


class DomainVerificationService:
    """Issues and consumes email verification codes.

    Args:
        settings: Application settings (denylist, suffix, TTLs, environment).
        store: Key-value store for codes and tokens.
        dispatcher: Background runner for email sends.
        email_sender: Email collaborator.
        mx_resolver: MX lookup collaborator.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        dispatcher: SideEffectDispatcher,
        email_sender: ResendEmailSender,
        mx_resolver: MxResolver | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._store = store
        self._dispatcher = dispatcher
        self._email_sender = email_sender
        self._mx_resolver = mx_resolver or MxResolver(settings.dns_timeout_seconds)
        self._clock = clock
        self._code_ttl = timedelta(minutes=settings.verification_code_ttl_minutes)
        self._token_ttl = timedelta(minutes=settings.verification_token_ttl_minutes)

    # =========================================================================
    # Issuer
    # =========================================================================

    async def request_code(self, email: str) -> CodeIssued:
        """Issue a verification code for email.

        Raises:
            InvalidEmailError: Malformed email.
            FreeProviderBlockedError: Consumer webmail domain.
            DomainUnreachableError: Domain has no MX records.
            UpstreamTimeoutError: MX lookup timed out.
        """
        email, domain = normalize_email(email)

        if domain in self._settings.denylisted_domains:
            raise FreeProviderBlockedError(domain)

        is_trusted_tld = domain.endswith(self._settings.trusted_suffix)

        if is_trusted_tld and not self._settings.is_production:
            logger.info("Accepting %s without MX check outside production", domain)
        elif not await self._mx_resolver.has_mx(domain):
            raise DomainUnreachableError(domain)

        now = self._clock()
        record = VerificationCode(
            email=email,
            code=generate_code(),
            issued_at=now,
            expires_at=now + self._code_ttl,
            domain=domain,
            is_trusted_tld=is_trusted_tld,
        )
        # Overwrites any previous code for this email
        self._store.set(code_key(email), record)

        subject, html, text = verification_code_email(
            record.code, domain, self._settings.verification_code_ttl_minutes
        )
        self._dispatcher.submit(
            self._email_sender.send(to=email, subject=subject, html=html, text=text),
            name=f"verification-email:{domain}",
        )

        return CodeIssued(
            domain=domain,
            is_trusted_tld=is_trusted_tld,
            code=None if self._settings.is_production else record.code,
            expires_at=record.expires_at,
        )

    # =========================================================================
    # Consumer
    # =========================================================================

    def submit_code(self, email: str, code: str) -> VerificationToken:
        """Exchange a valid code for a bearer token.

        The code is single-use: it is deleted on success.

        Raises:
            InvalidEmailError: Malformed email.
            NoCodeFoundError: No code issued (or already used).
            CodeExpiredError: Code older than its TTL (deleted as a side effect).
            CodeMismatchError: Code differs.
        """
        email, _ = normalize_email(email)
        key = code_key(email)
        stored: VerificationCode | None = self._store.get(key)
        if stored is None:
            raise NoCodeFoundError()

        now = self._clock()
        if now > stored.expires_at:
            self._store.compare_and_swap(key, stored, None)
            raise CodeExpiredError()

        if not hmac.compare_digest(stored.code.encode(), (code or "").encode()):
            raise CodeMismatchError()

        # Losing this swap means a concurrent submit already consumed the code
        if not self._store.compare_and_swap(key, stored, None):
            raise NoCodeFoundError()

        token = VerificationToken(
            token=secrets.token_hex(32),
            email=email,
            domain=stored.domain,
            is_trusted_tld=stored.is_trusted_tld,
            issued_at=now,
            expires_at=now + self._token_ttl,
        )
        self._store.set(token_key(token.token), token)
        logger.info("Domain verified: %s", stored.domain)
        return token
