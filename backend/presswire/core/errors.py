"""Errors raised to API callers.

Every failure a client can see is an APIError: a stable machine-readable
code, a message safe to show, and the HTTP status main.py renders it with.
The generic classes below carry the status; the domain errors further down
(verification, bearers, management) pin a precise code on top of them so
clients can branch without parsing messages.
"""


class APIError(Exception):
    """Base of the error envelope.

    Attributes:
        code: Machine-readable code, e.g. "CODE_EXPIRED".
        message: Text shown to the client. Never includes secrets.
        status_code: HTTP status.
        details: Extra structured context (field errors, prices).
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details


class ValidationError(APIError):
    """Bad input (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
        *,
        code: str = "VALIDATION_ERROR",
    ) -> None:
        super().__init__(code, message, 400, details)


class UnauthorizedError(APIError):
    """Missing or unusable credential (401)."""

    def __init__(
        self, message: str = "Authentication required", *, code: str = "UNAUTHORIZED"
    ) -> None:
        super().__init__(code, message, 401)


class PaymentRequiredError(APIError):
    """Paid feature requested without proof of payment (402).

    details carries the price so the client can offer checkout.
    """

    def __init__(
        self,
        message: str = "Payment required",
        details: list[dict] | None = None,
    ) -> None:
        super().__init__("PAYMENT_REQUIRED", message, 402, details)


class ForbiddenError(APIError):
    """Credential accepted, operation refused (403)."""

    def __init__(self, message: str = "Access denied", *, code: str = "FORBIDDEN") -> None:
        super().__init__(code, message, 403)


class NotFoundError(APIError):
    """Unknown resource (404).

    Lapsed credentials use this too: saying "expired" would confirm the
    token once existed.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        message = (
            f"{resource} with id '{resource_id}' not found"
            if resource_id
            else f"{resource} not found"
        )
        super().__init__("NOT_FOUND", message, 404)


class ConflictError(APIError):
    """State already moved on, e.g. a session claimed twice (409)."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message, 409)


class RateLimitedError(APIError):
    """Request refused by the rate limiter.

    429 for window and temporary-block denials, 403 ADDRESS_BLOCKED for the
    permanent denylist.

    Attributes:
        retry_after: Seconds until a retry can succeed (None: never).
        headers: X-RateLimit-* and Retry-After values for the response.
    """

    def __init__(
        self,
        message: str,
        *,
        retry_after: int | None,
        status_code: int = 429,
        headers: dict[str, str] | None = None,
    ) -> None:
        code = "RATE_LIMITED" if status_code == 429 else "ADDRESS_BLOCKED"
        super().__init__(code, message, status_code)
        self.retry_after = retry_after
        self.headers = headers or {}


class UpstreamError(APIError):
    """DNS, GitHub or another collaborator failed (500).

    The message stays generic; specifics go to the log.
    """

    def __init__(self, message: str = "An upstream service failed") -> None:
        super().__init__("UPSTREAM_FAILURE", message, 500)


class UpstreamTimeoutError(APIError):
    """Collaborator did not answer in time (503, safe to retry)."""

    def __init__(self, message: str = "An upstream service timed out") -> None:
        super().__init__("UPSTREAM_TIMEOUT", message, 503)


class InternalError(APIError):
    """Server misconfiguration or bug (500)."""

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__("INTERNAL_ERROR", message, 500)


# =============================================================================
# Domain verification
# =============================================================================


class InvalidEmailError(ValidationError):
    """Email address is malformed."""

    def __init__(self) -> None:
        super().__init__("Invalid email address", code="INVALID_EMAIL")


class FreeProviderBlockedError(ValidationError):
    """Email belongs to a consumer webmail provider."""

    def __init__(self, domain: str) -> None:
        super().__init__(
            "Free email providers not allowed. Please use your company email address",
            details=[{"domain": domain}],
            code="FREE_PROVIDER_BLOCKED",
        )


class DomainUnreachableError(ValidationError):
    """Domain has no mail exchange records."""

    def __init__(self, domain: str) -> None:
        super().__init__(
            "Domain cannot receive emails",
            details=[{"domain": domain}],
            code="DOMAIN_UNREACHABLE",
        )


class NoCodeFoundError(ValidationError):
    """No verification code issued for the email."""

    def __init__(self) -> None:
        super().__init__("No verification code found", code="NO_CODE_FOUND")


class CodeExpiredError(ValidationError):
    """Verification code is past its expiry."""

    def __init__(self) -> None:
        super().__init__("Verification code expired", code="CODE_EXPIRED")


class CodeMismatchError(ValidationError):
    """Submitted code differs from the issued one."""

    def __init__(self) -> None:
        super().__init__("Invalid verification code", code="CODE_MISMATCH")


# =============================================================================
# Publish bearer
# =============================================================================


class TokenNotFoundError(UnauthorizedError):
    """Bearer does not resolve to any grant."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired token", code="TOKEN_NOT_FOUND")


class TokenExpiredError(UnauthorizedError):
    """Bearer resolved but its validity window has elapsed."""

    def __init__(self) -> None:
        super().__init__("Invalid or expired token", code="TOKEN_EXPIRED")


# =============================================================================
# Management tokens
# =============================================================================


class ManagementNotFoundError(NotFoundError):
    """Management token absent or past its access window."""

    def __init__(self) -> None:
        super().__init__("Press release")
        self.message = "Invalid or expired management token"


class EditWindowExpiredError(ForbiddenError):
    """Release is older than the edit window."""

    def __init__(self) -> None:
        super().__init__(
            "PRs can only be edited within 24 hours of publication",
            code="EDIT_WINDOW_EXPIRED",
        )


class InvalidSignatureError(ValidationError):
    """Payment provider webhook signature did not verify."""

    def __init__(self) -> None:
        super().__init__("Invalid webhook signature", code="INVALID_SIGNATURE")
