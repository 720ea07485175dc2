"""Application configuration loaded from environment variables.

Settings for verification, publishing, payments, email, the LLM provider and
rate limiting. Uses pydantic-settings for validation and .env file support.

Components receive the Settings instance at construction time rather than
reading the environment themselves, so tests can build them with overrides.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure defaults that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_SECRET = "presswire-dev-secret"  # nosec B105
_INSECURE_DEFAULT_ADMIN_TOKEN = "admin-secret-dev"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Consumer webmail domains that cannot prove company ownership
DEFAULT_DENYLISTED_DOMAINS: frozenset[str] = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "live.com",
        "aol.com",
        "icloud.com",
        "protonmail.com",
        "yandex.com",
        "mail.com",
        "gmx.com",
        "zoho.com",
        "fastmail.com",
        "tutanota.com",
    }
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    environment: Literal["production", "development", "test"] = "development"
    log_level: str = "INFO"
    public_base_url: str = "https://presswire.ie"

    # CORS (Security)
    # Bearer tokens travel in headers, so credentials are never allowed.
    allowed_origins: list[str] = ["https://presswire.ie", "http://localhost:4000"]

    # Domain verification
    trusted_suffix: str = ".ie"
    denylisted_domains: frozenset[str] = DEFAULT_DENYLISTED_DOMAINS
    verification_code_ttl_minutes: int = 10
    verification_token_ttl_minutes: int = 60
    # When true, a successful publish deletes the verification token
    consume_verification_token: bool = False

    # Bearer markers and admin access
    auth_secret: SecretStr = SecretStr(_INSECURE_DEFAULT_SECRET)
    admin_token: SecretStr = SecretStr(_INSECURE_DEFAULT_ADMIN_TOKEN)

    # External call timeouts (seconds)
    dns_timeout_seconds: float = 5.0
    email_timeout_seconds: float = 10.0
    content_store_timeout_seconds: float = 15.0
    llm_timeout_seconds: float = 30.0

    # Email (Resend)
    email_enabled: bool = True
    email_from: str = "PressWire.ie <noreply@presswire.ie>"
    resend_api_key: SecretStr = SecretStr("")

    # Payments (Stripe)
    stripe_secret_key: SecretStr = SecretStr("")
    stripe_webhook_secret: SecretStr = SecretStr("")
    extension_price: str = "€29"
    extension_default_days: int = 30

    # LLM (OpenRouter, OpenAI-compatible)
    openrouter_api_key: SecretStr = SecretStr("")
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    llm_model: str = "google/gemini-2.0-flash:free"

    # Content store (GitHub contents API)
    github_token: SecretStr = SecretStr("")
    github_owner: str = "BuddySpuds"
    github_repo: str = "presswire-ie"
    github_branch: str = "main"

    # Rate Limiting (Security)
    rate_limit_enabled: bool = True  # Disable for testing
    rate_limit_blocked_ips: frozenset[str] = frozenset()

    @property
    def is_production(self) -> bool:
        """True when running with production safeguards."""
        return self.environment == "production"

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Security: Prevents deployment with known insecure defaults.
        Checks:
        - Trusted suffix must start with a dot (all environments)
        - CORS must not use wildcard origin (all environments)
        - AUTH_SECRET must not be the default and must be >= 32 chars in production
        - ADMIN_TOKEN must not be the default in production
        """
        if not self.trusted_suffix.startswith("."):
            msg = f"TRUSTED_SUFFIX must start with '.'. Got: {self.trusted_suffix}"
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "List the frontend origins explicitly."
            )
            raise ValueError(msg)

        if self.is_production:
            secret_value = self.auth_secret.get_secret_value()
            if secret_value == _INSECURE_DEFAULT_SECRET:
                msg = (
                    "Cannot use default AUTH_SECRET in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters for adequate security."
                )
                raise ValueError(msg)
            if self.admin_token.get_secret_value() == _INSECURE_DEFAULT_ADMIN_TOKEN:
                msg = (
                    "Cannot use default ADMIN_TOKEN in production. "
                    "Set ADMIN_TOKEN environment variable to a secure value."
                )
                raise ValueError(msg)

        return self


settings = Settings()
