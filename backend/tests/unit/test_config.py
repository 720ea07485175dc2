"""Tests for settings validation."""

import pytest
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from conftest import TEST_ADMIN_TOKEN, TEST_AUTH_SECRET, make_settings


class TestProductionSecurity:
    """Production refuses insecure defaults."""

    def test_development_accepts_defaults(self):
        settings = make_settings(
            environment="development",
            auth_secret=SecretStr("presswire-dev-secret"),
            admin_token=SecretStr("admin-secret-dev"),
        )
        assert not settings.is_production

    def test_production_rejects_default_auth_secret(self):
        with pytest.raises(PydanticValidationError, match="default AUTH_SECRET"):
            make_settings(
                environment="production",
                auth_secret=SecretStr("presswire-dev-secret"),
            )

    def test_production_rejects_short_auth_secret(self):
        with pytest.raises(PydanticValidationError, match="at least 32"):
            make_settings(environment="production", auth_secret=SecretStr("short"))

    def test_production_rejects_default_admin_token(self):
        with pytest.raises(PydanticValidationError, match="ADMIN_TOKEN"):
            make_settings(
                environment="production",
                admin_token=SecretStr("admin-secret-dev"),
            )

    def test_production_accepts_real_secrets(self):
        settings = make_settings(
            environment="production",
            auth_secret=SecretStr(TEST_AUTH_SECRET),
            admin_token=SecretStr(TEST_ADMIN_TOKEN),
        )
        assert settings.is_production


class TestGeneralValidation:
    """Checks applied in every environment."""

    def test_wildcard_origin_rejected(self):
        with pytest.raises(PydanticValidationError, match="wildcard"):
            make_settings(allowed_origins=["*"])

    def test_suffix_must_start_with_dot(self):
        with pytest.raises(PydanticValidationError, match="TRUSTED_SUFFIX"):
            make_settings(trusted_suffix="ie")

    def test_denylist_contains_common_webmail(self):
        settings = make_settings()
        assert {"gmail.com", "outlook.com", "yahoo.com"} <= settings.denylisted_domains
