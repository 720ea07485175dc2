"""Tests for discount code validation, usage and admin operations."""

from datetime import UTC, datetime

import pytest

from presswire.core.errors import NotFoundError, ValidationError
from presswire.models.records import DiscountCode
from presswire.services.discount_codes import DiscountCodeService, discount_key


@pytest.fixture
def discounts(store, clock):
    return DiscountCodeService(store, clock=clock)


def _limited(store, code="PILOT10", limit=1, used=0):
    store.set(
        discount_key(code),
        DiscountCode(
            code=code,
            discount_percent=10,
            description="Pilot - 10% off",
            valid_until=datetime(2026, 12, 31, tzinfo=UTC),
            usage_limit=limit,
            usage_count=used,
        ),
    )


class TestValidate:
    def test_valid_seeded_code_case_insensitive(self, discounts):
        result = discounts.validate("friend20")
        assert result["valid"] is True
        assert result["discount"]["discount_percent"] == 20

    def test_expired_launch_code(self, discounts):
        result = discounts.validate("LAUNCH50")
        assert result == {"valid": False, "error": "This discount code has expired"}

    def test_unknown_code(self, discounts):
        assert discounts.validate("NOPE")["error"] == "Invalid discount code"

    def test_exhausted_code(self, discounts, store):
        _limited(store, used=1)
        assert discounts.validate("PILOT10")["error"].endswith("usage limit")

    def test_empty_code_is_validation_error(self, discounts):
        with pytest.raises(ValidationError):
            discounts.validate("  ")

    def test_validation_does_not_count_usage(self, discounts, store):
        discounts.validate("FRIEND20")
        assert store.get(discount_key("FRIEND20")).usage_count == 0


class TestRecordUse:
    def test_counts_one_use(self, discounts, store):
        assert discounts.record_use("FRIEND20") is True
        assert store.get(discount_key("FRIEND20")).usage_count == 1

    def test_last_use_cannot_be_taken_twice(self, discounts, store):
        _limited(store, limit=1)
        assert discounts.record_use("PILOT10") is True
        assert discounts.record_use("PILOT10") is False
        assert store.get(discount_key("PILOT10")).usage_count == 1

    def test_unknown_code(self, discounts):
        assert discounts.record_use("NOPE") is False

    def test_seeding_keeps_existing_usage(self, store, clock):
        DiscountCodeService(store, clock=clock).record_use("FRIEND20")
        DiscountCodeService(store, clock=clock)
        assert store.get(discount_key("FRIEND20")).usage_count == 1


class TestAdminOperations:
    def test_generate(self, discounts, clock):
        code = discounts.generate(discount_percent=25, valid_days=7, max_uses=3)
        assert code.code.split("-")[0] in {"SAVE", "DEAL", "PROMO", "PRESS"}
        assert code.usage_limit == 3
        assert (code.valid_until - clock.now).days == 7
        assert discounts.validate(code.code)["valid"] is True

    @pytest.mark.parametrize("percent", [0, 5, 30, 99])
    def test_generate_rejects_other_percentages(self, discounts, percent):
        with pytest.raises(ValidationError):
            discounts.generate(discount_percent=percent)

    def test_list_active_excludes_expired(self, discounts):
        codes = {c["code"] for c in discounts.list_active()}
        assert "FRIEND20" in codes
        assert "LAUNCH50" not in codes

    def test_revoke(self, discounts):
        revoked = discounts.revoke("friend20")
        assert revoked.active is False
        assert discounts.validate("FRIEND20")["valid"] is False

    def test_revoke_unknown(self, discounts):
        with pytest.raises(NotFoundError):
            discounts.revoke("NOPE")

    def test_stats(self, discounts):
        discounts.record_use("FRIEND20")
        stats = discounts.stats()
        assert stats["total_codes"] == 4
        assert stats["used_codes"] == 1
        assert stats["expired_codes"] == 3
        assert stats["total_discount_value"] == "€39.80"
