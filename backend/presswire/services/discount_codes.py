"""Discount codes applied at checkout.

Launch codes are seeded at start-up; admins generate single-purpose codes.
Usage is only counted when a payment completes (record_use), never on
validation, and the increment goes through compare_and_swap so two
concurrent checkouts cannot both take the last use.
"""

import logging
import secrets
from dataclasses import asdict, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from presswire.core.errors import NotFoundError, ValidationError
from presswire.core.store import Clock, KeyValueStore, StoreConflictError, utc_now
from presswire.models.records import DiscountCode

logger = logging.getLogger(__name__)

DISCOUNT_KEY_PREFIX = "discount:"

ALLOWED_GENERATED_PERCENTS = (10, 25, 50, 100)
_CODE_PREFIXES = ("SAVE", "DEAL", "PROMO", "PRESS")

# Average package price used for the admin "discount given" statistic
_AVERAGE_PRICE_EUR = 199

LAUNCH_CODES: tuple[DiscountCode, ...] = (
    DiscountCode(
        code="LAUNCH50",
        discount_percent=50,
        description="Launch discount - 50% off",
        valid_until=datetime(2025, 12, 31, tzinfo=UTC),
        usage_limit=100,
    ),
    DiscountCode(
        code="EARLY30",
        discount_percent=30,
        description="Early bird - 30% off",
        valid_until=datetime(2025, 10, 31, tzinfo=UTC),
        usage_limit=50,
    ),
    DiscountCode(
        code="FRIEND20",
        discount_percent=20,
        description="Friends & Family - 20% off",
        valid_until=datetime(2026, 12, 31, tzinfo=UTC),
        usage_limit=None,
    ),
    DiscountCode(
        code="STARTUP25",
        discount_percent=25,
        description="Startup discount - 25% off",
        valid_until=datetime(2025, 12, 31, tzinfo=UTC),
        usage_limit=200,
    ),
)


def discount_key(code: str) -> str:
    return f"{DISCOUNT_KEY_PREFIX}{code.upper()}"


class DiscountCodeService:
    """Validates, generates and tracks discount codes."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        seed: tuple[DiscountCode, ...] = LAUNCH_CODES,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._clock = clock
        for code in seed:
            # Keep existing usage counts if the store already knows the code
            self._store.compare_and_swap(discount_key(code.code), None, code)

    def _all(self) -> list[DiscountCode]:
        codes = (self._store.get(key) for key in self._store.keys(DISCOUNT_KEY_PREFIX))
        return [code for code in codes if code is not None]

    def _rejection(self, discount: DiscountCode | None) -> str | None:
        if discount is None or not discount.active:
            return "Invalid discount code"
        if discount.valid_until is not None and self._clock() > discount.valid_until:
            return "This discount code has expired"
        if discount.usage_limit is not None and discount.usage_count >= discount.usage_limit:
            return "This discount code has reached its usage limit"
        return None

    def validate(self, code: str) -> dict[str, Any]:
        """Check a code without consuming it.

        Returns:
            {"valid": False, "error": ...} or {"valid": True, "discount": {...}}.

        Raises:
            ValidationError: Empty code.
        """
        if not code or not code.strip():
            raise ValidationError("No discount code provided")
        discount: DiscountCode | None = self._store.get(discount_key(code.strip()))
        reason = self._rejection(discount)
        if reason is not None:
            return {"valid": False, "error": reason}
        return {
            "valid": True,
            "discount": {
                "code": discount.code,
                "discount_percent": discount.discount_percent,
                "description": discount.description,
            },
            "message": f"{discount.description} applied successfully!",
        }

    def record_use(self, code: str) -> bool:
        """Count one use after a completed payment.

        Returns:
            False if the code is unknown, inactive, expired or exhausted.
        """
        counted = False

        def apply(current: DiscountCode) -> DiscountCode:
            nonlocal counted
            counted = self._rejection(current) is None
            if not counted:
                return current
            return replace(current, usage_count=current.usage_count + 1)

        try:
            self._store.update(discount_key(code), apply)
        except KeyError:
            return False
        except StoreConflictError:
            logger.warning("Discount code %s usage update lost to contention", code)
            return False
        return counted

    # =========================================================================
    # Admin operations
    # =========================================================================

    def generate(
        self,
        *,
        discount_percent: int = 10,
        valid_days: int = 30,
        max_uses: int = 1,
        description: str = "",
    ) -> DiscountCode:
        """Create a random admin discount code (e.g. SAVE-3FA9C1).

        Raises:
            ValidationError: Percent not one of 10, 25, 50, 100.
        """
        if discount_percent not in ALLOWED_GENERATED_PERCENTS:
            raise ValidationError(
                "Invalid discount percentage. Must be 10, 25, 50, or 100"
            )
        if valid_days <= 0 or max_uses <= 0:
            raise ValidationError("valid_days and max_uses must be positive")
        now = self._clock()
        while True:
            prefix = _CODE_PREFIXES[secrets.randbelow(len(_CODE_PREFIXES))]
            discount = DiscountCode(
                code=f"{prefix}-{secrets.token_hex(3).upper()}",
                discount_percent=discount_percent,
                description=description,
                valid_until=now + timedelta(days=valid_days),
                usage_limit=max_uses,
                created_at=now,
            )
            if self._store.compare_and_swap(discount_key(discount.code), None, discount):
                return discount

    def list_active(self) -> list[dict[str, Any]]:
        """Active, unexpired codes with remaining uses."""
        now = self._clock()
        active = [
            code
            for code in self._all()
            if code.active and (code.valid_until is None or code.valid_until > now)
        ]
        result = []
        for code in sorted(active, key=lambda c: c.code):
            data = asdict(code)
            data["remaining_uses"] = (
                None if code.usage_limit is None else code.usage_limit - code.usage_count
            )
            result.append(data)
        return result

    def revoke(self, code: str) -> DiscountCode:
        """Deactivate a code.

        Raises:
            ValidationError: Empty code.
            NotFoundError: Unknown code.
        """
        if not code:
            raise ValidationError("Token code required")
        try:
            return self._store.update(
                discount_key(code), lambda current: replace(current, active=False)
            )
        except KeyError:
            raise NotFoundError("Discount code", code) from None

    def stats(self) -> dict[str, Any]:
        """Aggregate counts for the admin dashboard."""
        now = self._clock()
        codes = self._all()
        total_discount = sum(
            _AVERAGE_PRICE_EUR * code.discount_percent / 100 * code.usage_count
            for code in codes
        )
        by_percent: dict[str, int] = {}
        for code in codes:
            label = f"{code.discount_percent}%"
            by_percent[label] = by_percent.get(label, 0) + 1
        return {
            "total_codes": len(codes),
            "active_codes": sum(
                1
                for c in codes
                if c.active and (c.valid_until is None or c.valid_until > now)
            ),
            "used_codes": sum(1 for c in codes if c.usage_count > 0),
            "expired_codes": sum(
                1 for c in codes if c.valid_until is not None and c.valid_until <= now
            ),
            "total_discount_value": f"€{total_discount:.2f}",
            "codes_by_discount": by_percent,
        }
