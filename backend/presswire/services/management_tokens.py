"""Management-token store.

Each published release gets a long-lived management token granting
edit / unpublish / extend rights over that one release.

Windows (anchored on created_at):
- edits allowed while age <= 24 hours
- any access allowed while age <= 7 days, or indefinitely once extended

Every mutation is a compare_and_swap loop on the single record
(KeyValueStore.update), so concurrent edits never lose an increment.
"""

import logging
import secrets
from dataclasses import asdict, replace
from datetime import datetime, timedelta
from typing import Any

from presswire.core.config import Settings
from presswire.core.errors import (
    EditWindowExpiredError,
    ManagementNotFoundError,
    PaymentRequiredError,
    ValidationError,
)
from presswire.core.store import Clock, KeyValueStore, utc_now
from presswire.models.records import ManagementRecord

logger = logging.getLogger(__name__)

EDIT_WINDOW = timedelta(hours=24)
ACCESS_WINDOW = timedelta(days=7)

# Length caps match CreatePressReleaseRequest; content holds the rendered body
EDITABLE_FIELDS = {
    "headline": 200,
    "summary": 1000,
    "content": 20000,
    "contact": 1000,
}

MAX_EXTENSION_DAYS = 365

MANAGEMENT_KEY_PREFIX = "mgmt:"


def management_key(token: str) -> str:
    return f"{MANAGEMENT_KEY_PREFIX}{token}"


def _clean_updates(fields: dict[str, Any]) -> dict[str, str]:
    updates: dict[str, str] = {}
    for name, max_length in EDITABLE_FIELDS.items():
        value = fields.get(name)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{name} must be a string", details=[{"field": name}])
        if len(value) > max_length:
            raise ValidationError(
                f"{name} must be at most {max_length} characters",
                details=[{"field": name, "max_length": max_length}],
            )
        updates[name] = value
    return updates


class ManagementTokenStore:
    """Issues management tokens and applies management operations.

    Args:
        settings: Application settings (environment, extension price).
        store: Key-value store for management records.
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

    def issue(self, release: ManagementRecord) -> str:
        """Store a freshly published release under a new management token.

        Token, created_at, edit_count and published on the passed record are
        overwritten.

        Returns:
            The management token (64 hex chars).
        """
        token = secrets.token_hex(32)
        record = replace(
            release,
            management_token=token,
            created_at=self._clock(),
            edit_count=0,
            published=True,
        )
        self._store.set(management_key(token), record)
        logger.info("Management token issued for %s", record.slug)
        return token

    def _is_accessible(self, record: ManagementRecord, now: datetime) -> bool:
        return record.extended or now - record.created_at <= ACCESS_WINDOW

    def get(self, token: str) -> ManagementRecord:
        """Fetch the record behind a management token.

        Raises:
            ManagementNotFoundError: Token unknown, or older than 7 days and
                not extended. The two cases are indistinguishable on purpose.
        """
        record: ManagementRecord | None = self._store.get(management_key(token))
        if record is None or not self._is_accessible(record, self._clock()):
            raise ManagementNotFoundError()
        return record

    def is_editable(self, record: ManagementRecord) -> bool:
        """Whether record is still inside its edit window."""
        return self._clock() - record.created_at <= EDIT_WINDOW

    @staticmethod
    def edit_deadline(record: ManagementRecord) -> datetime:
        return record.created_at + EDIT_WINDOW

    def view(self, token: str) -> dict[str, Any]:
        """Public view of a release (never includes the management token)."""
        record = self.get(token)
        data = asdict(record)
        data.pop("management_token")
        data["can_edit"] = self.is_editable(record)
        data["edit_deadline"] = self.edit_deadline(record)
        return data

    def edit(self, token: str, fields: dict[str, Any] | None) -> ManagementRecord:
        """Apply allow-listed field updates.

        Raises:
            ManagementNotFoundError: See get().
            EditWindowExpiredError: Release older than 24 hours.
            ValidationError: No allow-listed field supplied, or a supplied
                field is not a string or is too long.
        """
        self.get(token)
        updates = _clean_updates(fields or {})

        def apply(current: ManagementRecord) -> ManagementRecord:
            now = self._clock()
            if now - current.created_at > EDIT_WINDOW:
                raise EditWindowExpiredError()
            if not updates:
                raise ValidationError("No valid updates provided")
            return replace(
                current,
                **updates,
                edit_count=current.edit_count + 1,
                last_edited=now,
            )

        record = self._store.update(management_key(token), apply)
        logger.info("Release %s edited (edit #%d)", record.slug, record.edit_count)
        return record

    def unpublish(self, token: str) -> ManagementRecord:
        """Mark a release unpublished. Idempotent."""
        self.get(token)

        def apply(current: ManagementRecord) -> ManagementRecord:
            if not current.published:
                return current
            return replace(
                current,
                published=False,
                unpublished_at=self._clock(),
                unpublish_reason="User requested",
            )

        record = self._store.update(management_key(token), apply)
        logger.info("Release %s unpublished", record.slug)
        return record

    def extend(
        self,
        token: str,
        days: int | None = None,
        payment_proof: str | None = None,
    ) -> ManagementRecord:
        """Extend management access past the 7 day window.

        Raises:
            ManagementNotFoundError: See get().
            PaymentRequiredError: No payment proof outside development/test.
            ValidationError: days is not an integer in 1..MAX_EXTENSION_DAYS.
        """
        self.get(token)
        days = self._settings.extension_default_days if days is None else days
        if isinstance(days, bool) or not isinstance(days, int):
            raise ValidationError("days must be an integer")
        if not 1 <= days <= MAX_EXTENSION_DAYS:
            raise ValidationError(
                f"Extension days must be between 1 and {MAX_EXTENSION_DAYS}"
            )
        if not payment_proof and self._settings.is_production:
            raise PaymentRequiredError(
                "Extension requires payment",
                details=[
                    {
                        "price": self._settings.extension_price,
                        "extension_days": self._settings.extension_default_days,
                    }
                ],
            )

        def apply(current: ManagementRecord) -> ManagementRecord:
            now = self._clock()
            return replace(
                current,
                extended=True,
                extension_date=now,
                expires_at=now + timedelta(days=days),
            )

        record = self._store.update(management_key(token), apply)
        logger.info("Release %s management extended by %d days", record.slug, days)
        return record
