"""Stripe payment webhook handling and payment-verified bearers.

A verified checkout.session.completed event records a PaidSession. The
browser, returning from checkout, claims the session once and receives a
payment-verified bearer (valid 5 minutes) for the publish endpoint.

Signature verification is a precondition for trusting anything in the
event; unverified payloads are rejected before they are parsed.
"""

import json
import logging
from dataclasses import replace
from typing import Any

import stripe

from presswire.core.config import Settings
from presswire.core.errors import (
    ConflictError,
    InternalError,
    InvalidSignatureError,
    NotFoundError,
)
from presswire.core.store import Clock, KeyValueStore, utc_now
from presswire.models.records import PaidSession
from presswire.services.discount_codes import DiscountCodeService
from presswire.services.publish_gate import PublishGate, payment_key

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_FAILED = "payment_intent.payment_failed"


def verify_signature(payload: bytes, signature: str | None, secret: str) -> dict[str, Any]:
    """Verify a Stripe webhook signature and decode the event.

    Args:
        payload: Raw request body, exactly as received.
        signature: Value of the Stripe-Signature header.
        secret: Webhook signing secret.

    Returns:
        The event as a plain dict.

    Raises:
        InvalidSignatureError: Missing/bad signature or undecodable payload.
    """
    if not signature:
        raise InvalidSignatureError()
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
        return json.loads(payload)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise InvalidSignatureError() from exc
    except ValueError as exc:
        logger.warning("Webhook payload could not be decoded")
        raise InvalidSignatureError() from exc


class PaymentService:
    """Processes verified payment events.

    Args:
        settings: Application settings (webhook secret).
        store: Key-value store for paid sessions.
        gate: Publish gate used to mint payment-verified bearers.
        discounts: Discount code tracker (usage counted on completion).
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        gate: PublishGate,
        discounts: DiscountCodeService,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._store = store
        self._gate = gate
        self._discounts = discounts
        self._clock = clock

    def handle_webhook(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify and dispatch one webhook delivery.

        Raises:
            InternalError: Webhook secret not configured.
            InvalidSignatureError: Signature did not verify.
        """
        secret = self._settings.stripe_webhook_secret.get_secret_value()
        if not secret:
            logger.error("STRIPE_WEBHOOK_SECRET not configured")
            raise InternalError("Webhook secret not configured")

        event = verify_signature(payload, signature, secret)
        event_type = event.get("type", "")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info("Received webhook event %s (%s)", event.get("id"), event_type)

        if event_type == CHECKOUT_COMPLETED:
            self._record_checkout(obj)
        elif event_type == PAYMENT_FAILED:
            logger.warning("Payment failed for intent %s", obj.get("id"))
        else:
            logger.info("Unhandled event type: %s", event_type)

        return {"received": True, "type": event_type}

    def _record_checkout(self, session: dict[str, Any]) -> None:
        session_id = session.get("id")
        if not session_id:
            logger.warning("checkout.session.completed without a session id")
            return
        details = session.get("customer_details") or {}
        email = (details.get("email") or session.get("customer_email") or "").lower()
        metadata = session.get("metadata") or {}
        paid = PaidSession(
            session_id=session_id,
            email=email,
            package=metadata.get("package_type") or "starter",
            amount_total=session.get("amount_total"),
            currency=session.get("currency"),
            paid_at=self._clock(),
        )
        # Stripe retries deliveries; the first one wins
        if not self._store.compare_and_swap(payment_key(session_id), None, paid):
            logger.info("Checkout %s already recorded", session_id)
            return

        discount_code = metadata.get("discount_code")
        if discount_code and not self._discounts.record_use(discount_code):
            logger.warning("Discount code %s could not be counted", discount_code)

        logger.info("Checkout %s recorded (%s)", session_id, paid.package)

    def claim(self, session_id: str) -> str:
        """Exchange a paid session for a payment-verified bearer, once.

        Raises:
            NotFoundError: Session not (yet) confirmed by a webhook.
            ConflictError: Session already claimed.
        """
        key = payment_key(session_id)
        current: PaidSession | None = self._store.get(key)
        if current is None:
            raise NotFoundError("Payment session")
        if current.claimed or not self._store.compare_and_swap(
            key, current, replace(current, claimed=True)
        ):
            raise ConflictError("ALREADY_CLAIMED", "Payment session already claimed")
        return self._gate.mint_payment_bearer(session_id)
