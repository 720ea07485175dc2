"""Payment endpoints.

Endpoints:
- POST /payments/webhook: Stripe webhook (raw body, Stripe-Signature header)
- POST /payments/claim: exchange a paid checkout session for a publish bearer
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, ConfigDict, Field

from presswire.api.deps import Payments
from presswire.core.rate_limiting import rate_limit
from presswire.core.responses import DataResponse
from presswire.services.publish_gate import PAYMENT_BEARER_TTL

router = APIRouter()


class ClaimRequest(BaseModel):
    """Request body for POST /payments/claim."""

    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(min_length=1, max_length=255)


@router.post("/webhook", dependencies=[Depends(rate_limit("payments"))])
async def stripe_webhook(
    request: Request,
    payments: Payments,
    stripe_signature: Annotated[str | None, Header(alias="Stripe-Signature")] = None,
) -> DataResponse[dict]:
    """Receive a Stripe event.

    The body must be read raw; re-serialized JSON would not match the
    signature.
    """
    payload = await request.body()
    return DataResponse(data=payments.handle_webhook(payload, stripe_signature))


@router.post("/claim", dependencies=[Depends(rate_limit("payments"))])
async def claim_session(body: ClaimRequest, payments: Payments) -> DataResponse[dict]:
    token = payments.claim(body.session_id)
    return DataResponse(
        data={
            "token": token,
            "expires_in": int(PAYMENT_BEARER_TTL.total_seconds()),
        }
    )
