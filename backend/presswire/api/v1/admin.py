"""Admin endpoint.

POST /admin with Authorization: Bearer <ADMIN_TOKEN> and {action, data}.

Actions:
- generate-admin-pr-token: one-hour bearer that publishes without payment
- generate-discount: random single-purpose discount code
- list-discounts: active codes with remaining uses
- revoke-discount: deactivate a code
- get-stats: discount usage summary
"""

from dataclasses import asdict
from typing import Any, TypeVar

import pydantic
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from presswire.api.deps import AdminAccess, Discounts, Gate
from presswire.core.errors import ValidationError
from presswire.core.rate_limiting import rate_limit
from presswire.core.responses import DataResponse
from presswire.services.discount_codes import DiscountCodeService
from presswire.services.publish_gate import ADMIN_BEARER_TTL, PublishGate

router = APIRouter()

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class AdminRequest(BaseModel):
    """Request body for POST /admin."""

    model_config = ConfigDict(extra="forbid")

    action: str = Field(default="", max_length=50)
    data: dict[str, Any] | None = None


class GenerateDiscountData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    discount_percent: int = 10
    valid_days: int = 30
    max_uses: int = 1
    description: str = Field(default="", max_length=200)


class RevokeDiscountData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str = Field(default="", max_length=50)


def _parse(model: type[_ModelT], data: dict[str, Any]) -> _ModelT:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ValidationError(
            "Invalid action data",
            details=[
                {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                for e in exc.errors()
            ],
        ) from exc


def _generate_admin_pr_token(gate: PublishGate, _d: DiscountCodeService, _data: dict) -> dict:
    return {
        "token": gate.mint_admin_bearer(),
        "expires_in": int(ADMIN_BEARER_TTL.total_seconds()),
        "message": "Admin PR token generated. Valid for 1 hour.",
    }


def _generate_discount(_g: PublishGate, discounts: DiscountCodeService, data: dict) -> dict:
    params = _parse(GenerateDiscountData, data)
    discount = discounts.generate(
        discount_percent=params.discount_percent,
        valid_days=params.valid_days,
        max_uses=params.max_uses,
        description=params.description
        or f"{params.discount_percent}% discount code",
    )
    return {"discount": asdict(discount)}


def _list_discounts(_g: PublishGate, discounts: DiscountCodeService, _data: dict) -> dict:
    return {"codes": discounts.list_active()}


def _revoke_discount(_g: PublishGate, discounts: DiscountCodeService, data: dict) -> dict:
    params = _parse(RevokeDiscountData, data)
    revoked = discounts.revoke(params.code)
    return {"message": f"Discount code {revoked.code} revoked", "code": revoked.code}


def _get_stats(_g: PublishGate, discounts: DiscountCodeService, _data: dict) -> dict:
    return {"stats": discounts.stats()}


_ACTIONS = {
    "generate-admin-pr-token": _generate_admin_pr_token,
    "generate-discount": _generate_discount,
    "list-discounts": _list_discounts,
    "revoke-discount": _revoke_discount,
    "get-stats": _get_stats,
}


@router.post("", dependencies=[Depends(rate_limit("admin"))])
async def admin_action(
    body: AdminRequest,
    _admin: AdminAccess,
    gate: Gate,
    discounts: Discounts,
) -> DataResponse[dict]:
    handler = _ACTIONS.get(body.action)
    if handler is None:
        raise ValidationError("Invalid action", code="INVALID_ACTION")
    return DataResponse(data=handler(gate, discounts, body.data or {}))
