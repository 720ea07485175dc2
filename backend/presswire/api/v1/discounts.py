"""Discount code validation (checkout page)."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from presswire.api.deps import Discounts
from presswire.core.rate_limiting import rate_limit
from presswire.core.responses import DataResponse

router = APIRouter()


class ValidateDiscountRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: str = Field(default="", max_length=50)


@router.post("/validate", dependencies=[Depends(rate_limit("discounts"))])
async def validate_discount(
    body: ValidateDiscountRequest, discounts: Discounts
) -> DataResponse[dict]:
    """Check a code; usage is only counted when the payment completes."""
    return DataResponse(data=discounts.validate(body.code))
