"""Domain verification endpoints.

Endpoints:
- POST /verification/request-code: email a 6-digit code to a company address
- POST /verification/submit-code: exchange the code for a verification token
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from presswire.api.deps import VerificationServiceDep
from presswire.core.rate_limiting import rate_limit
from presswire.core.responses import DataResponse

router = APIRouter()

_rate_limited = [Depends(rate_limit("verify-domain"))]


class RequestCodeRequest(BaseModel):
    """Request body for POST /verification/request-code."""

    model_config = ConfigDict(extra="forbid")

    email: str = Field(max_length=320)


class SubmitCodeRequest(BaseModel):
    """Request body for POST /verification/submit-code."""

    model_config = ConfigDict(extra="forbid")

    email: str = Field(max_length=320)
    code: str = Field(max_length=16)


@router.post("/request-code", dependencies=_rate_limited)
async def request_code(
    body: RequestCodeRequest,
    service: VerificationServiceDep,
) -> DataResponse[dict]:
    """Issue a verification code.

    The email is sent in the background; a delivery failure never fails
    this request. Outside production the code is echoed for testing.
    """
    issued = await service.request_code(body.email)
    data = {
        "message": "Verification code sent to your email",
        "domain": issued.domain,
        "is_trusted_tld": issued.is_trusted_tld,
        "expires_at": issued.expires_at,
    }
    if issued.code is not None:
        data["code"] = issued.code
    return DataResponse(data=data)


@router.post("/submit-code", dependencies=_rate_limited)
async def submit_code(
    body: SubmitCodeRequest,
    service: VerificationServiceDep,
) -> DataResponse[dict]:
    """Consume a code and mint a verification token (valid 1 hour)."""
    token = service.submit_code(body.email, body.code)
    return DataResponse(
        data={
            "token": token.token,
            "domain": token.domain,
            "is_trusted_tld": token.is_trusted_tld,
            "expires_at": token.expires_at,
        }
    )
