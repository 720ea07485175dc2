"""Press-release publishing endpoint.

POST /press-releases with an Authorization: Bearer header carrying a
verification token, payment-verified bearer, admin bearer or (outside
production) a demo bearer.
"""

from typing import Literal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from presswire.api.deps import Bearer, Publisher
from presswire.core.rate_limiting import rate_limit
from presswire.core.responses import DataResponse
from presswire.models.records import CompanyInfo
from presswire.services.press_release_generation import ReleaseDraft

router = APIRouter()


class CompanyPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=200)
    cro_number: str = Field(default="", max_length=20)
    status: str = Field(default="", max_length=50)
    type: str = Field(default="", max_length=100)


class CreatePressReleaseRequest(BaseModel):
    """Request body for POST /press-releases."""

    model_config = ConfigDict(extra="forbid")

    company: CompanyPayload
    headline: str = Field(min_length=1, max_length=200)
    summary: str = Field(default="", max_length=1000)
    key_points: str = Field(default="", max_length=5000)
    contact: str = Field(default="", max_length=1000)
    package: Literal["starter", "professional", "enterprise"] = "starter"


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("generate-pr"))],
)
async def create_press_release(
    body: CreatePressReleaseRequest,
    bearer: Bearer,
    publisher: Publisher,
) -> DataResponse[dict]:
    """Generate and publish a press release.

    The management URL in the response is the only copy the caller gets
    besides the confirmation email.
    """
    draft = ReleaseDraft(
        company=CompanyInfo(**body.company.model_dump()),
        headline=body.headline,
        summary=body.summary,
        key_points=body.key_points,
        contact=body.contact,
        package=body.package,
    )
    published = await publisher.publish(bearer, draft)
    return DataResponse(
        data={
            "url": published.url,
            "management_url": published.management_url,
            "slug": published.slug,
            "headline": published.headline,
            "summary": published.summary,
            "content": published.content,
        }
    )
