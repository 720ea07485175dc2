"""View tracking beacon posted by published release pages."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from presswire.api.deps import Analytics
from presswire.core.rate_limiting import rate_limit
from presswire.core.responses import DataResponse

router = APIRouter()


class TrackViewRequest(BaseModel):
    """Request body for POST /analytics/track."""

    model_config = ConfigDict(extra="forbid")

    slug: str = Field(max_length=200)
    session_id: str = Field(default="", max_length=100)
    referrer: str = Field(default="direct", max_length=500)


@router.post("/track", dependencies=[Depends(rate_limit("analytics"))])
async def track_view(body: TrackViewRequest, analytics: Analytics) -> DataResponse[dict]:
    record = analytics.track_view(body.slug, body.session_id, body.referrer)
    return DataResponse(data={"tracked": True, "views": record.views})
