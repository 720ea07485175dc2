"""Release management endpoint.

POST /manage with {action, management_token, data}. The management token
is the only credential; it is checked before the action is dispatched.

Actions: get-pr, edit-pr, unpublish-pr, get-analytics, extend-pr.
"""

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from presswire.api.deps import Analytics, ManagementStore
from presswire.core.errors import UnauthorizedError, ValidationError
from presswire.core.rate_limiting import rate_limit
from presswire.core.responses import DataResponse
from presswire.services.analytics import AnalyticsService
from presswire.services.management_tokens import ManagementTokenStore

router = APIRouter()


class ManageRequest(BaseModel):
    """Request body for POST /manage."""

    model_config = ConfigDict(extra="forbid")

    action: str = Field(default="", max_length=50)
    management_token: str | None = Field(default=None, max_length=128)
    data: dict[str, Any] | None = None


Handler = Callable[[ManagementTokenStore, AnalyticsService, str, dict[str, Any]], dict]


def _get_pr(store: ManagementTokenStore, _a: AnalyticsService, token: str, _d: dict) -> dict:
    return {"pr": store.view(token)}


def _edit_pr(store: ManagementTokenStore, _a: AnalyticsService, token: str, data: dict) -> dict:
    record = store.edit(token, data)
    return {
        "message": "Press release updated successfully",
        "edit_count": record.edit_count,
        "last_edited": record.last_edited,
    }


def _unpublish_pr(
    store: ManagementTokenStore, _a: AnalyticsService, token: str, _d: dict
) -> dict:
    record = store.unpublish(token)
    return {
        "message": "Press release unpublished successfully",
        "unpublished_at": record.unpublished_at,
    }


def _get_analytics(
    store: ManagementTokenStore, analytics: AnalyticsService, token: str, _d: dict
) -> dict:
    return {"analytics": analytics.summary(store.get(token))}


def _extend_pr(store: ManagementTokenStore, _a: AnalyticsService, token: str, data: dict) -> dict:
    record = store.extend(token, days=data.get("days"), payment_proof=data.get("payment_proof"))
    return {
        "message": "Management access extended",
        "expires_at": record.expires_at,
    }


_ACTIONS: dict[str, Handler] = {
    "get-pr": _get_pr,
    "edit-pr": _edit_pr,
    "unpublish-pr": _unpublish_pr,
    "get-analytics": _get_analytics,
    "extend-pr": _extend_pr,
}


@router.post("", dependencies=[Depends(rate_limit("manage-pr"))])
async def manage(
    body: ManageRequest,
    store: ManagementStore,
    analytics: Analytics,
) -> DataResponse[dict]:
    """Dispatch one management action.

    Status mapping: 401 no token, 404 unknown or lapsed token, 400 unknown
    action, then whatever the action raises (403 edit window, 402 payment).
    """
    if not body.management_token:
        raise UnauthorizedError("Management token required")
    # Unknown and lapsed tokens fail here, before the action is looked at
    store.get(body.management_token)

    handler = _ACTIONS.get(body.action)
    if handler is None:
        raise ValidationError("Invalid action", code="INVALID_ACTION")
    return DataResponse(data=handler(store, analytics, body.management_token, body.data or {}))
