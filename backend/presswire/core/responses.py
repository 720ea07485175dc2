"""JSON envelopes.

Success bodies are {"data": ...}; failures are {"error": {...}}. The static
site checks for the "error" key before reading anything else.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Success envelope returned by every /api/v1 endpoint."""

    data: T


class ErrorDetail(BaseModel):
    """Body of the error envelope (see APIError for field meanings)."""

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    error: ErrorDetail
