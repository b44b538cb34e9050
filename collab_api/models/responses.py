"""Response models for API endpoints."""

from pydantic import BaseModel
from typing import Any


class UpdateResponse(BaseModel):
    """Response for PATCH on a playlist item."""

    ok: bool = True


class VoteResponse(BaseModel):
    """Response when voting on an item."""

    id: str
    votes: int


class ErrorDetail(BaseModel):
    """Error payload."""

    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Error response."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    subscribers: int
    last_event_id: int
    uptime_seconds: int
