"""Control API models."""

from typing import Optional

from pydantic import BaseModel, Field


class EditingRequest(BaseModel):
    """Body for /api/editing, sent by the flip chart editor."""

    editing: bool


class VisibilityRequest(BaseModel):
    """Body for /api/visibility, sent on page visibility changes."""

    visible: bool


class ViewportRequest(BaseModel):
    """Body for /api/viewport, sent on load and on every resize."""

    width: float = Field(..., ge=0)
    height: float = Field(..., ge=0)
    user_agent: Optional[str] = None


class ViewRequest(BaseModel):
    """Body for /api/view (manual tab selection)."""

    view: str


class DisplayModeResponse(BaseModel):
    """Response for /api/viewport."""

    mode: str
    width: float
    height: float


class RotationResponse(BaseModel):
    """Response for rotation control endpoints."""

    active_view: str
    paused: bool


class StatusResponse(BaseModel):
    """Response for /status."""

    status: str = "running"
    version: str
    timestamp: str
    store_url: str
    session_started: bool
    topics: dict
