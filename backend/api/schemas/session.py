"""Pydantic schemas for session-related endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SessionSummary(BaseModel):
    """Lightweight session summary returned in list views."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    reference_name: str
    live_name: str | None = None
    n_reference_samples: int
    n_live_samples: int = 0
    rows_dropped: int = 0
    recorded_laps: int = 0
    created_at: datetime


class SessionList(BaseModel):
    """List of session summaries."""

    items: list[SessionSummary]
    total: int


class UploadResponse(BaseModel):
    """Response after uploading a reference (and optional live) lap."""

    session_id: str
    message: str
    session: SessionSummary
