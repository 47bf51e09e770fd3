"""Pydantic schemas for overlay endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from backend.api.schemas.analysis import BrakeZoneSchema


class OverlaySnapshotSchema(BaseModel):
    """Zones and lead time currently driving the overlay."""

    version: int
    session_id: str | None = None
    lead_time_s: float
    zones: list[BrakeZoneSchema]


class LeadTimeRequest(BaseModel):
    lead_time_s: float = Field(gt=0, le=30)


class AlertMessage(BaseModel):
    """Overlay state for one telemetry tick."""

    message: str
    severity: str
    pct: float | None = None
    lap_completed: bool = False
