"""Pydantic schemas for analysis endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class BrakeZoneSchema(BaseModel):
    """Braking interval in lap percent."""

    start: float
    end: float


class SegmentSchema(BaseModel):
    """Heatbar segment."""

    start: float
    end: float
    color: str
    hex: str


class CalloutSchema(BaseModel):
    """Brake deviation callout."""

    type: str
    zone_index: int
    delta: float | None = None
    severity: str
    pct: float
    detail: str = ""


class ConformancePointSchema(BaseModel):
    pct: float
    score: float
    throttle_ok: bool
    brake_ok: bool
    steer_ok: bool


class RollingGradePointSchema(BaseModel):
    pct: float
    grade: float


class TraceData(BaseModel):
    """Columnar reference/live channels aligned per point.

    Each list holds one value per resampled point; missing values are null.
    """

    pct: list[float | None]
    ref_throttle: list[float | None]
    live_throttle: list[float | None]
    ref_brake: list[float | None]
    live_brake: list[float | None]
    ref_steer: list[float | None]
    live_steer: list[float | None]


class AnalysisParamsSchema(BaseModel):
    """Knobs the analysis ran with."""

    step_pct: float
    tolerance_throttle: float
    tolerance_brake: float
    tolerance_steer: float
    window_pct: float
    on_threshold: float
    off_threshold: float
    min_width_pct: float
    start_delta_pct: float
    end_delta_pct: float
    press_delta_pct: float
    align: str


class AnalysisResponse(BaseModel):
    """Full comparison of the live lap against the reference lap."""

    session_id: str
    params: AnalysisParamsSchema
    has_live: bool
    mean_score: float | None = None
    traces: TraceData
    ref_zones: list[BrakeZoneSchema]
    live_zones: list[BrakeZoneSchema]
    conformance: list[ConformancePointSchema]
    score_segments: list[SegmentSchema]
    channel_segments: dict[str, list[SegmentSchema]]
    rolling_grade: list[RollingGradePointSchema]
    grade_segments: list[SegmentSchema]
    callouts: list[CalloutSchema]


class PublishResponse(BaseModel):
    """Zones published to the overlay."""

    session_id: str
    version: int
    lead_time_s: float
    zones: list[BrakeZoneSchema]
