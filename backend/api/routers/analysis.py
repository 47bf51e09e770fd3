"""Analysis endpoints: lap comparison, conformance export, publish zones to the overlay."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Annotated

from brakepoint.broadcast import ZoneBroadcaster
from brakepoint.callouts import BrakeCalloutOptions
from brakepoint.conformance import Tolerances
from brakepoint.engine import AnalysisParams, LapAnalysis
from brakepoint.grading import COLOR_HEX, GradeColor, Segment
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from backend.api.config import Settings
from backend.api.dependencies import get_broadcaster, get_settings
from backend.api.schemas.analysis import (
    AnalysisParamsSchema,
    AnalysisResponse,
    BrakeZoneSchema,
    CalloutSchema,
    ConformancePointSchema,
    PublishResponse,
    RollingGradePointSchema,
    SegmentSchema,
    TraceData,
)
from backend.api.services import session_store
from backend.api.services.pipeline import export_conformance, run_analysis
from backend.api.services.serializers import dataclass_to_dict, dataframe_to_columnar

logger = logging.getLogger(__name__)

router = APIRouter()

_TRACE_COLUMNS = [
    "pct",
    "ref_throttle",
    "live_throttle",
    "ref_brake",
    "live_brake",
    "ref_steer",
    "live_steer",
]


def _get_session_or_404(session_id: str) -> session_store.SessionData:
    """Retrieve session data or raise 404."""
    sd = session_store.get_session(session_id)
    if sd is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return sd


def get_analysis_params(
    settings: Annotated[Settings, Depends(get_settings)],
    step_pct: Annotated[float | None, Query(gt=0, le=10)] = None,
    tol_throttle: Annotated[float | None, Query(ge=0)] = None,
    tol_brake: Annotated[float | None, Query(ge=0)] = None,
    tol_steer: Annotated[float | None, Query(ge=0)] = None,
    window_pct: Annotated[float | None, Query(gt=0, le=100)] = None,
    on_threshold: Annotated[float | None, Query(ge=0, le=100)] = None,
    off_threshold: Annotated[float | None, Query(ge=0, le=100)] = None,
    min_width_pct: Annotated[float | None, Query(ge=0)] = None,
    start_delta_pct: Annotated[float | None, Query(ge=0)] = None,
    end_delta_pct: Annotated[float | None, Query(ge=0)] = None,
    press_delta_pct: Annotated[float | None, Query(ge=0)] = None,
    align: Annotated[str | None, Query(pattern="^(index|pct)$")] = None,
) -> AnalysisParams:
    """Settings defaults overridden by any query parameter given."""
    base = settings.analysis_params()
    tol = base.tolerances
    opts = base.callout_options

    def pick(value: float | None, default: float) -> float:
        return default if value is None else value

    return replace(
        base,
        step_pct=pick(step_pct, base.step_pct),
        tolerances=Tolerances(
            throttle=pick(tol_throttle, tol.throttle),
            brake=pick(tol_brake, tol.brake),
            steer=pick(tol_steer, tol.steer),
        ),
        window_pct=pick(window_pct, base.window_pct),
        on_threshold=pick(on_threshold, base.on_threshold),
        off_threshold=pick(off_threshold, base.off_threshold),
        min_width_pct=pick(min_width_pct, base.min_width_pct),
        callout_options=BrakeCalloutOptions(
            start_delta_pct=pick(start_delta_pct, opts.start_delta_pct),
            end_delta_pct=pick(end_delta_pct, opts.end_delta_pct),
            press_delta_pct=pick(press_delta_pct, opts.press_delta_pct),
        ),
        align=align or base.align,
    )


def _segments(segments: list[Segment]) -> list[SegmentSchema]:
    return [
        SegmentSchema(start=s.start, end=s.end, color=s.color, hex=COLOR_HEX[GradeColor(s.color)])
        for s in segments
    ]


def _params_schema(p: AnalysisParams) -> AnalysisParamsSchema:
    return AnalysisParamsSchema(
        step_pct=p.step_pct,
        tolerance_throttle=p.tolerances.throttle,
        tolerance_brake=p.tolerances.brake,
        tolerance_steer=p.tolerances.steer,
        window_pct=p.window_pct,
        on_threshold=p.on_threshold,
        off_threshold=p.off_threshold,
        min_width_pct=p.min_width_pct,
        start_delta_pct=p.callout_options.start_delta_pct,
        end_delta_pct=p.callout_options.end_delta_pct,
        press_delta_pct=p.callout_options.press_delta_pct,
        align=p.align,
    )


def _analysis_response(
    session_id: str, analysis: LapAnalysis, params: AnalysisParams
) -> AnalysisResponse:
    return AnalysisResponse(
        session_id=session_id,
        params=_params_schema(params),
        has_live=not analysis.live.empty,
        mean_score=analysis.mean_score,
        traces=TraceData(**dataframe_to_columnar(analysis.traces, _TRACE_COLUMNS)),
        ref_zones=[BrakeZoneSchema(**dataclass_to_dict(z)) for z in analysis.ref_zones],
        live_zones=[BrakeZoneSchema(**dataclass_to_dict(z)) for z in analysis.live_zones],
        conformance=[ConformancePointSchema(**dataclass_to_dict(c)) for c in analysis.conformance],
        score_segments=_segments(analysis.score_segments),
        channel_segments={ch: _segments(s) for ch, s in analysis.channel_segments.items()},
        rolling_grade=[
            RollingGradePointSchema(**dataclass_to_dict(g)) for g in analysis.rolling_grade
        ],
        grade_segments=_segments(analysis.grade_segments),
        callouts=[CalloutSchema(**dataclass_to_dict(c)) for c in analysis.callouts],
    )


@router.get("/{session_id}/analysis", response_model=AnalysisResponse)
async def get_analysis(
    session_id: str,
    params: Annotated[AnalysisParams, Depends(get_analysis_params)],
) -> AnalysisResponse:
    """Compare the live lap against the reference lap.

    Recomputed on every request from the stored raw laps, so any parameter
    change is reflected immediately.
    """
    sd = _get_session_or_404(session_id)
    analysis = await run_analysis(sd, params)
    return _analysis_response(session_id, analysis, params)


@router.get("/{session_id}/conformance.csv")
async def get_conformance_csv(
    session_id: str,
    params: Annotated[AnalysisParams, Depends(get_analysis_params)],
) -> Response:
    """Download the conformance trace as CSV."""
    sd = _get_session_or_404(session_id)
    csv_text = await export_conformance(sd, params)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="conformance-{session_id[:8]}.csv"'
        },
    )


@router.post("/{session_id}/publish", response_model=PublishResponse)
async def publish_zones(
    session_id: str,
    params: Annotated[AnalysisParams, Depends(get_analysis_params)],
    broadcaster: Annotated[ZoneBroadcaster, Depends(get_broadcaster)],
    lead_time_s: Annotated[float | None, Query(gt=0, le=30)] = None,
) -> PublishResponse:
    """Publish the session's reference brake zones to every overlay consumer."""
    sd = _get_session_or_404(session_id)
    analysis = await run_analysis(sd, params)
    snapshot = broadcaster.publish(
        zones=analysis.ref_zones,
        lead_time_s=lead_time_s,
        session_id=session_id,
    )
    logger.info(
        "Published %d reference zone(s) from session %s (v%d)",
        len(snapshot.zones),
        session_id,
        snapshot.version,
    )
    return PublishResponse(
        session_id=session_id,
        version=snapshot.version,
        lead_time_s=snapshot.lead_time_s,
        zones=[BrakeZoneSchema(start=z.start, end=z.end) for z in snapshot.zones],
    )
