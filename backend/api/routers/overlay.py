"""Overlay endpoints: published zones, lead time, live alert feed."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

import pandas as pd
from brakepoint.broadcast import OverlaySnapshot, ZoneBroadcaster
from brakepoint.live import LiveLapRecorder
from brakepoint.overlay import evaluate_overlay_alert
from brakepoint.parser import normalize_sdk_sample
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from backend.api.config import Settings
from backend.api.dependencies import get_broadcaster, get_settings
from backend.api.schemas.analysis import BrakeZoneSchema
from backend.api.schemas.overlay import AlertMessage, LeadTimeRequest, OverlaySnapshotSchema
from backend.api.services import session_store
from backend.api.services.pipeline import replace_live_lap

logger = logging.getLogger(__name__)

router = APIRouter()

# Tick keys carrying the simulator's lap counter
_LAP_KEYS = ("Lap", "lap", "LapCompleted")


def _snapshot_schema(snapshot: OverlaySnapshot) -> OverlaySnapshotSchema:
    return OverlaySnapshotSchema(
        version=snapshot.version,
        session_id=snapshot.session_id,
        lead_time_s=snapshot.lead_time_s,
        zones=[BrakeZoneSchema(start=z.start, end=z.end) for z in snapshot.zones],
    )


def _lap_number(tick: dict) -> int | None:
    for key in _LAP_KEYS:
        value = tick.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _store_recorded_lap(broadcaster: ZoneBroadcaster, lap: int | None, frame: pd.DataFrame) -> None:
    """Make a completed live lap the live lap of the published session."""
    session_id = broadcaster.latest().session_id
    sd = session_store.get_session(session_id) if session_id else None
    if sd is None:
        logger.info("Recorded lap %s with no published session, discarding", lap)
        return
    name = f"recorded lap {lap}" if lap is not None else "recorded lap"
    replace_live_lap(sd, frame, name)
    sd.recorded_laps += 1
    logger.info("Stored %s (%d samples) as live lap of session %s", name, len(frame), session_id)


@router.get("/snapshot", response_model=OverlaySnapshotSchema)
async def get_snapshot(
    broadcaster: Annotated[ZoneBroadcaster, Depends(get_broadcaster)],
) -> OverlaySnapshotSchema:
    """Zones and lead time the overlay is currently using."""
    return _snapshot_schema(broadcaster.latest())


@router.put("/lead-time", response_model=OverlaySnapshotSchema)
async def put_lead_time(
    body: LeadTimeRequest,
    broadcaster: Annotated[ZoneBroadcaster, Depends(get_broadcaster)],
) -> OverlaySnapshotSchema:
    """Change the warning lead time without touching the published zones."""
    snapshot = broadcaster.publish(lead_time_s=body.lead_time_s)
    logger.info("Overlay lead time set to %.2fs (v%d)", snapshot.lead_time_s, snapshot.version)
    return _snapshot_schema(snapshot)


@router.websocket("/feed")
async def overlay_feed(
    websocket: WebSocket,
    broadcaster: Annotated[ZoneBroadcaster, Depends(get_broadcaster)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """Evaluate the overlay alert for every live telemetry tick.

    Protocol:
    - Client sends one JSON object per tick, raw simulator fields
      (``LapDistPct``/``Throttle``/``Brake`` as 0-1 fractions, optional
      ``SteeringWheelAngle``, ``Speed`` and ``Lap``).
    - Server answers each tick with an :class:`AlertMessage`.

    Completed laps become the live lap of the published session.
    """
    await websocket.accept()

    recorder = LiveLapRecorder(
        lambda lap, frame: _store_recorded_lap(broadcaster, lap, frame),
    )

    try:
        while True:
            tick = await websocket.receive_json()
            sample = normalize_sdk_sample(tick) if isinstance(tick, dict) else None
            if sample is None:
                await websocket.send_json(AlertMessage(message="", severity="none").model_dump())
                continue

            completed = recorder.add_sample(sample, _lap_number(tick))

            snapshot = broadcaster.latest()
            state = evaluate_overlay_alert(
                sample.pct,
                list(snapshot.zones),
                snapshot.lead_time_s,
                settings.pct_per_second,
                wrap=settings.overlay_wrap_zones,
                speed=sample.speed,
                min_speed=settings.overlay_min_speed,
                brake=sample.brake,
                suppress_while_braking=settings.overlay_suppress_while_braking,
                brake_on_threshold=settings.brake_on_threshold,
            )
            await websocket.send_json(
                AlertMessage(
                    message=state.message,
                    severity=state.severity,
                    pct=sample.pct,
                    lap_completed=completed,
                ).model_dump()
            )
    except WebSocketDisconnect:
        logger.info("Overlay feed client disconnected")
    except Exception:
        logger.exception("Overlay feed failed")
        await websocket.close(code=1011)


@router.websocket("/zones")
async def overlay_zones(
    websocket: WebSocket,
    broadcaster: Annotated[ZoneBroadcaster, Depends(get_broadcaster)],
) -> None:
    """Push the current snapshot, then every newly published one."""
    await websocket.accept()

    async def forward() -> None:
        async for snapshot in broadcaster.stream():
            await websocket.send_json(_snapshot_schema(snapshot).model_dump())

    task = asyncio.create_task(forward())
    try:
        # Incoming messages are ignored; receiving detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Overlay zones client disconnected")
    finally:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            # Sending failed before the disconnect was seen
            logger.warning("Overlay zones forwarding stopped", exc_info=True)
