"""Session management endpoints: upload, list, get, replace live lap, delete."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, UploadFile

from backend.api.config import Settings
from backend.api.dependencies import get_settings
from backend.api.schemas.session import SessionList, SessionSummary, UploadResponse
from backend.api.services import session_store
from backend.api.services.pipeline import parse_upload, process_upload, replace_live_lap

logger = logging.getLogger(__name__)

router = APIRouter()


def _summary(sd: session_store.SessionData) -> SessionSummary:
    return SessionSummary(
        session_id=sd.session_id,
        reference_name=sd.reference_name,
        live_name=sd.live_name,
        n_reference_samples=len(sd.reference),
        n_live_samples=len(sd.live) if sd.live is not None else 0,
        rows_dropped=sd.rows_dropped,
        recorded_laps=sd.recorded_laps,
        created_at=sd.created_at,
    )


def _get_session_or_404(session_id: str) -> session_store.SessionData:
    sd = session_store.get_session(session_id)
    if sd is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return sd


async def _read_csv(f: UploadFile, settings: Settings) -> bytes:
    """Read an uploaded file, enforcing the configured size limit."""
    data = await f.read()
    limit = settings.max_upload_size_mb * 1024 * 1024
    if len(data) > limit:
        raise HTTPException(
            status_code=413,
            detail=f"{f.filename} exceeds the {settings.max_upload_size_mb} MB upload limit",
        )
    return data


@router.post("/upload", response_model=UploadResponse)
async def upload_session(
    reference: UploadFile,
    settings: Annotated[Settings, Depends(get_settings)],
    live: UploadFile | None = None,
) -> UploadResponse:
    """Upload a reference lap CSV and, optionally, a live lap CSV."""
    ref_name = reference.filename or "reference.csv"
    ref_bytes = await _read_csv(reference, settings)

    live_bytes: bytes | None = None
    live_name: str | None = None
    if live is not None:
        live_name = live.filename or "live.csv"
        live_bytes = await _read_csv(live, settings)

    sd = await process_upload(ref_bytes, ref_name, live_bytes, live_name)

    msg = f"Loaded {ref_name}"
    if live_name:
        msg += f" and {live_name}"
    if sd.rows_dropped:
        msg += f"; skipped {sd.rows_dropped} row(s) without lap position"

    return UploadResponse(session_id=sd.session_id, message=msg, session=_summary(sd))


@router.get("", response_model=SessionList)
async def list_sessions() -> SessionList:
    """List loaded sessions, newest first."""
    items = [_summary(sd) for sd in session_store.list_sessions()]
    return SessionList(items=items, total=len(items))


@router.get("/{session_id}", response_model=SessionSummary)
async def get_session(session_id: str) -> SessionSummary:
    """Return one session's summary."""
    return _summary(_get_session_or_404(session_id))


@router.put("/{session_id}/live", response_model=SessionSummary)
async def put_live_lap(
    session_id: str,
    live: UploadFile,
    settings: Annotated[Settings, Depends(get_settings)],
) -> SessionSummary:
    """Replace the session's live lap with an uploaded CSV."""
    sd = _get_session_or_404(session_id)
    name = live.filename or "live.csv"
    parsed = await parse_upload(await _read_csv(live, settings), name)
    replace_live_lap(sd, parsed.data, name)
    logger.info("Replaced live lap of session %s with %s", session_id, name)
    return _summary(sd)


@router.delete("/{session_id}")
async def delete_session(session_id: str) -> dict[str, str]:
    """Delete a session."""
    if not session_store.delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return {"message": f"Session {session_id} deleted"}
