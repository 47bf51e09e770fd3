"""Pipeline service: wraps brakepoint/ processing functions.

Orchestrates the CSV-to-analysis pipeline:
  CSV bytes -> parser.parse_lap_csv -> session store (raw laps)
  raw laps + params -> engine.analyze_laps -> LapAnalysis

All CPU-bound brakepoint functions are run via asyncio.to_thread().
"""

from __future__ import annotations

import asyncio
import hashlib
import logging

import pandas as pd
from brakepoint.engine import AnalysisParams, LapAnalysis, analyze_laps
from brakepoint.export import export_conformance_csv
from brakepoint.parser import ParsedLap, parse_lap_csv

from backend.api.services.session_store import SessionData, store_session

logger = logging.getLogger(__name__)


def _session_id(ref_bytes: bytes, live_bytes: bytes | None) -> str:
    digest = hashlib.sha256(ref_bytes)
    if live_bytes:
        digest.update(b"\0")
        digest.update(live_bytes)
    return digest.hexdigest()[:16]


def _parse_sync(file_bytes: bytes, filename: str) -> ParsedLap:
    """Parse one lap CSV and report rows dropped for lacking a position."""
    parsed = parse_lap_csv(file_bytes)
    if parsed.rows_dropped:
        logger.info(
            "Dropped %d of %d row(s) without lap position from %s",
            parsed.rows_dropped,
            parsed.rows_total,
            filename,
        )
    if parsed.data.empty:
        msg = f"{filename}: no rows with a lap-distance position (LapDistPct / pct column)"
        raise ValueError(msg)
    return parsed


async def parse_upload(file_bytes: bytes, filename: str) -> ParsedLap:
    """Parse an uploaded lap CSV in a worker thread."""
    return await asyncio.to_thread(_parse_sync, file_bytes, filename)


async def process_upload(
    ref_bytes: bytes,
    ref_name: str,
    live_bytes: bytes | None = None,
    live_name: str | None = None,
) -> SessionData:
    """Parse the reference (and optional live) lap and store them as a session."""
    ref = await parse_upload(ref_bytes, ref_name)
    live: ParsedLap | None = None
    if live_bytes is not None:
        live = await parse_upload(live_bytes, live_name or "live.csv")

    sd = SessionData(
        session_id=_session_id(ref_bytes, live_bytes),
        reference_name=ref_name,
        reference=ref.data,
        live_name=live_name if live is not None else None,
        live=live.data if live is not None else None,
        rows_dropped=ref.rows_dropped + (live.rows_dropped if live is not None else 0),
    )
    store_session(sd.session_id, sd)
    logger.info(
        "Stored session %s (%d reference row(s), %d live row(s))",
        sd.session_id,
        len(ref.data),
        len(live.data) if live is not None else 0,
    )
    return sd


def replace_live_lap(sd: SessionData, lap: pd.DataFrame, name: str) -> None:
    """Swap the live lap of a session (uploaded CSV or recorded lap)."""
    sd.live = lap
    sd.live_name = name


async def run_analysis(sd: SessionData, params: AnalysisParams) -> LapAnalysis:
    """Compare the session's live lap against its reference lap."""
    return await asyncio.to_thread(analyze_laps, sd.reference, sd.live, params)


async def export_conformance(sd: SessionData, params: AnalysisParams) -> str:
    """Conformance CSV text for the session at the given parameters."""
    analysis = await run_analysis(sd, params)
    return await asyncio.to_thread(export_conformance_csv, analysis.conformance)
