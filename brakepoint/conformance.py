"""Pointwise conformance of a live lap against a reference lap."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from brakepoint.constants import TOLERANCE_BRAKE, TOLERANCE_STEER, TOLERANCE_THROTTLE

CHANNELS: tuple[str, ...] = ("throttle", "brake", "steer")

ALIGN_MODES = ("index", "pct")


@dataclass(frozen=True)
class Tolerances:
    """Match windows: throttle/brake in percentage points, steering in degrees."""

    throttle: float = TOLERANCE_THROTTLE
    brake: float = TOLERANCE_BRAKE
    steer: float = TOLERANCE_STEER


@dataclass(frozen=True)
class ConformancePoint:
    """Match result at one aligned position."""

    pct: float
    score: float  # fraction of channels within tolerance
    throttle_ok: bool
    brake_ok: bool
    steer_ok: bool


def _within(ref: np.ndarray, live: np.ndarray, tolerance: float) -> np.ndarray:
    """Elementwise ``|ref - live| <= tolerance``; False where either side is NaN."""
    valid = ~(np.isnan(ref) | np.isnan(live))
    diff = np.abs(np.where(valid, ref - live, 0.0))
    return valid & (diff <= tolerance)


def _pair_by_index(ref: pd.DataFrame, live: pd.DataFrame) -> pd.DataFrame:
    m = min(len(ref), len(live))
    paired = pd.DataFrame({"pct": ref["pct"].to_numpy(dtype=float)[:m]})
    for ch in CHANNELS:
        paired[f"ref_{ch}"] = ref[ch].to_numpy(dtype=float)[:m]
        paired[f"live_{ch}"] = live[ch].to_numpy(dtype=float)[:m]
    return paired


def _pair_by_pct(ref: pd.DataFrame, live: pd.DataFrame) -> pd.DataFrame:
    cols = ["pct", *CHANNELS]
    merged = pd.merge(
        ref[cols].drop_duplicates("pct"),
        live[cols].drop_duplicates("pct"),
        on="pct",
        how="inner",
        suffixes=("_ref", "_live"),
    )
    paired = pd.DataFrame({"pct": merged["pct"].to_numpy(dtype=float)})
    for ch in CHANNELS:
        paired[f"ref_{ch}"] = merged[f"{ch}_ref"].to_numpy(dtype=float)
        paired[f"live_{ch}"] = merged[f"{ch}_live"].to_numpy(dtype=float)
    return paired


def build_conformance(
    ref: pd.DataFrame,
    live: pd.DataFrame,
    tolerances: Tolerances | None = None,
    align: str = "index",
) -> list[ConformancePoint]:
    """Compare two resampled laps channel by channel.

    With ``align="index"`` row *i* of the reference is compared with row *i*
    of the live lap, truncated to the shorter of the two; both laps must have
    been resampled with the same step for positions to correspond.  With
    ``align="pct"`` rows are paired by equal ``pct`` and unmatched rows are
    skipped.

    Each point's score is the fraction of throttle, brake and steering
    channels whose difference is within tolerance.  Missing data on either
    side counts as a mismatch.
    """
    if align not in ALIGN_MODES:
        msg = f"Unknown alignment mode {align!r}; expected one of {ALIGN_MODES}"
        raise ValueError(msg)

    tol = tolerances or Tolerances()
    if ref.empty or live.empty:
        return []

    paired = _pair_by_index(ref, live) if align == "index" else _pair_by_pct(ref, live)
    if paired.empty:
        return []

    ok = {
        ch: _within(
            paired[f"ref_{ch}"].to_numpy(), paired[f"live_{ch}"].to_numpy(), getattr(tol, ch)
        )
        for ch in CHANNELS
    }
    counts = ok["throttle"].astype(int) + ok["brake"].astype(int) + ok["steer"].astype(int)

    return [
        ConformancePoint(
            pct=float(p),
            score=int(n) / 3,
            throttle_ok=bool(th),
            brake_ok=bool(br),
            steer_ok=bool(st),
        )
        for p, n, th, br, st in zip(
            paired["pct"].tolist(),
            counts.tolist(),
            ok["throttle"].tolist(),
            ok["brake"].tolist(),
            ok["steer"].tolist(),
            strict=True,
        )
    ]


def align_traces(ref: pd.DataFrame, live: pd.DataFrame) -> pd.DataFrame:
    """Merge reference and live channels per point for a dual-trace chart.

    Rows follow the reference lap.  Live values are paired by index; when the
    live lap is shorter (or empty) the remaining live cells are NaN.
    """
    n = len(ref)
    out = pd.DataFrame({"pct": ref["pct"].to_numpy(dtype=float)})
    for ch in CHANNELS:
        live_vals = np.full(n, np.nan)
        if not live.empty:
            m = min(n, len(live))
            live_vals[:m] = live[ch].to_numpy(dtype=float)[:m]
        out[f"ref_{ch}"] = ref[ch].to_numpy(dtype=float)
        out[f"live_{ch}"] = live_vals
    return out


def conformance_frame(conf: list[ConformancePoint]) -> pd.DataFrame:
    """Tabulate conformance points (one row per point)."""
    return pd.DataFrame(
        {
            "pct": [c.pct for c in conf],
            "score": [c.score for c in conf],
            "throttle_ok": [c.throttle_ok for c in conf],
            "brake_ok": [c.brake_ok for c in conf],
            "steer_ok": [c.steer_ok for c in conf],
        }
    )
