"""Core lap-distance engine: resampling onto a uniform grid and the full lap comparison."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from brakepoint.brake_zones import BrakeZone, detect_brake_zones
from brakepoint.callouts import BrakeCalloutOptions, Callout, brake_callouts
from brakepoint.conformance import (
    CHANNELS,
    ConformancePoint,
    Tolerances,
    align_traces,
    build_conformance,
)
from brakepoint.constants import (
    BRAKE_OFF_THRESHOLD,
    BRAKE_ON_THRESHOLD,
    MIN_ZONE_WIDTH_PCT,
    PCT_DECIMALS,
    PCT_MAX,
    PCT_MIN,
    RESAMPLE_STEP_PCT,
    ROLLING_WINDOW_PCT,
)
from brakepoint.grading import (
    RollingGradePoint,
    Segment,
    channel_segments,
    grade_segments,
    rolling_grade,
    score_segments,
)
from brakepoint.parser import SAMPLE_COLUMNS

_GRID_EPS = 1e-6


def _grid(step_pct: float) -> np.ndarray:
    """Grid points ``0, step, 2*step, ... <= 100``."""
    n = int(np.floor((PCT_MAX - PCT_MIN + _GRID_EPS) / step_pct)) + 1
    return PCT_MIN + np.arange(n, dtype=float) * step_pct


def resample_to_step(samples: pd.DataFrame, step_pct: float = RESAMPLE_STEP_PCT) -> pd.DataFrame:
    """Resample irregular samples onto a uniform lap-percentage grid.

    Each grid point is linearly interpolated between the last sample before
    it and the one after.  Grid points outside the sampled range repeat the
    first/last sample (no extrapolation).  A channel is NaN wherever either
    bounding sample is NaN.

    Parameters
    ----------
    samples:
        Normalized samples with a ``pct`` column; other sample columns are
        interpolated when present.
    step_pct:
        Grid spacing in percent of lap.

    Returns
    -------
    DataFrame with one row per grid point and ``pct`` rounded to 3 decimals.
    """
    if step_pct <= 0:
        msg = f"step_pct must be positive, got {step_pct}"
        raise ValueError(msg)

    if samples.empty:
        return pd.DataFrame({col: pd.Series(dtype=float) for col in SAMPLE_COLUMNS})

    ordered = samples.sort_values("pct", kind="stable").reset_index(drop=True)
    src_pct = ordered["pct"].to_numpy(dtype=float)
    n = len(src_pct)

    grid = _grid(step_pct)
    # Cursor: last sample strictly before each grid point, clamped to the data
    lo = np.clip(np.searchsorted(src_pct, grid, side="left") - 1, 0, n - 1)
    hi = np.minimum(lo + 1, n - 1)

    a = src_pct[lo]
    b = src_pct[hi]
    span = b - a
    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.where(span == 0, 0.0, (grid - a) / np.where(span == 0, 1.0, span))
    t = np.clip(t, 0.0, 1.0)

    result: dict[str, np.ndarray] = {"pct": np.round(grid, PCT_DECIMALS)}
    for col in SAMPLE_COLUMNS[1:]:
        if col not in ordered.columns:
            result[col] = np.full(len(grid), np.nan)
            continue
        vals = ordered[col].to_numpy(dtype=float)
        va = vals[lo]
        vb = vals[hi]
        result[col] = va + (vb - va) * t

    return pd.DataFrame(result, columns=SAMPLE_COLUMNS)


@dataclass(frozen=True)
class AnalysisParams:
    """All knobs of one comparison run."""

    step_pct: float = RESAMPLE_STEP_PCT
    tolerances: Tolerances = field(default_factory=Tolerances)
    window_pct: float = ROLLING_WINDOW_PCT
    on_threshold: float = BRAKE_ON_THRESHOLD
    off_threshold: float = BRAKE_OFF_THRESHOLD
    min_width_pct: float = MIN_ZONE_WIDTH_PCT
    callout_options: BrakeCalloutOptions = field(default_factory=BrakeCalloutOptions)
    align: str = "index"


@dataclass
class LapAnalysis:
    """Everything derived from one reference/live lap pair."""

    reference: pd.DataFrame
    live: pd.DataFrame
    traces: pd.DataFrame
    ref_zones: list[BrakeZone]
    live_zones: list[BrakeZone]
    conformance: list[ConformancePoint]
    score_segments: list[Segment]
    channel_segments: dict[str, list[Segment]]
    rolling_grade: list[RollingGradePoint]
    grade_segments: list[Segment]
    callouts: list[Callout]

    @property
    def mean_score(self) -> float | None:
        if not self.conformance:
            return None
        return float(np.mean([c.score for c in self.conformance]))


def analyze_laps(
    ref_samples: pd.DataFrame,
    live_samples: pd.DataFrame | None = None,
    params: AnalysisParams | None = None,
) -> LapAnalysis:
    """Run the full comparison of a live lap against a reference lap.

    Resamples both laps on the same grid, detects brake zones on each,
    scores conformance, builds heatbar segments and the rolling grade, and
    derives brake callouts.  With no live lap every comparison output is
    empty while the reference zones are still reported.
    """
    p = params or AnalysisParams()
    live_input = live_samples if live_samples is not None else pd.DataFrame()

    ref = resample_to_step(ref_samples, p.step_pct)
    live = resample_to_step(live_input, p.step_pct)

    ref_zones = detect_brake_zones(ref, p.on_threshold, p.off_threshold, p.min_width_pct)
    live_zones = detect_brake_zones(live, p.on_threshold, p.off_threshold, p.min_width_pct)

    conf = build_conformance(ref, live, p.tolerances, align=p.align)
    grade = rolling_grade(conf, p.window_pct)

    callouts: list[Callout] = []
    if not live.empty:
        callouts = brake_callouts(ref_zones, live_zones, ref, live, p.callout_options)

    return LapAnalysis(
        reference=ref,
        live=live,
        traces=align_traces(ref, live),
        ref_zones=ref_zones,
        live_zones=live_zones,
        conformance=conf,
        score_segments=score_segments(conf),
        channel_segments={ch: channel_segments(conf, ch) for ch in CHANNELS},
        rolling_grade=grade,
        grade_segments=grade_segments(grade),
        callouts=callouts,
    )
