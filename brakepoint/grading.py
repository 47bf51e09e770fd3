"""Colour segments and rolling grade over conformance results."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum

import numpy as np
import pandas as pd

from brakepoint.conformance import ConformancePoint
from brakepoint.constants import GRADE_GREEN, GRADE_YELLOW, ROLLING_WINDOW_PCT


class GradeColor(StrEnum):
    """Three-tier qualitative grade: good / marginal / poor."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


# Hex values used by the heatbar renderers
COLOR_HEX: dict[GradeColor, str] = {
    GradeColor.GREEN: "#16a34a",
    GradeColor.YELLOW: "#eab308",
    GradeColor.RED: "#dc2626",
}


@dataclass(frozen=True)
class Segment:
    """Run of consecutive points sharing one colour."""

    start: float
    end: float
    color: str


@dataclass(frozen=True)
class RollingGradePoint:
    """Smoothed conformance score at one position."""

    pct: float
    grade: float


def grade_color(value: float) -> GradeColor:
    """Map a score in [0, 1] to its grade colour."""
    if value >= GRADE_GREEN:
        return GradeColor.GREEN
    if value >= GRADE_YELLOW:
        return GradeColor.YELLOW
    return GradeColor.RED


def segments_from_scalar(
    pct: Sequence[float],
    values: Sequence[float],
    color_fn: Callable[[float], str] = grade_color,
) -> list[Segment]:
    """Run-length encode a per-point scalar into coloured segments.

    A segment closes at the last point of its colour; the next one opens at
    the first point of the new colour.
    """
    if len(pct) != len(values):
        msg = f"pct and values length mismatch: {len(pct)} != {len(values)}"
        raise ValueError(msg)
    if len(pct) == 0:
        return []

    segments: list[Segment] = []
    start = float(pct[0])
    current = color_fn(values[0])
    for i in range(1, len(pct)):
        color = color_fn(values[i])
        if color != current:
            segments.append(Segment(start=start, end=float(pct[i - 1]), color=str(current)))
            start = float(pct[i])
            current = color
    segments.append(Segment(start=start, end=float(pct[-1]), color=str(current)))
    return segments


def score_segments(conf: list[ConformancePoint]) -> list[Segment]:
    """Overall-match heatbar segments."""
    return segments_from_scalar([c.pct for c in conf], [c.score for c in conf])


def channel_segments(conf: list[ConformancePoint], channel: str) -> list[Segment]:
    """Heatbar segments for one channel's match flag (matched -> green, else red)."""
    attr = f"{channel}_ok"
    if conf and not hasattr(conf[0], attr):
        msg = f"Unknown channel {channel!r}"
        raise ValueError(msg)
    flags = [1.0 if getattr(c, attr) else 0.0 for c in conf]
    return segments_from_scalar([c.pct for c in conf], flags)


def rolling_grade(
    conf: list[ConformancePoint],
    window_pct: float = ROLLING_WINDOW_PCT,
) -> list[RollingGradePoint]:
    """Trailing moving average of the conformance score.

    The window covers ``window_pct`` percent of the points (at least one).
    Points before the window has filled keep their raw score.
    """
    if not conf:
        return []

    window = max(1, math.floor((window_pct / 100) * len(conf) + 0.5))
    scores = pd.Series([c.score for c in conf], dtype=float)
    smoothed = scores.rolling(window=window, min_periods=window).mean()
    grades = smoothed.fillna(scores).to_numpy()

    return [
        RollingGradePoint(pct=c.pct, grade=float(np.clip(g, 0.0, 1.0)))
        for c, g in zip(conf, grades, strict=True)
    ]


def grade_segments(grade: list[RollingGradePoint]) -> list[Segment]:
    """Rolling-grade heatbar segments."""
    return segments_from_scalar([g.pct for g in grade], [g.grade for g in grade])
