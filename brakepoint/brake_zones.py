"""Brake zone detection on a uniform lap-distance grid using hysteresis thresholds."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from brakepoint.constants import BRAKE_OFF_THRESHOLD, BRAKE_ON_THRESHOLD, MIN_ZONE_WIDTH_PCT


@dataclass(frozen=True)
class BrakeZone:
    """Contiguous braking interval in lap-distance percent."""

    start: float
    end: float

    @property
    def width(self) -> float:
        return self.end - self.start

    @property
    def midpoint(self) -> float:
        return (self.start + self.end) / 2

    def overlap(self, other: BrakeZone) -> float:
        """Length of the shared interval with *other* (0 when disjoint)."""
        return max(0.0, min(self.end, other.end) - max(self.start, other.start))

    def contains(self, pct: float) -> bool:
        return self.start <= pct <= self.end


def detect_brake_zones(
    series: pd.DataFrame,
    on_threshold: float = BRAKE_ON_THRESHOLD,
    off_threshold: float = BRAKE_OFF_THRESHOLD,
    min_width_pct: float = MIN_ZONE_WIDTH_PCT,
) -> list[BrakeZone]:
    """Scan a resampled lap for braking intervals.

    A zone opens when brake reaches ``on_threshold`` and closes when it falls
    to ``off_threshold`` or below.  A zone still open at the end of the lap is
    closed at the last sample.  Zones narrower than ``min_width_pct`` are
    discarded as noise.  Missing brake values count as zero.

    Parameters
    ----------
    series:
        Uniform series with ``pct`` and ``brake`` columns.
    on_threshold, off_threshold:
        Hysteresis thresholds in brake percent; ``on`` must not be below ``off``.
    min_width_pct:
        Minimum zone width in percent of lap.

    Returns
    -------
    Zones in increasing ``start`` order.
    """
    if on_threshold < off_threshold:
        msg = f"on_threshold ({on_threshold}) must be >= off_threshold ({off_threshold})"
        raise ValueError(msg)

    if series.empty:
        return []

    pct = series["pct"].to_numpy(dtype=float)
    brake = np.nan_to_num(series["brake"].to_numpy(dtype=float), nan=0.0)

    zones: list[BrakeZone] = []
    active = False
    start = 0.0
    for p, b in zip(pct.tolist(), brake.tolist(), strict=True):
        if not active and b >= on_threshold:
            active = True
            start = p
        elif active and b <= off_threshold:
            active = False
            if p > start and p - start >= min_width_pct:
                zones.append(BrakeZone(start=start, end=p))

    if active:
        end = float(pct[-1])
        if end > start and end - start >= min_width_pct:
            zones.append(BrakeZone(start=start, end=end))

    return zones
