"""Match live brake zones to reference zones and describe the deviations.

Each reference zone is paired with the live zone it overlaps the most.
From a matched pair three independent checks run:

- brake point: live start vs reference start (late / early brake)
- pressure: mean live brake in the live zone vs mean reference brake in the
  reference zone (too much / not enough pressure)
- release point: live end vs reference end (late / early release)

A reference zone without any overlapping live zone yields a single
``missed_brake`` callout instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

import numpy as np
import pandas as pd

from brakepoint.brake_zones import BrakeZone
from brakepoint.constants import END_DELTA_PCT, PRESS_DELTA_PCT, START_DELTA_PCT


class CalloutType(StrEnum):
    MISSED_BRAKE = "missed_brake"
    LATE_BRAKE = "late_brake"
    EARLY_BRAKE = "early_brake"
    LATE_RELEASE = "late_release"
    EARLY_RELEASE = "early_release"
    TOO_MUCH_PRESSURE = "too_much_pressure"
    NOT_ENOUGH_PRESSURE = "not_enough_pressure"


class Severity(StrEnum):
    MODERATE = "moderate"
    SEVERE = "severe"


@dataclass(frozen=True)
class BrakeCalloutOptions:
    """Thresholds: timing in percent of lap, pressure in brake percentage points."""

    start_delta_pct: float = START_DELTA_PCT
    end_delta_pct: float = END_DELTA_PCT
    press_delta_pct: float = PRESS_DELTA_PCT


@dataclass(frozen=True)
class Callout:
    """One deviation flag for a reference brake zone."""

    type: CalloutType
    zone_index: int  # 1-based reference zone ordinal
    delta: float | None  # signed pct (timing) or brake points (pressure)
    severity: Severity
    pct: float  # anchor position for display
    detail: str = ""


_DETAILS: dict[CalloutType, str] = {
    CalloutType.MISSED_BRAKE: "No braking where reference did",
    CalloutType.LATE_BRAKE: "Braked {abs:.2f}% later than reference",
    CalloutType.EARLY_BRAKE: "Braked {abs:.2f}% earlier than reference",
    CalloutType.LATE_RELEASE: "Released {abs:.2f}% later than reference",
    CalloutType.EARLY_RELEASE: "Released {abs:.2f}% earlier than reference",
    CalloutType.TOO_MUCH_PRESSURE: "Average brake {abs:.1f}% above reference",
    CalloutType.NOT_ENOUGH_PRESSURE: "Average brake {abs:.1f}% below reference",
}


def classify_severity(delta: float, threshold: float) -> Severity:
    """``severe`` once the deviation reaches twice its threshold."""
    return Severity.SEVERE if abs(delta) >= 2 * threshold else Severity.MODERATE


def avg_brake(samples: pd.DataFrame, start: float, end: float) -> float:
    """Mean brake over samples with ``start <= pct <= end``; 0 when none qualify."""
    if samples.empty:
        return 0.0
    pct = samples["pct"].to_numpy(dtype=float)
    mask = (pct >= start) & (pct <= end)
    if not mask.any():
        return 0.0
    brake = np.nan_to_num(samples["brake"].to_numpy(dtype=float)[mask], nan=0.0)
    return float(brake.mean())


def match_zone(ref_zone: BrakeZone, live_zones: list[BrakeZone]) -> BrakeZone | None:
    """Live zone with the greatest positive overlap; ties keep the earliest."""
    best: BrakeZone | None = None
    best_overlap = 0.0
    for lz in live_zones:
        overlap = ref_zone.overlap(lz)
        if overlap > best_overlap:
            best_overlap = overlap
            best = lz
    return best


def _callout(
    positive: CalloutType,
    negative: CalloutType,
    zone_index: int,
    delta: float,
    threshold: float,
    anchor: float,
) -> Callout | None:
    if abs(delta) < threshold:
        return None
    kind = positive if delta > 0 else negative
    return Callout(
        type=kind,
        zone_index=zone_index,
        delta=delta,
        severity=classify_severity(delta, threshold),
        pct=anchor,
        detail=_DETAILS[kind].format(abs=abs(delta)),
    )


def brake_callouts(
    ref_zones: list[BrakeZone],
    live_zones: list[BrakeZone],
    ref_samples: pd.DataFrame,
    live_samples: pd.DataFrame,
    options: BrakeCalloutOptions | None = None,
) -> list[Callout]:
    """Generate deviation callouts for every reference brake zone.

    Parameters
    ----------
    ref_zones, live_zones:
        Zones detected on the reference and live laps.
    ref_samples, live_samples:
        Resampled laps used for average brake pressure.
    options:
        Timing and pressure thresholds.

    Returns
    -------
    Callouts ordered by reference zone, then brake / pressure / release.
    """
    opts = options or BrakeCalloutOptions()
    out: list[Callout] = []

    for idx, rz in enumerate(ref_zones, start=1):
        lz = match_zone(rz, live_zones)
        if lz is None:
            out.append(
                Callout(
                    type=CalloutType.MISSED_BRAKE,
                    zone_index=idx,
                    delta=None,
                    severity=Severity.SEVERE,
                    pct=rz.start,
                    detail=_DETAILS[CalloutType.MISSED_BRAKE],
                )
            )
            continue

        start_delta = lz.start - rz.start
        end_delta = lz.end - rz.end
        press_delta = avg_brake(live_samples, lz.start, lz.end) - avg_brake(
            ref_samples, rz.start, rz.end
        )

        checks = (
            _callout(
                CalloutType.LATE_BRAKE,
                CalloutType.EARLY_BRAKE,
                idx,
                start_delta,
                opts.start_delta_pct,
                rz.start,
            ),
            _callout(
                CalloutType.TOO_MUCH_PRESSURE,
                CalloutType.NOT_ENOUGH_PRESSURE,
                idx,
                press_delta,
                opts.press_delta_pct,
                lz.midpoint,
            ),
            _callout(
                CalloutType.LATE_RELEASE,
                CalloutType.EARLY_RELEASE,
                idx,
                end_delta,
                opts.end_delta_pct,
                rz.end,
            ),
        )
        out.extend(c for c in checks if c is not None)

    return out
