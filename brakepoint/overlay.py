"""Per-tick brake countdown for the on-screen overlay."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import StrEnum

from brakepoint.brake_zones import BrakeZone
from brakepoint.constants import (
    BRAKE_ON_THRESHOLD,
    ENTER_TOLERANCE_PCT,
    LEAD_TIME_S,
    PCT_MAX,
    PCT_PER_SECOND,
)

BRAKE_NOW = "BRAKE NOW"


class AlertSeverity(StrEnum):
    NONE = "none"
    WARN = "warn"
    DANGER = "danger"


@dataclass(frozen=True)
class OverlayAlertState:
    """What the overlay should show for the current tick."""

    message: str = ""
    severity: AlertSeverity = AlertSeverity.NONE

    @property
    def active(self) -> bool:
        return bool(self.message)


NO_ALERT = OverlayAlertState()


def pct_per_second_from_speed(speed_mps: float, track_length_m: float) -> float:
    """Lap percent covered per second at the current speed."""
    if track_length_m <= 0:
        msg = f"track_length_m must be positive, got {track_length_m}"
        raise ValueError(msg)
    return max(0.0, speed_mps) / track_length_m * 100.0


def _next_zone(pct: float, zones: list[BrakeZone], wrap: bool) -> BrakeZone | None:
    for zone in zones:
        if zone.end > pct:
            return zone
    if wrap and zones:
        # Past the last zone: measure to the first zone of the next lap
        first = zones[0]
        return BrakeZone(start=first.start + PCT_MAX, end=first.end + PCT_MAX)
    return None


def evaluate_overlay_alert(
    pct: float,
    zones: list[BrakeZone],
    lead_time_s: float = LEAD_TIME_S,
    pct_per_second: float = PCT_PER_SECOND,
    *,
    enter_tolerance: float = ENTER_TOLERANCE_PCT,
    wrap: bool = False,
    speed: float | None = None,
    min_speed: float = 0.0,
    brake: float | None = None,
    suppress_while_braking: bool = False,
    brake_on_threshold: float = BRAKE_ON_THRESHOLD,
) -> OverlayAlertState:
    """Decide the overlay message for the current lap position.

    The next zone is the first one whose end lies ahead of ``pct``.  Inside
    the zone (from ``enter_tolerance`` before its start up to its end) the
    state is ``danger`` / "BRAKE NOW".  Within ``lead_time_s`` before it the
    state is ``warn`` / "Prepare N", N being the estimated whole seconds
    left.  Lead time is converted to lap percent with ``pct_per_second``.

    Parameters
    ----------
    pct:
        Current lap-distance percentage.
    zones:
        Reference brake zones in lap order.
    wrap:
        When set, the first zone of the next lap is used once the car is past
        every zone.
    speed, min_speed:
        No alert while ``speed`` is below ``min_speed``.
    brake, suppress_while_braking:
        Optionally stay silent while the driver is already braking.
    """
    if not zones:
        return NO_ALERT
    if speed is not None and speed < min_speed:
        return NO_ALERT
    if suppress_while_braking and brake is not None and brake >= brake_on_threshold:
        return NO_ALERT

    zone = _next_zone(pct, zones, wrap)
    if zone is None:
        return NO_ALERT

    enter_pct = zone.start - enter_tolerance
    warn_start = max(0.0, zone.start - lead_time_s * pct_per_second)

    if enter_pct <= pct <= zone.end:
        return OverlayAlertState(message=BRAKE_NOW, severity=AlertSeverity.DANGER)

    if warn_start <= pct < enter_pct:
        remaining = (zone.start - pct) / pct_per_second if pct_per_second > 0 else 1.0
        seconds = max(1, math.floor(remaining + 0.5))
        return OverlayAlertState(message=f"Prepare {seconds}", severity=AlertSeverity.WARN)

    return NO_ALERT
