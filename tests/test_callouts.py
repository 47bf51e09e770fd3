"""Tests for brakepoint.callouts."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from brakepoint.brake_zones import BrakeZone
from brakepoint.callouts import (
    BrakeCalloutOptions,
    CalloutType,
    Severity,
    avg_brake,
    brake_callouts,
    classify_severity,
    match_zone,
)
from tests.conftest import make_frame

_GRID = np.arange(0.0, 40.5, 0.5)


def _lap(zone: tuple[float, float] | None, pressure: float) -> pd.DataFrame:
    brake = np.zeros(len(_GRID))
    if zone is not None:
        brake[(_GRID >= zone[0]) & (_GRID <= zone[1])] = pressure
    return make_frame(_GRID, brake)


class TestClassifySeverity:
    @pytest.mark.parametrize(
        ("delta", "threshold", "expected"),
        [
            (2.0, 1.0, Severity.SEVERE),
            (1.99, 1.0, Severity.MODERATE),
            (-2.0, 1.0, Severity.SEVERE),
            (-1.5, 1.0, Severity.MODERATE),
            (10.0, 5.0, Severity.SEVERE),
        ],
    )
    def test_doubling_rule(self, delta: float, threshold: float, expected: Severity) -> None:
        assert classify_severity(delta, threshold) == expected


class TestAvgBrake:
    def test_inclusive_range(self) -> None:
        frame = make_frame([0.0, 1.0, 2.0, 3.0], [10.0, 20.0, 30.0, 40.0])
        assert avg_brake(frame, 1.0, 2.0) == 25.0

    def test_no_samples_in_range(self) -> None:
        frame = make_frame([0.0, 1.0], [10.0, 20.0])
        assert avg_brake(frame, 5.0, 6.0) == 0.0

    def test_empty(self) -> None:
        assert avg_brake(make_frame([], []), 0.0, 100.0) == 0.0


class TestMatchZone:
    def test_largest_overlap_wins(self) -> None:
        ref = BrakeZone(10.0, 20.0)
        live = [BrakeZone(8.0, 12.0), BrakeZone(13.0, 19.0)]
        assert match_zone(ref, live) == BrakeZone(13.0, 19.0)

    def test_tie_keeps_earliest(self) -> None:
        ref = BrakeZone(10.0, 20.0)
        live = [BrakeZone(8.0, 12.0), BrakeZone(18.0, 22.0)]
        assert match_zone(ref, live) == BrakeZone(8.0, 12.0)

    def test_touching_is_not_overlap(self) -> None:
        assert match_zone(BrakeZone(10.0, 20.0), [BrakeZone(20.0, 25.0)]) is None

    def test_no_live_zones(self) -> None:
        assert match_zone(BrakeZone(10.0, 20.0), []) is None


class TestBrakeCallouts:
    def test_late_heavy_long_braking(self) -> None:
        ref = _lap((10.0, 15.0), 50.0)
        live = _lap((12.0, 18.0), 60.0)
        options = BrakeCalloutOptions(start_delta_pct=1, end_delta_pct=1, press_delta_pct=5)
        callouts = brake_callouts(
            [BrakeZone(10.0, 15.0)], [BrakeZone(12.0, 18.0)], ref, live, options
        )

        assert [c.type for c in callouts] == [
            CalloutType.LATE_BRAKE,
            CalloutType.TOO_MUCH_PRESSURE,
            CalloutType.LATE_RELEASE,
        ]
        late, pressure, release = callouts
        assert late.delta == pytest.approx(2.0)
        assert late.severity == Severity.SEVERE
        assert late.pct == 10.0
        assert pressure.delta == pytest.approx(10.0)
        assert pressure.severity == Severity.SEVERE
        assert pressure.pct == 15.0
        assert release.delta == pytest.approx(3.0)
        assert release.severity == Severity.SEVERE
        assert release.pct == 15.0
        assert all(c.zone_index == 1 for c in callouts)

    def test_early_light_short_braking(self) -> None:
        ref = _lap((10.0, 15.0), 60.0)
        live = _lap((9.0, 14.0), 52.0)
        callouts = brake_callouts(
            [BrakeZone(10.0, 15.0)], [BrakeZone(9.0, 14.0)], ref, live, BrakeCalloutOptions()
        )
        assert [(c.type, c.severity) for c in callouts] == [
            (CalloutType.EARLY_BRAKE, Severity.MODERATE),
            (CalloutType.NOT_ENOUGH_PRESSURE, Severity.MODERATE),
            (CalloutType.EARLY_RELEASE, Severity.MODERATE),
        ]
        assert callouts[0].delta == pytest.approx(-1.0)
        assert callouts[1].delta == pytest.approx(-8.0)
        assert "earlier" in callouts[0].detail
        assert "below" in callouts[1].detail

    def test_within_thresholds_is_silent(self) -> None:
        ref = _lap((10.0, 15.0), 50.0)
        live = _lap((10.5, 15.5), 53.0)
        callouts = brake_callouts(
            [BrakeZone(10.0, 15.0)], [BrakeZone(10.5, 15.5)], ref, live, BrakeCalloutOptions()
        )
        assert callouts == []

    def test_delta_equal_to_threshold_fires(self) -> None:
        ref = _lap((10.0, 15.0), 50.0)
        options = BrakeCalloutOptions(start_delta_pct=1.0, end_delta_pct=5.0, press_delta_pct=50)
        callouts = brake_callouts(
            [BrakeZone(10.0, 15.0)], [BrakeZone(11.0, 15.0)], ref, ref, options
        )
        assert [c.type for c in callouts] == [CalloutType.LATE_BRAKE]

    def test_missed_brake(self) -> None:
        ref = _lap((40.0, 45.0), 50.0)
        callouts = brake_callouts([BrakeZone(40.0, 45.0)], [], ref, _lap(None, 0.0))
        assert len(callouts) == 1
        (missed,) = callouts
        assert missed.type == CalloutType.MISSED_BRAKE
        assert missed.zone_index == 1
        assert missed.pct == 40.0
        assert missed.delta is None
        assert missed.severity == Severity.SEVERE
        assert missed.detail == "No braking where reference did"

    def test_zone_indices_are_one_based_in_reference_order(self) -> None:
        ref = _lap(None, 0.0)
        ref_zones = [BrakeZone(5.0, 8.0), BrakeZone(20.0, 25.0), BrakeZone(30.0, 32.0)]
        live_zones = [BrakeZone(20.0, 25.0)]
        callouts = brake_callouts(ref_zones, live_zones, ref, ref)
        assert [(c.zone_index, c.type) for c in callouts] == [
            (1, CalloutType.MISSED_BRAKE),
            (3, CalloutType.MISSED_BRAKE),
        ]

    def test_no_reference_zones(self) -> None:
        ref = _lap(None, 0.0)
        assert brake_callouts([], [BrakeZone(1.0, 2.0)], ref, ref) == []
