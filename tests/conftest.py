"""Shared test fixtures for Brakepoint tests."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import pandas as pd
import pytest

from brakepoint.conformance import ConformancePoint

# (start_pct, end_pct, brake_pressure) per braking zone
ZoneSpec = tuple[float, float, float]


def make_lap(
    zones: Sequence[ZoneSpec] = ((20.0, 25.0, 80.0), (60.0, 64.0, 60.0)),
    n: int = 401,
    steer: float = 0.0,
) -> pd.DataFrame:
    """Build a normalized lap: full throttle except inside the braking zones.

    With the default 401 points the samples sit every 0.25%, so a 0.5% grid
    lands exactly on samples and zone edges survive resampling unchanged.
    """
    pct = np.linspace(0.0, 100.0, n)
    throttle = np.full(n, 100.0)
    brake = np.zeros(n)
    for start, end, pressure in zones:
        mask = (pct >= start) & (pct < end)
        brake[mask] = pressure
        throttle[mask] = 0.0
    return pd.DataFrame(
        {
            "pct": pct,
            "throttle": throttle,
            "brake": brake,
            "steer": np.full(n, steer),
            "speed": np.where(brake > 0, 30.0, 60.0),
            "time": pct * 0.9,
        }
    )


def make_frame(pct: Sequence[float], brake: Sequence[float]) -> pd.DataFrame:
    """Minimal uniform series with only position and brake varying."""
    n = len(pct)
    return pd.DataFrame(
        {
            "pct": np.asarray(pct, dtype=float),
            "throttle": np.zeros(n),
            "brake": np.asarray(brake, dtype=float),
            "steer": np.zeros(n),
            "speed": np.full(n, np.nan),
            "time": np.full(n, np.nan),
        }
    )


def make_points(scores: Sequence[float], step: float = 1.0) -> list[ConformancePoint]:
    """Conformance points with the given scores at 0, step, 2*step, ..."""
    return [
        ConformancePoint(
            pct=i * step,
            score=s,
            throttle_ok=s > 0,
            brake_ok=s > 0.5,
            steer_ok=s == 1.0,
        )
        for i, s in enumerate(scores)
    ]


@pytest.fixture
def reference_lap() -> pd.DataFrame:
    return make_lap()


@pytest.fixture
def late_lap() -> pd.DataFrame:
    """Same lap, braking 2% later into each corner and releasing 2% later."""
    return make_lap(zones=((22.0, 27.0, 80.0), (62.0, 66.0, 60.0)))
