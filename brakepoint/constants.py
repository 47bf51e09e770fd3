"""Shared defaults for the brakepoint analysis core.

Centralises the tuning knobs used across the resampler, zone detector,
conformance engine, callout generator and overlay evaluator.
"""

from __future__ import annotations

# Lap-distance percentage domain
PCT_MIN: float = 0.0
PCT_MAX: float = 100.0

# Resampling grid step (% of lap)
RESAMPLE_STEP_PCT: float = 0.5
PCT_DECIMALS = 3

# Input channel ranges (percent)
INPUT_MIN: float = 0.0
INPUT_MAX: float = 100.0

# Match tolerances: throttle/brake in percentage points, steering in degrees
TOLERANCE_THROTTLE: float = 8.0
TOLERANCE_BRAKE: float = 8.0
TOLERANCE_STEER: float = 6.0

# Brake zone hysteresis (brake %) and minimum width (% of lap)
BRAKE_ON_THRESHOLD: float = 5.0
BRAKE_OFF_THRESHOLD: float = 3.0
MIN_ZONE_WIDTH_PCT: float = 0.3

# Rolling grade window (% of lap)
ROLLING_WINDOW_PCT: float = 3.0

# Grade colour breakpoints
GRADE_GREEN: float = 0.8
GRADE_YELLOW: float = 0.5

# Callout thresholds
START_DELTA_PCT: float = 0.8
END_DELTA_PCT: float = 0.8
PRESS_DELTA_PCT: float = 6.0

# Overlay alert
LEAD_TIME_S: float = 2.5
PCT_PER_SECOND: float = 0.6  # 1 s ~ 0.6 % of lap, not derived from speed
ENTER_TOLERANCE_PCT: float = 0.15

# Live lap-wrap detection (pct fell from above HIGH to below LOW)
WRAP_HIGH_PCT: float = 80.0
WRAP_LOW_PCT: float = 20.0
# A recorded lap must start at or below WRAP_LOW_PCT and span at least this much
MIN_LAP_COVERAGE_PCT: float = WRAP_HIGH_PCT - WRAP_LOW_PCT
