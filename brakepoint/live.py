"""Buffer live telemetry into laps, closing a lap on counter increase or position wrap."""

from __future__ import annotations

import logging
from collections.abc import Callable

import pandas as pd

from brakepoint.constants import MIN_LAP_COVERAGE_PCT, WRAP_HIGH_PCT, WRAP_LOW_PCT
from brakepoint.parser import Sample, samples_to_frame

logger = logging.getLogger(__name__)

LapCallback = Callable[[int | None, pd.DataFrame], None]


def is_lap_wrap(
    previous_pct: float | None,
    current_pct: float,
    high: float = WRAP_HIGH_PCT,
    low: float = WRAP_LOW_PCT,
) -> bool:
    """True when the position jumped from the end of the lap back to its start."""
    return previous_pct is not None and previous_pct > high and current_pct < low


class LiveLapRecorder:
    """Collects normalized live samples and emits each completed lap.

    A lap completes when the simulator's lap counter increases or when the
    lap position wraps from above ``WRAP_HIGH_PCT`` to below ``WRAP_LOW_PCT``.
    A lap counter going backwards (replay, session reset) discards the buffer.
    Partial laps are dropped: a lap must start at or below ``WRAP_LOW_PCT`` and
    cover at least ``MIN_LAP_COVERAGE_PCT`` of lap distance.

    The callback receives the lap number (``None`` when the feed carries no
    counter) and the lap's samples as a DataFrame.
    """

    def __init__(self, on_lap_complete: LapCallback, min_samples: int = 10) -> None:
        self.on_lap_complete = on_lap_complete
        self.min_samples = min_samples
        self.current_lap: int | None = None
        self.samples: list[Sample] = []
        self._last_pct: float | None = None
        self._awaiting_counter = False

    def add_sample(self, sample: Sample, lap: int | None = None) -> bool:
        """Add one sample. Returns True when it closed the previous lap."""
        if lap is not None and self.current_lap is not None and lap < self.current_lap:
            logger.info(
                "Lap counter went backwards (%d -> %d), resetting buffer", self.current_lap, lap
            )
            self.reset(lap)
            self._append(sample)
            return False

        advanced = lap is not None and self.current_lap is not None and lap > self.current_lap
        wrapped = is_lap_wrap(self._last_pct, sample.pct)

        completed = False
        if wrapped:
            completed = self._finish()
            # The counter usually ticks over a sample or two after the position wraps
            self._awaiting_counter = lap is not None and not advanced
        elif advanced:
            if self._awaiting_counter:
                self._awaiting_counter = False
            else:
                completed = self._finish()

        if lap is not None:
            self.current_lap = lap
        self._append(sample)
        return completed

    def reset(self, lap: int | None = None) -> None:
        self.current_lap = lap
        self.samples = []
        self._last_pct = None
        self._awaiting_counter = False

    def _append(self, sample: Sample) -> None:
        self.samples.append(sample)
        self._last_pct = sample.pct

    def _finish(self) -> bool:
        samples, self.samples = self.samples, []
        if len(samples) < self.min_samples:
            logger.debug("Discarding partial lap with %d samples", len(samples))
            return False
        first, last = samples[0].pct, samples[-1].pct
        if first > WRAP_LOW_PCT or last - first < MIN_LAP_COVERAGE_PCT:
            logger.info(
                "Discarding partial lap %s covering %.1f%%-%.1f%%", self.current_lap, first, last
            )
            return False
        self.on_lap_complete(self.current_lap, samples_to_frame(samples))
        return True
