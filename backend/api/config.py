"""Application settings via pydantic-settings."""

from __future__ import annotations

import json

from brakepoint.callouts import BrakeCalloutOptions
from brakepoint.conformance import Tolerances
from brakepoint.engine import AnalysisParams
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_cors_origins(raw: str) -> list[str]:
    """Parse a CORS origins string, tolerating non-JSON formats.

    Handles:
    - Valid JSON arrays: ``["https://a.com","https://b.com"]``
    - Bracketed non-JSON: ``[https://a.com,https://b.com]``
    - Comma-separated: ``https://a.com,https://b.com``
    """
    try:
        parsed = json.loads(raw)
        if isinstance(parsed, list):
            return [str(x) for x in parsed]
    except (json.JSONDecodeError, ValueError):
        pass

    stripped = raw.strip("[] ")
    return [s.strip().strip('"').strip("'") for s in stripped.split(",") if s.strip()]


class Settings(BaseSettings):
    """Brakepoint API configuration.

    Values are loaded from environment variables, falling back to a ``.env``
    file in the project root.  The analysis values are defaults only; every
    analysis request may override them.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Resampling and conformance
    resample_step_pct: float = 0.5
    tolerance_throttle: float = 8.0
    tolerance_brake: float = 8.0
    tolerance_steer: float = 6.0
    rolling_window_pct: float = 3.0
    align_mode: str = "index"

    # Brake zones
    brake_on_threshold: float = 5.0
    brake_off_threshold: float = 3.0
    min_zone_width_pct: float = 0.3

    # Callouts
    start_delta_pct: float = 0.8
    end_delta_pct: float = 0.8
    press_delta_pct: float = 6.0

    # Overlay
    lead_time_s: float = 2.5
    pct_per_second: float = 0.6
    overlay_wrap_zones: bool = False
    overlay_min_speed: float = 0.0
    overlay_suppress_while_braking: bool = False

    # CORS: raw string, parsed tolerantly
    cors_origins_raw: str = '["http://localhost:5173"]'

    # Upload limits
    max_upload_size_mb: int = 20

    debug: bool = False

    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from the raw string."""
        return _parse_cors_origins(self.cors_origins_raw)

    def analysis_params(self) -> AnalysisParams:
        """Default analysis knobs as core parameters."""
        return AnalysisParams(
            step_pct=self.resample_step_pct,
            tolerances=Tolerances(
                throttle=self.tolerance_throttle,
                brake=self.tolerance_brake,
                steer=self.tolerance_steer,
            ),
            window_pct=self.rolling_window_pct,
            on_threshold=self.brake_on_threshold,
            off_threshold=self.brake_off_threshold,
            min_width_pct=self.min_zone_width_pct,
            callout_options=BrakeCalloutOptions(
                start_delta_pct=self.start_delta_pct,
                end_delta_pct=self.end_delta_pct,
                press_delta_pct=self.press_delta_pct,
            ),
            align=self.align_mode,
        )
