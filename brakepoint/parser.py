"""Normalize raw telemetry rows and CSV lap exports into canonical samples."""

from __future__ import annotations

import io
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from brakepoint.constants import INPUT_MAX, INPUT_MIN, PCT_MAX, PCT_MIN

SAMPLE_COLUMNS: list[str] = ["pct", "throttle", "brake", "steer", "speed", "time"]

# Canonical field -> accepted source keys, in priority order. Keys are compared
# after lowercasing and stripping separators, so "LapDist_Pct" hits "lapdistpct".
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "pct": ("lapdistpct", "pct"),
    "throttle": ("throttle",),
    "brake": ("brake",),
    "steer": ("steeringwheelangle", "steer"),
    "speed": ("speed",),
    "time": ("time",),
}

# Simulator SDK channels reported as 0-1 fractions
_SDK_FRACTION_KEYS = ("lapdistpct", "throttle", "brake")

# Fields resolved from the first alias present, valid or not
_FIRST_PRESENT_FIELDS = frozenset({"pct"})

_KEY_SEPARATORS = re.compile(r"[\s_\-]+")


@dataclass(frozen=True)
class Sample:
    """One telemetry sample positioned by lap-distance percentage."""

    pct: float
    throttle: float | None = 0.0
    brake: float | None = 0.0
    steer: float | None = 0.0
    speed: float | None = None
    time: float | None = None


@dataclass
class ParsedLap:
    """Normalized samples from one CSV lap export."""

    data: pd.DataFrame
    rows_total: int
    rows_dropped: int


def _canonical_key(key: Any) -> str:
    return _KEY_SEPARATORS.sub("", str(key).strip().lower())


def _to_number(value: Any) -> float | None:
    """Coerce a cell to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _lookup(row: Mapping[str, Any], field: str) -> float | None:
    """Return the first parseable value among the aliases of *field*.

    Fields in ``_FIRST_PRESENT_FIELDS`` stop at the first alias present, so an
    unparseable value there is not replaced by a later alias.
    """
    for alias in _FIELD_ALIASES[field]:
        if alias in row and row[alias] is not None:
            number = _to_number(row[alias])
            if number is not None or field in _FIRST_PRESENT_FIELDS:
                return number
    return None


def normalize_row(row: Mapping[Any, Any]) -> Sample | None:
    """Normalize one raw key/value row into a :class:`Sample`.

    Returns ``None`` when the row carries no usable lap-distance position.
    Throttle and brake default to 0 and are clamped to [0, 100]; steering
    defaults to 0 and keeps its sign and magnitude; speed and time pass
    through unchanged.
    """
    keyed = {_canonical_key(k): v for k, v in row.items()}

    pct = _lookup(keyed, "pct")
    if pct is None:
        return None

    throttle = _lookup(keyed, "throttle")
    brake = _lookup(keyed, "brake")
    steer = _lookup(keyed, "steer")

    return Sample(
        pct=_clamp(pct, PCT_MIN, PCT_MAX),
        throttle=_clamp(throttle if throttle is not None else 0.0, INPUT_MIN, INPUT_MAX),
        brake=_clamp(brake if brake is not None else 0.0, INPUT_MIN, INPUT_MAX),
        steer=steer if steer is not None else 0.0,
        speed=_lookup(keyed, "speed"),
        time=_lookup(keyed, "time"),
    )


def normalize_sdk_sample(raw: Mapping[Any, Any]) -> Sample | None:
    """Normalize a live simulator tick.

    The simulator reports lap position, throttle and brake as 0-1 fractions;
    they are scaled to percent before the regular row normalization.
    """
    scaled: dict[str, Any] = {}
    for key, value in raw.items():
        canonical = _canonical_key(key)
        number = _to_number(value)
        if canonical in _SDK_FRACTION_KEYS and number is not None:
            scaled[canonical] = number * 100.0
        else:
            scaled[canonical] = value
    return normalize_row(scaled)


def samples_to_frame(samples: list[Sample]) -> pd.DataFrame:
    """Stack samples into a float DataFrame (None becomes NaN)."""
    if not samples:
        return pd.DataFrame({col: pd.Series(dtype=float) for col in SAMPLE_COLUMNS})
    records = [
        {col: np.nan if getattr(s, col) is None else getattr(s, col) for col in SAMPLE_COLUMNS}
        for s in samples
    ]
    return pd.DataFrame.from_records(records, columns=SAMPLE_COLUMNS).astype(float)


def _coalesce_aliases(df: pd.DataFrame, field: str) -> pd.Series:
    """Numeric column for *field*, taking the first valid alias per row.

    Fields in ``_FIRST_PRESENT_FIELDS`` use only the first alias column present.
    """
    result = pd.Series(np.nan, index=df.index, dtype=float)
    for alias in _FIELD_ALIASES[field]:
        if alias not in df.columns:
            continue
        column = df[alias]
        # Duplicate headers collapse to the first occurrence
        if isinstance(column, pd.DataFrame):
            column = column.iloc[:, 0]
        values = pd.to_numeric(column, errors="coerce").astype(float)
        values = values.where(np.isfinite(values))
        result = result.fillna(values)
        if field in _FIRST_PRESENT_FIELDS:
            break
    return result


def normalize_frame(raw: pd.DataFrame) -> pd.DataFrame:
    """Vectorized :func:`normalize_row` over a raw DataFrame.

    Rows without a usable position are dropped; the index is reset.
    """
    df = raw.copy()
    df.columns = [_canonical_key(c) for c in df.columns]

    pct = _coalesce_aliases(df, "pct")
    keep = pct.notna()

    throttle = _coalesce_aliases(df, "throttle")[keep].fillna(0.0)
    brake = _coalesce_aliases(df, "brake")[keep].fillna(0.0)

    out = pd.DataFrame(
        {
            "pct": pct[keep].clip(PCT_MIN, PCT_MAX),
            "throttle": throttle.clip(INPUT_MIN, INPUT_MAX),
            "brake": brake.clip(INPUT_MIN, INPUT_MAX),
            "steer": _coalesce_aliases(df, "steer")[keep].fillna(0.0),
            "speed": _coalesce_aliases(df, "speed")[keep],
            "time": _coalesce_aliases(df, "time")[keep],
        },
        columns=SAMPLE_COLUMNS,
    )
    return out.reset_index(drop=True).astype(float)


def parse_lap_csv(source: str | bytes | io.IOBase) -> ParsedLap:
    """Parse a lap CSV export with a header row.

    Parameters
    ----------
    source:
        File path, raw bytes, or file-like object containing the CSV data.

    Returns
    -------
    ParsedLap with the normalized samples and the number of rows dropped for
    lacking a lap-distance position.
    """
    if isinstance(source, bytes):
        source = io.BytesIO(source)

    try:
        raw = pd.read_csv(source, skip_blank_lines=True, low_memory=False)  # type: ignore[arg-type]
    except pd.errors.EmptyDataError:
        raw = pd.DataFrame()

    data = normalize_frame(raw)
    return ParsedLap(
        data=data,
        rows_total=len(raw),
        rows_dropped=len(raw) - len(data),
    )
