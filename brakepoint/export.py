"""CSV export of conformance traces."""

from __future__ import annotations

import io
from pathlib import Path

import pandas as pd

from brakepoint.conformance import ConformancePoint

EXPORT_COLUMNS: list[str] = ["pct", "overall_score", "throttle_ok", "brake_ok", "steer_ok"]


def conformance_export_frame(conf: list[ConformancePoint]) -> pd.DataFrame:
    """Export layout: 3-decimal pct/score, channel flags as 0/1."""
    return pd.DataFrame(
        {
            "pct": [round(c.pct, 3) for c in conf],
            "overall_score": [round(c.score, 3) for c in conf],
            "throttle_ok": [int(c.throttle_ok) for c in conf],
            "brake_ok": [int(c.brake_ok) for c in conf],
            "steer_ok": [int(c.steer_ok) for c in conf],
        },
        columns=EXPORT_COLUMNS,
    )


def export_conformance_csv(
    conf: list[ConformancePoint],
    path: str | Path | None = None,
) -> str:
    """Render conformance points as CSV text, optionally writing it to *path*.

    Always returns the CSV text (header plus one row per point).
    """
    buf = io.StringIO()
    frame = conformance_export_frame(conf)
    frame.to_csv(buf, index=False, float_format="%.3f", lineterminator="\n")
    text = buf.getvalue()
    if path is not None:
        Path(path).write_text(text, encoding="utf-8")
    return text


def read_conformance_csv(source: str | Path | io.IOBase) -> list[ConformancePoint]:
    """Load an exported conformance CSV back into points."""
    df = pd.read_csv(source)  # type: ignore[arg-type]
    missing = [c for c in EXPORT_COLUMNS if c not in df.columns]
    if missing:
        msg = f"Not a conformance export, missing columns: {missing}"
        raise ValueError(msg)
    return [
        ConformancePoint(
            pct=float(row.pct),
            score=float(row.overall_score),
            throttle_ok=bool(row.throttle_ok),
            brake_ok=bool(row.brake_ok),
            steer_ok=bool(row.steer_ok),
        )
        for row in df.itertuples(index=False)
    ]
