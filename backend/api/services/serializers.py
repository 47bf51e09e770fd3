"""Data serialization helpers: DataFrame to columns, dataclass to dict.

Bridges brakepoint's internal data types (DataFrames, numpy arrays, frozen
dataclasses) and the Pydantic API schemas.  NaN never reaches JSON: it is
emitted as ``None``.
"""

from __future__ import annotations

import math
from dataclasses import fields, is_dataclass
from typing import Any

import numpy as np
import pandas as pd


def _clean(value: Any) -> Any:
    if isinstance(value, (float, np.floating)):
        f = float(value)
        return None if math.isnan(f) else f
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, np.bool_):
        return bool(value)
    return value


def dataframe_to_columnar(df: pd.DataFrame, columns: list[str]) -> dict[str, list[float | None]]:
    """Convert selected DataFrame columns to a columnar JSON-ready dict.

    Missing columns are skipped; NaN cells become ``None``.
    """
    result: dict[str, list[float | None]] = {}
    for col in columns:
        if col in df.columns:
            result[col] = [_clean(v) for v in df[col].tolist()]
    return result


def dataclass_to_dict(obj: Any) -> dict[str, Any]:
    """Recursively convert a dataclass to a JSON-serializable dict.

    Handles nested dataclasses, lists, numpy scalars/arrays and NaN floats.
    """
    if not is_dataclass(obj) or isinstance(obj, type):
        return {"value": _clean(obj)}

    result: dict[str, Any] = {}
    for f in fields(obj):
        result[f.name] = _to_jsonable(getattr(obj, f.name))
    return result


def _to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return dataclass_to_dict(value)
    if isinstance(value, np.ndarray):
        return [_clean(v) for v in value.tolist()]
    if isinstance(value, pd.DataFrame):
        return {col: [_clean(v) for v in value[col].tolist()] for col in value.columns}
    if isinstance(value, dict):
        return {k: _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return _clean(value)
