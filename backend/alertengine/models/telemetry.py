"""Telemetry value types."""

from __future__ import annotations

import math
from typing import Any, Mapping, Union

TelemetryValue = Union[str, int, float, bool, None]
TelemetrySnapshot = Mapping[str, TelemetryValue]


def coerce_to_float(value: Any) -> float | None:
    """
    Convert a telemetry value or threshold to a float.

    Returns None instead of raising when the value has no numeric
    reading (null, containers, non-numeric strings, NaN, integers too
    large for a float).
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(result) else result


def normalize_snapshot(data: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    """Keep only scalar readings from a decoded JSON object."""
    snapshot: dict[str, TelemetryValue] = {}
    for key, value in data.items():
        if value is None or isinstance(value, (str, int, float, bool)):
            snapshot[str(key)] = value
    return snapshot
