"""Normalization helpers.

Centralizes defensive coercion of telemetry values.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from tasbridge.models.device import PowerState


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    """Scalar to string; containers and ``None`` are not text."""
    if value is None or isinstance(value, (Mapping, list, tuple, bool)):
        return None
    return str(value)


def to_power(value: Any) -> PowerState | None:
    if not isinstance(value, str):
        return None
    try:
        return PowerState(value.strip().upper())
    except ValueError:
        return None


def to_mapping(value: Any) -> dict[str, Any] | None:
    if not isinstance(value, Mapping):
        return None
    return {str(key): item for key, item in value.items()}
