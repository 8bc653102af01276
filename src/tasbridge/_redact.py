"""Helpers for safe debug logging.

HTTP request bodies carry the shared API key and the configuration carries
broker credentials. These helpers mask them before they reach a log line.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from typing import Any

_MASK = "<redacted>"

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "apikey",
        "api_key",
        "key",
        "password",
        "mqtt_password",
        "authorization",
        "cookie",
    }
)


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a redacted copy of *value* suitable for debug logs."""
    if _depth > 10:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        if len(value) > max_string:
            return f"{value[:max_string]}…<truncated>"
        return value

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(k): _MASK
            if str(k).lower() in _SENSITIVE_KEYS
            else redact_for_log(v, max_string=max_string, _depth=_depth + 1)
            for k, v in value.items()
        }

    if isinstance(value, Sequence):
        return [redact_for_log(v, max_string=max_string, _depth=_depth + 1) for v in value]

    return repr(value)


def redact_config(config: Any) -> dict[str, Any]:
    """Dataclass config as a dict with secrets masked."""
    values = dataclasses.asdict(config)
    return {k: (_MASK if k in _SENSITIVE_KEYS and v else v) for k, v in values.items()}
