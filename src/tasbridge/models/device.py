"""Canonical device-state record."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field

from tasbridge._constants import CT_MIN
from tasbridge.models._base import BridgeBaseModel

_UNKNOWN = "N/A"


class PowerState(enum.StrEnum):
    """Relay power state as reported by the ``POWER`` key."""

    ON = "ON"
    OFF = "OFF"

    def toggled(self) -> PowerState:
        return PowerState.OFF if self is PowerState.ON else PowerState.ON


class DeviceState(BridgeBaseModel):
    """Everything the bridge knows about the light.

    Defaults are deliberately conservative: a freshly started bridge reports
    the device as powered off and offline until telemetry says otherwise.
    """

    power: PowerState = PowerState.OFF
    online: bool = False
    ip: str = _UNKNOWN
    hostname: str = _UNKNOWN
    module: str = _UNKNOWN
    version: str = _UNKNOWN
    restart_reason: str = _UNKNOWN
    boot_count: int = 0
    dimmer: int = 10
    color: str = "0,0,0"
    hsb_color: str = "0,0,0"
    ct: int = CT_MIN
    wifi: dict[str, Any] = Field(default_factory=dict)


#: Field names a patch may carry; anything else is rejected.
DEVICE_STATE_FIELDS: frozenset[str] = frozenset(DeviceState.model_fields)
