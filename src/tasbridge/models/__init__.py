"""Data models for tasbridge."""

from tasbridge.models._base import BridgeBaseModel
from tasbridge.models.command import Command, CommandName
from tasbridge.models.device import DEVICE_STATE_FIELDS, DeviceState, PowerState
from tasbridge.models.requests import ColorTemperatureRequest, DimmerRequest, HsbColorRequest

__all__ = [
    "BridgeBaseModel",
    "ColorTemperatureRequest",
    "Command",
    "CommandName",
    "DEVICE_STATE_FIELDS",
    "DeviceState",
    "DimmerRequest",
    "HsbColorRequest",
    "PowerState",
]
