"""tasbridge - MQTT/HTTP bridge for a single Tasmota light."""

from importlib.metadata import PackageNotFoundError, version

from tasbridge.bridge import TasmotaBridge
from tasbridge.config import BridgeConfig
from tasbridge.exceptions import (
    BridgeAuthenticationError,
    BridgeConfigError,
    BridgeConnectionError,
    BridgeError,
    BridgeMessageParseError,
    BridgePublishError,
    BridgeValidationError,
)
from tasbridge.gateway import CommandGateway
from tasbridge.ingestion.router import route_message
from tasbridge.models import Command, CommandName, DeviceState, PowerState
from tasbridge.state.events import MergeKind, Patch, PatchSource
from tasbridge.state.store import StateStore

try:
    __version__ = version("tasbridge")
except PackageNotFoundError:
    __version__ = "0+local"

__all__ = [
    "__version__",
    "BridgeAuthenticationError",
    "BridgeConfig",
    "BridgeConfigError",
    "BridgeConnectionError",
    "BridgeError",
    "BridgeMessageParseError",
    "BridgePublishError",
    "BridgeValidationError",
    "Command",
    "CommandGateway",
    "CommandName",
    "DeviceState",
    "MergeKind",
    "Patch",
    "PatchSource",
    "PowerState",
    "StateStore",
    "TasmotaBridge",
    "route_message",
]
