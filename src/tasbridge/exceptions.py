"""Custom exception hierarchy for tasbridge."""

from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all tasbridge errors."""


class BridgeConfigError(BridgeError):
    """Invalid or missing configuration.

    Raised at startup; the process refuses to run without telemetry.
    """


class BridgeAuthenticationError(BridgeError):
    """Missing or invalid shared API key."""

    def __init__(self, message: str = "Invalid API key", *, origin: str | None = None) -> None:
        self.origin = origin
        super().__init__(message)


class BridgeValidationError(BridgeError):
    """Out-of-range or malformed control input."""

    def __init__(self, message: str, *, field: str = "") -> None:
        self.field = field
        super().__init__(message)


class BridgeMessageParseError(BridgeError):
    """Inbound MQTT payload could not be parsed."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class BridgePublishError(BridgeError):
    """Broker rejected or dropped an outbound command."""

    def __init__(self, message: str, *, topic: str = "", code: int | None = None) -> None:
        self.topic = topic
        self.code = code
        super().__init__(message)


class BridgeConnectionError(BridgeError):
    """Broker unreachable or session dropped."""
