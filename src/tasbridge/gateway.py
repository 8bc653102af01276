"""Authenticated control surface.

Every mutator follows the same sequence: validate, publish the command
(fire-and-forget), write the optimistic value into the store and return
the new snapshot. Nothing waits for the broker or for confirming
telemetry; the next STATE/RESULT message reconciles the record.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from tasbridge.exceptions import BridgeAuthenticationError, BridgeValidationError
from tasbridge.models.command import Command, CommandName
from tasbridge.models.device import DeviceState
from tasbridge.models.requests import ColorTemperatureRequest, DimmerRequest, HsbColorRequest
from tasbridge.state.store import StateStore

_logger = logging.getLogger(__name__)

TRequest = TypeVar("TRequest", bound=BaseModel)


class CommandPublisher(Protocol):
    """Structural publisher interface.

    Implementations must log and absorb delivery failures; ``publish`` never
    raises to the gateway.
    """

    def publish(self, command: Command) -> bool: ...


def _validate(model_cls: type[TRequest], message: str, values: Mapping[str, Any]) -> TRequest:
    try:
        return model_cls.model_validate(dict(values))
    except ValidationError as exc:
        fields = ",".join(str(err["loc"][0]) for err in exc.errors() if err.get("loc"))
        _logger.info("Rejected control request: %s (%s)", message, fields or "-")
        raise BridgeValidationError(message, field=fields) from exc


class CommandGateway:
    """Validates control requests and turns them into commands."""

    def __init__(self, *, api_key: str, store: StateStore, publisher: CommandPublisher) -> None:
        self._api_key = api_key
        self._store = store
        self._publisher = publisher

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self, key: Any) -> bool:
        """Exact match of ``key`` against the configured secret."""
        if not isinstance(key, str):
            return False
        return secrets.compare_digest(key.encode(), self._api_key.encode())

    def authenticate(self, key: Any, *, origin: str | None = None) -> None:
        """Gate for every operation but :meth:`login`.

        Raises
        ------
        BridgeAuthenticationError
            When the key is missing or does not match.
        """
        if not self.login(key):
            _logger.warning("Failed authentication attempt from IP: %s", origin or "unknown")
            raise BridgeAuthenticationError(origin=origin)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self) -> DeviceState:
        return self._store.snapshot()

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def set_power(self) -> DeviceState:
        """Toggle relative to the current store value."""
        new_power = self._store.snapshot().power.toggled()
        return self._issue(Command(name=CommandName.POWER, value=new_power.value), {"power": new_power})

    def set_color_temperature(self, value: Any) -> DeviceState:
        request = _validate(ColorTemperatureRequest, "Invalid CT value", {"value": value})
        return self._issue(
            Command(name=CommandName.COLOR_TEMPERATURE, value=str(request.value)),
            {"ct": request.value},
        )

    def set_dimmer(self, value: Any) -> DeviceState:
        request = _validate(DimmerRequest, "Invalid dimmer value", {"value": value})
        return self._issue(
            Command(name=CommandName.DIMMER, value=str(request.value)),
            {"dimmer": request.value},
        )

    def set_hsb(self, hue: Any, saturation: Any, dimmer: Any) -> DeviceState:
        request = _validate(
            HsbColorRequest,
            "Invalid HSB values",
            {"hue": hue, "saturation": saturation, "dimmer": dimmer},
        )
        encoded = request.encode()
        return self._issue(Command(name=CommandName.HSB_COLOR, value=encoded), {"hsb_color": encoded})

    def _issue(self, command: Command, optimistic: Mapping[str, Any]) -> DeviceState:
        self._publisher.publish(command)
        self._store.apply_optimistic(optimistic)
        return self._store.snapshot()
