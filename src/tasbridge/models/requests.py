"""Pydantic request models for control entrypoints.

These models provide a consistent "validate → encode → publish" flow.
They are used internally by :class:`tasbridge.gateway.CommandGateway`.
Values must be JSON integers; strings, floats and booleans are rejected.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StrictInt

from tasbridge._constants import (
    CT_MAX,
    CT_MIN,
    DIMMER_MAX,
    DIMMER_MIN,
    HUE_MAX,
    HUE_MIN,
    SATURATION_MAX,
    SATURATION_MIN,
)

Mireds = Annotated[StrictInt, Field(ge=CT_MIN, le=CT_MAX)]
Percent = Annotated[StrictInt, Field(ge=DIMMER_MIN, le=DIMMER_MAX)]
Hue = Annotated[StrictInt, Field(ge=HUE_MIN, le=HUE_MAX)]
Saturation = Annotated[StrictInt, Field(ge=SATURATION_MIN, le=SATURATION_MAX)]


class _ControlRequest(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class ColorTemperatureRequest(_ControlRequest):
    value: Mireds


class DimmerRequest(_ControlRequest):
    value: Percent


class HsbColorRequest(_ControlRequest):
    hue: Hue
    saturation: Saturation
    dimmer: Percent

    def encode(self) -> str:
        """Comma-joined triple as accepted by the ``HSBColor`` command."""
        return f"{self.hue},{self.saturation},{self.dimmer}"
