"""Outbound Tasmota commands."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict

from tasbridge._constants import CMND_PREFIX


class CommandName(enum.StrEnum):
    """Tasmota command names, used verbatim as the last topic segment."""

    POWER = "POWER"
    COLOR_TEMPERATURE = "CT"
    DIMMER = "Dimmer"
    HSB_COLOR = "HSBColor"


class Command(BaseModel):
    """A single ``cmnd/<topic>/<name>`` publish."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: CommandName
    value: str

    def topic_for(self, device_topic: str) -> str:
        return f"{CMND_PREFIX}/{device_topic}/{self.name.value}"
