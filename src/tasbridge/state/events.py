"""Normalized state patches.

The topic router and the command gateway convert their inputs into these
patches. Only the state/store layer is allowed to merge them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tasbridge.models.device import DEVICE_STATE_FIELDS


class MergeKind(StrEnum):
    PRESENCE = "presence"
    FULL_REPLACE = "full_replace"
    PARTIAL_REPLACE = "partial_replace"


class PatchSource(StrEnum):
    MQTT = "mqtt"
    OPTIMISTIC = "optimistic"


class Patch(BaseModel):
    """A field-level update to apply to the state store."""

    model_config = ConfigDict(frozen=True)

    kind: MergeKind
    source: PatchSource = PatchSource.MQTT
    topic: str = ""
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict, description="DeviceState field values")
    raw: Any = Field(default=None, description="Parsed payload (as received)")

    @field_validator("data")
    @classmethod
    def _known_fields_only(cls, value: dict[str, Any]) -> dict[str, Any]:
        unknown = set(value) - DEVICE_STATE_FIELDS
        if unknown:
            raise ValueError(f"unknown device state fields: {sorted(unknown)}")
        return value

    @field_validator("observed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
