"""Base model for tasbridge records.

:class:`BridgeBaseModel` provides:

* ``alias_generator=to_camel`` so snake_case fields serialize to the
  camelCase keys the dashboard consumes (``restartReason``, ``hsbColor``).
* ``populate_by_name`` so internal code can keep using field names.
* Frozen instances; the store swaps whole records instead of mutating them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BridgeBaseModel(BaseModel):
    """Base for tasbridge models."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_json_dict(self) -> dict[str, Any]:
        """Dump using the public camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
