"""In-memory device state store.

This is the only component allowed to merge patches into the device state.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from tasbridge.models.device import DeviceState
from tasbridge.state.events import MergeKind, Patch, PatchSource

_logger = logging.getLogger(__name__)

StateListener = Callable[[DeviceState, Patch], None]


def _patch_update(patch: Patch) -> dict[str, Any]:
    """Translate a patch into the field update it is allowed to make."""
    if patch.kind == MergeKind.PRESENCE:
        online = patch.data.get("online")
        if online is None:
            return {}
        return {"online": bool(online)}

    update = copy.deepcopy(patch.data)
    if patch.kind == MergeKind.FULL_REPLACE:
        # A STATE message is proof of liveness.
        update["online"] = True
    return update


class StateStore:
    """Holder of the single :class:`DeviceState`.

    Every apply builds a new frozen record and swaps it in with one
    assignment, so a reader sees either the old or the new record. Callers
    are expected to run on one event loop; the store takes no locks.
    """

    def __init__(
        self,
        *,
        initial: DeviceState | None = None,
        listeners: Iterable[StateListener] = (),
    ) -> None:
        self._state = initial if initial is not None else DeviceState()
        self._listeners: list[StateListener] = list(listeners)

    def add_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def apply_patch(self, patch: Patch) -> None:
        """Merge a patch field by field. Fields it does not carry are kept."""
        update = _patch_update(patch)
        if not update:
            return

        previous = self._state
        self._state = previous.model_copy(update=update)

        if previous.online and not self._state.online:
            _logger.warning("Device went offline (topic=%s)", patch.topic or "-")
        _logger.debug("Applied %s patch from %s: %s", patch.kind, patch.source, update)

        for listener in list(self._listeners):
            try:
                listener(self._state, patch)
            except Exception:
                _logger.error("State listener failed", exc_info=True)

    def apply_optimistic(self, data: Mapping[str, Any]) -> Patch:
        """Apply a speculative write issued alongside an outbound command.

        Uses the partial-replace merge, so a later telemetry patch carrying
        the same field simply overwrites it.
        """
        patch = Patch(kind=MergeKind.PARTIAL_REPLACE, source=PatchSource.OPTIMISTIC, data=dict(data))
        self.apply_patch(patch)
        return patch

    def snapshot(self) -> DeviceState:
        """Return an immutable copy of the current state."""
        return self._state.model_copy(deep=True)
