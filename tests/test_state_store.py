from __future__ import annotations

import logging

import pytest

from tasbridge.ingestion.router import route_message
from tasbridge.models.device import DeviceState, PowerState
from tasbridge.state.events import MergeKind, Patch, PatchSource
from tasbridge.state.store import StateStore

DISCOVERY = "tasmota/discovery/AABBCCDDEEFF/config"


def _apply(store: StateStore, topic: str, payload: bytes) -> None:
    patch = route_message(topic, payload, discovery_topic=DISCOVERY)
    assert patch is not None
    store.apply_patch(patch)


def test_initial_state_is_conservative() -> None:
    state = StateStore().snapshot()

    assert state.power == PowerState.OFF
    assert state.online is False
    assert state.ip == "N/A"
    assert state.ct == 153


def test_partial_replace_leaves_other_fields_untouched() -> None:
    store = StateStore()
    store.apply_patch(Patch(kind=MergeKind.PARTIAL_REPLACE, data={"ip": "10.0.0.5", "dimmer": 80}))
    before = store.snapshot()

    store.apply_patch(Patch(kind=MergeKind.PARTIAL_REPLACE, data={"ct": 250}))
    after = store.snapshot()

    assert after.ct == 250
    assert after.model_dump(exclude={"ct"}) == before.model_dump(exclude={"ct"})


def test_full_replace_forces_online() -> None:
    store = StateStore()

    store.apply_patch(Patch(kind=MergeKind.FULL_REPLACE, data={"online": False, "dimmer": 20}))

    assert store.snapshot().online is True
    assert store.snapshot().dimmer == 20


def test_presence_only_writes_online() -> None:
    store = StateStore()
    store.apply_patch(Patch(kind=MergeKind.PRESENCE, data={"online": True}))

    assert store.snapshot().online is True
    assert store.snapshot().power == PowerState.OFF


def test_going_offline_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    store = StateStore(initial=DeviceState(online=True))

    with caplog.at_level(logging.WARNING, logger="tasbridge.state.store"):
        store.apply_patch(Patch(kind=MergeKind.PRESENCE, topic="tele/bulb/LWT", data={"online": False}))

    assert store.snapshot().online is False
    assert any("offline" in record.getMessage() for record in caplog.records)


def test_patch_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError):
        Patch(kind=MergeKind.PARTIAL_REPLACE, data={"Dimmer": 50})


def test_snapshot_is_detached_from_store() -> None:
    store = StateStore()
    store.apply_patch(Patch(kind=MergeKind.FULL_REPLACE, data={"wifi": {"RSSI": 80}}))

    snapshot = store.snapshot()
    snapshot.wifi["RSSI"] = 1

    assert store.snapshot().wifi == {"RSSI": 80}
    with pytest.raises(ValueError):
        snapshot.dimmer = 1  # type: ignore[misc]


def test_optimistic_write_is_overwritten_by_later_telemetry() -> None:
    store = StateStore()

    patch = store.apply_optimistic({"dimmer": 80})
    assert patch.source == PatchSource.OPTIMISTIC
    assert store.snapshot().dimmer == 80

    _apply(store, "stat/bulb/RESULT", b'{"Dimmer":30}')
    assert store.snapshot().dimmer == 30


def test_state_message_preserves_unrelated_fields() -> None:
    store = StateStore()
    _apply(store, "tele/bulb/INFO2", b'{"Hostname":"bulb","IPAddress":"192.168.1.50"}')

    _apply(store, "tele/bulb/STATE", b'{"POWER":"ON","Dimmer":55}')

    state = store.snapshot()
    assert state.power == PowerState.ON
    assert state.dimmer == 55
    assert state.online is True
    assert state.ip == "192.168.1.50"
    assert state.hostname == "bulb"


def test_result_ct_only_keeps_prior_dimmer() -> None:
    store = StateStore()
    store.apply_optimistic({"dimmer": 80})

    _apply(store, "stat/bulb/RESULT", b'{"CT":250}')

    state = store.snapshot()
    assert state.dimmer == 80
    assert state.ct == 250


def test_listener_failure_does_not_break_apply(caplog: pytest.LogCaptureFixture) -> None:
    seen: list[int] = []

    def _boom(_state: DeviceState, _patch: Patch) -> None:
        raise RuntimeError("boom")

    store = StateStore(listeners=[_boom])
    store.add_listener(lambda state, _patch: seen.append(state.dimmer))

    with caplog.at_level(logging.ERROR, logger="tasbridge.state.store"):
        store.apply_optimistic({"dimmer": 42})

    assert seen == [42]
    assert store.snapshot().dimmer == 42
    assert any("listener" in record.getMessage() for record in caplog.records)


def test_offline_lwt_warns_once_per_transition(caplog: pytest.LogCaptureFixture) -> None:
    store = StateStore()

    with caplog.at_level(logging.WARNING, logger="tasbridge"):
        _apply(store, "tele/bulb/LWT", b"Offline")
        assert not [record for record in caplog.records if record.levelno >= logging.WARNING]

        _apply(store, "tele/bulb/LWT", b"Online")
        _apply(store, "tele/bulb/LWT", b"Offline")

    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert warnings[0].name == "tasbridge.state.store"
