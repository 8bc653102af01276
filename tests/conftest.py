from __future__ import annotations

import pytest

from tasbridge.config import BridgeConfig
from tasbridge.gateway import CommandGateway
from tasbridge.models.command import Command
from tasbridge.state.store import StateStore

API_KEY = "s3cret-key"


class RecordingPublisher:
    """Publisher double that records commands instead of talking to a broker."""

    def __init__(self, *, accept: bool = True) -> None:
        self.commands: list[Command] = []
        self._accept = accept

    def publish(self, command: Command) -> bool:
        self.commands.append(command)
        return self._accept


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig(
        mqtt_host="broker.local",
        mqtt_topic="bulb",
        device_mac="AABBCCDDEEFF",
        mqtt_protocol="mqtt",
        mqtt_port=1883,
        api_key=API_KEY,
    )


@pytest.fixture
def store() -> StateStore:
    return StateStore()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def gateway(store: StateStore, publisher: RecordingPublisher) -> CommandGateway:
    return CommandGateway(api_key=API_KEY, store=store, publisher=publisher)
