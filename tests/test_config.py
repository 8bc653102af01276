from __future__ import annotations

import pytest

from tasbridge.__main__ import main
from tasbridge.config import BridgeConfig
from tasbridge.exceptions import BridgeConfigError

_REQUIRED_ENV = {"MQTT_HOST": "broker.local", "MQTT_TOPIC": "bulb", "TASMOTA_MAC": "AABBCCDDEEFF"}


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key in (
        *_REQUIRED_ENV,
        "MQTT_PORT",
        "MQTT_USERNAME",
        "MQTT_PASSWORD",
        "MQTT_PROTOCOL",
        "MQTT_KEEPALIVE",
        "MQTT_RECONNECT_PERIOD",
        "MQTT_CLIENT_ID",
        "API_KEY",
        "PORT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_from_env_defaults(clean_env: pytest.MonkeyPatch) -> None:
    for key, value in _REQUIRED_ENV.items():
        clean_env.setenv(key, value)

    config = BridgeConfig.from_env()

    assert config.mqtt_port == 8883
    assert config.mqtt_protocol == "mqtts"
    assert config.use_tls is True
    assert config.http_port == 3000
    assert config.mqtt_reconnect_period == 5.0
    assert config.uses_default_api_key is True


def test_from_env_reads_optional_values(clean_env: pytest.MonkeyPatch) -> None:
    for key, value in _REQUIRED_ENV.items():
        clean_env.setenv(key, value)
    clean_env.setenv("MQTT_PORT", "1883")
    clean_env.setenv("MQTT_PROTOCOL", "mqtt")
    clean_env.setenv("MQTT_USERNAME", "user")
    clean_env.setenv("MQTT_PASSWORD", "pw")
    clean_env.setenv("API_KEY", "abc")
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("MQTT_RECONNECT_PERIOD", "2.5")

    config = BridgeConfig.from_env()

    assert config.mqtt_port == 1883
    assert config.use_tls is False
    assert config.mqtt_username == "user"
    assert config.mqtt_password == "pw"
    assert config.api_key == "abc"
    assert config.http_port == 8080
    assert config.mqtt_reconnect_period == 2.5


def test_overrides_win_over_env(clean_env: pytest.MonkeyPatch) -> None:
    for key, value in _REQUIRED_ENV.items():
        clean_env.setenv(key, value)
    clean_env.setenv("PORT", "8080")

    config = BridgeConfig.from_env(http_port=9000)

    assert config.http_port == 9000


@pytest.mark.parametrize("missing", sorted(_REQUIRED_ENV))
def test_missing_required_setting_is_fatal(clean_env: pytest.MonkeyPatch, missing: str) -> None:
    for key, value in _REQUIRED_ENV.items():
        if key != missing:
            clean_env.setenv(key, value)

    with pytest.raises(BridgeConfigError, match=missing):
        BridgeConfig.from_env()


def test_invalid_numbers_and_protocol_rejected(clean_env: pytest.MonkeyPatch) -> None:
    for key, value in _REQUIRED_ENV.items():
        clean_env.setenv(key, value)

    clean_env.setenv("MQTT_PORT", "eighty")
    with pytest.raises(BridgeConfigError):
        BridgeConfig.from_env()
    clean_env.delenv("MQTT_PORT")

    with pytest.raises(BridgeConfigError):
        BridgeConfig.from_env(mqtt_protocol="ws")
    with pytest.raises(BridgeConfigError):
        BridgeConfig.from_env(mqtt_reconnect_period=0)


def test_topics_derived_from_config(config: BridgeConfig) -> None:
    assert config.discovery_topic == "tasmota/discovery/AABBCCDDEEFF/config"
    assert config.subscription_topics == (
        "stat/bulb/+",
        "tele/bulb/+",
        "tasmota/discovery/AABBCCDDEEFF/config",
    )


def test_main_refuses_to_start_without_required_settings(clean_env: pytest.MonkeyPatch) -> None:
    assert main([]) == 1
