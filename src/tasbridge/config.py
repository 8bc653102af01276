"""Bridge configuration for tasbridge."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from typing import Any

from tasbridge._constants import (
    DEFAULT_API_KEY,
    DEFAULT_HTTP_PORT,
    DEFAULT_KEEPALIVE,
    DEFAULT_MQTT_PORT,
    DEFAULT_MQTT_PROTOCOL,
    DEFAULT_RECONNECT_PERIOD,
    DISCOVERY_TOPIC_TEMPLATE,
    MQTT_PROTOCOLS,
    STAT_PREFIX,
    TELE_PREFIX,
)
from tasbridge.exceptions import BridgeConfigError


def _env_int(env: Mapping[str, str], key: str) -> int | None:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise BridgeConfigError(f"{key} must be an integer, got {value!r}") from exc


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise BridgeConfigError(f"{key} must be a number, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    """Bridge configuration.

    Parameters
    ----------
    mqtt_host : str
        Broker host name. Required.
    mqtt_topic : str
        Tasmota device topic (the ``%topic%`` part of ``stat/%topic%/...``).
        Required.
    device_mac : str
        Device MAC as used in the discovery topic
        ``tasmota/discovery/<MAC>/config``. Required.
    mqtt_port : int
        Broker port.
    mqtt_username, mqtt_password : str or None
        Broker credentials; ``None`` connects anonymously.
    mqtt_protocol : str
        ``"mqtts"`` (TLS) or ``"mqtt"`` (plain TCP).
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_reconnect_period : float
        Fixed delay between reconnect attempts, in seconds.
    mqtt_client_id : str
        Client id; empty lets the broker assign one.
    api_key : str
        Shared secret required by the HTTP control surface.
    http_port : int
        HTTP listen port.
    log_level : str
        Root logging level used by the entry point.
    """

    mqtt_host: str
    mqtt_topic: str
    device_mac: str
    mqtt_port: int = DEFAULT_MQTT_PORT
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_protocol: str = DEFAULT_MQTT_PROTOCOL
    mqtt_keepalive: int = DEFAULT_KEEPALIVE
    mqtt_reconnect_period: float = DEFAULT_RECONNECT_PERIOD
    mqtt_client_id: str = ""
    api_key: str = DEFAULT_API_KEY
    http_port: int = DEFAULT_HTTP_PORT
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        missing = [
            env_key
            for env_key, value in (
                ("MQTT_HOST", self.mqtt_host),
                ("MQTT_TOPIC", self.mqtt_topic),
                ("TASMOTA_MAC", self.device_mac),
            )
            if not (value or "").strip()
        ]
        if missing:
            raise BridgeConfigError(
                f"MQTT configuration is incomplete, missing: {', '.join(missing)}"
            )
        if self.mqtt_protocol not in MQTT_PROTOCOLS:
            raise BridgeConfigError(
                f"MQTT_PROTOCOL must be one of {sorted(MQTT_PROTOCOLS)}, got {self.mqtt_protocol!r}"
            )
        if self.mqtt_reconnect_period <= 0:
            raise BridgeConfigError("MQTT_RECONNECT_PERIOD must be positive")
        if not self.api_key:
            raise BridgeConfigError("API_KEY must be non-empty")

    @property
    def use_tls(self) -> bool:
        return self.mqtt_protocol == "mqtts"

    @property
    def uses_default_api_key(self) -> bool:
        return self.api_key == DEFAULT_API_KEY

    @property
    def discovery_topic(self) -> str:
        return DISCOVERY_TOPIC_TEMPLATE.format(mac=self.device_mac)

    @property
    def subscription_topics(self) -> tuple[str, ...]:
        """Topic filters subscribed on every (re)connect."""
        return (
            f"{STAT_PREFIX}/{self.mqtt_topic}/+",
            f"{TELE_PREFIX}/{self.mqtt_topic}/+",
            self.discovery_topic,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> BridgeConfig:
        """Create configuration from environment variables.

        Reads ``MQTT_HOST``, ``MQTT_TOPIC``, ``TASMOTA_MAC`` and the optional
        ``MQTT_*``, ``API_KEY``, ``PORT`` and ``LOG_LEVEL`` variables.
        Explicit keyword arguments override environment values.

        Raises
        ------
        BridgeConfigError
            When a required variable is missing or a value is malformed.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "MQTT_HOST": "mqtt_host",
            "MQTT_TOPIC": "mqtt_topic",
            "TASMOTA_MAC": "device_mac",
            "MQTT_USERNAME": "mqtt_username",
            "MQTT_PASSWORD": "mqtt_password",
            "MQTT_PROTOCOL": "mqtt_protocol",
            "MQTT_CLIENT_ID": "mqtt_client_id",
            "API_KEY": "api_key",
            "LOG_LEVEL": "log_level",
        }
        config_kwargs: dict[str, Any] = {"mqtt_host": "", "mqtt_topic": "", "device_mac": ""}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None and val != "":
                config_kwargs[field_name] = val

        # numeric settings, handled separately
        for env_key, field_name in (
            ("MQTT_PORT", "mqtt_port"),
            ("MQTT_KEEPALIVE", "mqtt_keepalive"),
            ("PORT", "http_port"),
        ):
            if field_name in overrides:
                continue
            parsed = _env_int(env, env_key)
            if parsed is not None:
                config_kwargs[field_name] = parsed

        if "mqtt_reconnect_period" not in overrides:
            period = _env_float(env, "MQTT_RECONNECT_PERIOD")
            if period is not None:
                config_kwargs["mqtt_reconnect_period"] = period

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
