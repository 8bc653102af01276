"""Internal MQTT session runtime."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, cast

import paho.mqtt.client as mqtt

from tasbridge._constants import PUBLISH_QOS, SUBSCRIBE_QOS
from tasbridge.config import BridgeConfig
from tasbridge.exceptions import BridgeConnectionError, BridgePublishError
from tasbridge.models.command import Command


@dataclass(frozen=True)
class MqttMessage:
    """Raw inbound PUBLISH as handed to the event loop."""

    topic: str
    payload: bytes
    received_at: float = field(default_factory=time.monotonic)


class MqttRuntime:
    """Threaded paho-mqtt runtime that forwards messages onto an asyncio loop.

    paho's network thread owns the socket and the reconnect timer. The
    runtime never interprets payloads; every message is passed to
    ``on_message`` on ``loop`` in arrival order.
    """

    def __init__(
        self,
        *,
        config: BridgeConfig,
        loop: asyncio.AbstractEventLoop,
        on_message: Callable[[MqttMessage], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._loop = loop
        self._on_message = on_message
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = False
        self._pending_subscribe: dict[int, tuple[str, ...]] = {}
        self._pending_publish: dict[int, tuple[str, str]] = {}
        self._acked_early: dict[int, Any] = {}
        self._publish_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """Whether the network loop has been started."""
        return self._running

    @property
    def is_connected(self) -> bool:
        """Whether a broker session is currently established."""
        return self._connected

    def start(self) -> None:
        """Open the session and keep it alive until :meth:`stop`.

        The first connection attempt happens in the network thread, so an
        unreachable broker is retried on the fixed reconnect period like
        any later disconnect.

        Raises
        ------
        BridgeConnectionError
            When the client cannot be configured (invalid host, port, TLS).
        """
        self.stop()
        config = self._config
        period = config.mqtt_reconnect_period
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s protocol=%s topic=%s",
            config.mqtt_host,
            config.mqtt_port,
            config.mqtt_protocol,
            config.mqtt_topic,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=config.mqtt_client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if config.mqtt_username:
            client.username_pw_set(config.mqtt_username, config.mqtt_password)
        client.reconnect_delay_set(min_delay=period, max_delay=period)

        client.on_connect = self._handle_connect
        client.on_connect_fail = self._handle_connect_fail
        client.on_disconnect = self._handle_disconnect
        client.on_subscribe = self._handle_subscribe
        client.on_publish = self._handle_publish
        client.on_message = self._handle_message

        try:
            if config.use_tls:
                client.tls_set()
            client.connect_async(config.mqtt_host, config.mqtt_port, keepalive=config.mqtt_keepalive)
        except (ValueError, OSError) as exc:
            raise BridgeConnectionError(
                f"Cannot configure MQTT client for {config.mqtt_host}:{config.mqtt_port}: {exc}"
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.info(
            "MQTT network loop started for %s:%s (reconnect every %ss)",
            config.mqtt_host,
            config.mqtt_port,
            period,
        )

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False
        self._pending_subscribe.clear()
        with self._publish_lock:
            self._pending_publish.clear()
            self._acked_early.clear()

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.info("MQTT network loop stopped")

    def publish(self, command: Command) -> bool:
        """Publish a command without waiting for the broker.

        Returns whether the message was handed to the client. While the
        broker is unreachable paho keeps QoS 1 messages and sends them after
        reconnecting, so that case counts as handed over. Failures are
        logged here and never raised; acknowledgements are logged from the
        publish callback.
        """
        topic = command.topic_for(self._config.mqtt_topic)
        client = self._client
        try:
            if client is None:
                raise BridgePublishError("MQTT runtime is not running", topic=topic)
            try:
                info = client.publish(topic, command.value, qos=PUBLISH_QOS)
            except (ValueError, OSError) as exc:
                raise BridgePublishError(str(exc), topic=topic) from exc
            if info.rc not in (mqtt.MQTT_ERR_SUCCESS, mqtt.MQTT_ERR_NO_CONN):
                raise BridgePublishError(mqtt.error_string(info.rc), topic=topic, code=info.rc)
        except BridgePublishError as exc:
            self._logger.error("Failed to publish to %s: %s", exc.topic, exc)
            return False

        with self._publish_lock:
            early_ack = self._acked_early.pop(info.mid, None)
            if early_ack is None:
                self._pending_publish[info.mid] = (topic, command.value)

        if early_ack is not None:
            self._log_publish_result(topic, command.value, early_ack)
        elif info.rc == mqtt.MQTT_ERR_NO_CONN:
            self._logger.warning("MQTT broker not connected; %s -> %s queued until reconnect", topic, command.value)
        else:
            self._logger.debug("MQTT publish queued mid=%s %s -> %s", info.mid, topic, command.value)
        return True

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _handle_connect(
        self,
        client: mqtt.Client,
        _userdata: Any,
        _flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        if reason_code.is_failure:
            self._connected = False
            self._logger.warning("MQTT connect failed: %s", reason_code)
            return
        self._connected = True
        self._logger.info("Connected to MQTT broker %s:%s", self._config.mqtt_host, self._config.mqtt_port)
        self._subscribe(client)

    def _subscribe(self, client: mqtt.Client) -> None:
        topics = self._config.subscription_topics
        try:
            result, mid = client.subscribe([(topic, SUBSCRIBE_QOS) for topic in topics])
        except ValueError:
            self._logger.error("Subscription error for topics %s", ", ".join(topics), exc_info=True)
            return
        if result != mqtt.MQTT_ERR_SUCCESS:
            self._logger.error("Subscription error for topics %s: %s", ", ".join(topics), mqtt.error_string(result))
            return
        if mid is not None:
            self._pending_subscribe[mid] = topics

    def _handle_subscribe(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        mid: int,
        reason_code_list: list[Any],
        _properties: Any,
    ) -> None:
        topics = self._pending_subscribe.pop(mid, ())
        failed = [
            (topic, code) for topic, code in zip(topics, reason_code_list, strict=False) if code.is_failure
        ]
        if failed:
            for topic, code in failed:
                self._logger.error("Subscription error for %s: %s", topic, code)
            return
        self._logger.info("Subscribed to topics: %s", ", ".join(topics))

    def _handle_connect_fail(self, _client: mqtt.Client, _userdata: Any) -> None:
        self._connected = False
        self._logger.error(
            "MQTT connection to %s:%s failed; retrying in %ss",
            self._config.mqtt_host,
            self._config.mqtt_port,
            self._config.mqtt_reconnect_period,
        )

    def _handle_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: Any,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        self._connected = False
        if self._running:
            self._logger.warning(
                "MQTT connection closed (%s); reconnecting every %ss",
                reason_code,
                self._config.mqtt_reconnect_period,
            )

    def _handle_publish(
        self,
        _client: mqtt.Client,
        _userdata: Any,
        mid: int,
        reason_code: Any,
        _properties: Any,
    ) -> None:
        with self._publish_lock:
            pending = self._pending_publish.pop(mid, None)
            if pending is None:
                # PUBACK beat publish() to the bookkeeping; publish() logs it.
                self._acked_early[mid] = reason_code
                return
        self._log_publish_result(*pending, reason_code)

    def _log_publish_result(self, topic: str, value: str, reason_code: Any) -> None:
        if reason_code.is_failure:
            self._logger.error("Failed to publish to %s: %s", topic, reason_code)
            return
        self._logger.info("MQTT Tx: %s -> %s", topic, value)

    def _handle_message(self, _client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        message = MqttMessage(topic=msg.topic, payload=bytes(msg.payload))
        try:
            self._loop.call_soon_threadsafe(self._on_message, message)
        except RuntimeError:
            # Loop already closed during shutdown.
            self._logger.debug("Dropping MQTT message on %s: event loop closed", msg.topic, exc_info=True)
