"""Bridge composition root.

Owns:
- the single device-state store
- the MQTT runtime and the inbound message queue it feeds
- the command gateway used by the HTTP surface
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from tasbridge._mqtt import MqttMessage, MqttRuntime
from tasbridge.config import BridgeConfig
from tasbridge.exceptions import BridgeError
from tasbridge.gateway import CommandGateway
from tasbridge.ingestion.router import route_message
from tasbridge.state.store import StateStore

_logger = logging.getLogger(__name__)

RuntimeFactory = Callable[..., MqttRuntime]


class TasmotaBridge:
    """Keeps one Tasmota light in sync between MQTT and the control API.

    Usage::

        async with TasmotaBridge(config) as bridge:
            app = create_app(bridge.gateway)
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        store: StateStore | None = None,
        runtime_factory: RuntimeFactory = MqttRuntime,
    ) -> None:
        self._config = config
        self._store = store if store is not None else StateStore()
        self._runtime_factory = runtime_factory
        self._runtime: MqttRuntime | None = None
        self._gateway: CommandGateway | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._inbox: asyncio.Queue[MqttMessage] | None = None
        self._consumer: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TasmotaBridge:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start the inbound consumer and the MQTT runtime."""
        if self._consumer is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume(), name="tasbridge-inbound")

        runtime = self._runtime_factory(
            config=self._config,
            loop=self._loop,
            on_message=self.submit,
        )
        self._gateway = CommandGateway(api_key=self._config.api_key, store=self._store, publisher=runtime)
        try:
            await self._loop.run_in_executor(None, runtime.start)
        except BaseException:
            self._gateway = None
            await self._stop_consumer()
            raise
        self._runtime = runtime

    async def stop(self) -> None:
        runtime = self._runtime
        self._runtime = None
        if runtime is not None and self._loop is not None:
            try:
                await self._loop.run_in_executor(None, runtime.stop)
            except Exception:
                _logger.error("MQTT runtime stop failed", exc_info=True)
        await self._stop_consumer()
        self._loop = None

    async def _stop_consumer(self) -> None:
        consumer = self._consumer
        self._consumer = None
        if consumer is None:
            return
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def config(self) -> BridgeConfig:
        return self._config

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def runtime(self) -> MqttRuntime | None:
        return self._runtime

    @property
    def gateway(self) -> CommandGateway:
        if self._gateway is None:
            raise BridgeError("Bridge not started. Use 'async with TasmotaBridge(...) as bridge:'")
        return self._gateway

    # ------------------------------------------------------------------
    # Inbound channel
    # ------------------------------------------------------------------

    def submit(self, message: MqttMessage) -> None:
        """Enqueue an inbound message. Must be called on the bridge's loop."""
        if self._inbox is None:
            _logger.debug("Dropping MQTT message on %s: bridge not started", message.topic)
            return
        self._inbox.put_nowait(message)

    async def drain(self) -> None:
        """Wait until every queued message has been applied."""
        if self._inbox is not None:
            await self._inbox.join()

    async def _consume(self) -> None:
        assert self._inbox is not None  # noqa: S101
        inbox = self._inbox
        while True:
            message = await inbox.get()
            try:
                self.handle_message(message)
            except Exception:
                _logger.error("Failed to apply MQTT message from %s", message.topic, exc_info=True)
            finally:
                inbox.task_done()

    def handle_message(self, message: MqttMessage) -> None:
        """Route one message and merge its patch into the store."""
        _logger.debug("MQTT Rx: %s -> %r", message.topic, message.payload)
        patch = route_message(
            message.topic,
            message.payload,
            discovery_topic=self._config.discovery_topic,
        )
        if patch is not None:
            self._store.apply_patch(patch)
