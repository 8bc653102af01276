"""Run the bridge: ``python -m tasbridge`` or the ``tasbridge`` console script."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from collections.abc import Sequence
from typing import Any

from aiohttp import web

from tasbridge._redact import redact_config
from tasbridge.bridge import TasmotaBridge
from tasbridge.config import BridgeConfig
from tasbridge.exceptions import BridgeConfigError, BridgeConnectionError
from tasbridge.server import create_app

_logger = logging.getLogger("tasbridge")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tasbridge",
        description="Bridge a Tasmota light between MQTT telemetry and an HTTP control API.",
    )
    parser.add_argument("--port", type=int, default=None, help="HTTP listen port (overrides PORT)")
    parser.add_argument("--log-level", default=None, help="Logging level (overrides LOG_LEVEL)")
    return parser.parse_args(argv)


async def serve(config: BridgeConfig) -> None:
    """Run bridge and HTTP server until SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    async with TasmotaBridge(config) as bridge:
        runner = web.AppRunner(create_app(bridge.gateway))
        await runner.setup()
        try:
            site = web.TCPSite(runner, port=config.http_port)
            await site.start()
            _logger.info("Server listening on port %s", config.http_port)
            await stop.wait()
            _logger.info("Shutting down")
        finally:
            await runner.cleanup()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, format=_LOG_FORMAT)

    overrides: dict[str, Any] = {}
    if args.port is not None:
        overrides["http_port"] = args.port
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()

    try:
        config = BridgeConfig.from_env(**overrides)
    except BridgeConfigError as exc:
        _logger.error("FATAL: %s. Check MQTT_HOST, MQTT_TOPIC and TASMOTA_MAC.", exc)
        return 1

    try:
        logging.getLogger().setLevel(config.log_level.upper())
    except ValueError:
        _logger.warning("Unknown LOG_LEVEL %r, keeping INFO", config.log_level)
    _logger.debug("Configuration: %s", redact_config(config))
    if config.uses_default_api_key:
        _logger.warning("API_KEY is not set; using the built-in default key. Change it before exposing the API.")

    try:
        asyncio.run(serve(config))
    except BridgeConnectionError as exc:
        _logger.error("FATAL: %s", exc)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
