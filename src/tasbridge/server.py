"""aiohttp HTTP control surface.

Routes live under ``/api``. All of them except ``/api/login`` require the
shared key, read from the JSON body (``apiKey`` or ``key``) or from the
query string.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aiohttp import web

from tasbridge._redact import redact_for_log
from tasbridge.exceptions import BridgeAuthenticationError, BridgeValidationError
from tasbridge.gateway import CommandGateway
from tasbridge.models.device import DeviceState

_logger = logging.getLogger(__name__)

API_PREFIX = "/api"
_KEY_FIELDS = ("apiKey", "key")
_PUBLIC_PATHS = frozenset({f"{API_PREFIX}/login"})

GATEWAY_KEY = web.AppKey("gateway", CommandGateway)
_BODY_KEY = "tasbridge_body"

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


async def _read_body(request: web.Request) -> dict[str, Any]:
    """JSON object body, or ``{}`` when absent or unparseable. Cached per request."""
    cached = request.get(_BODY_KEY)
    if cached is not None:
        return cached

    body: Any = {}
    if request.can_read_body:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            _logger.debug("Ignoring unparseable body on %s %s", request.method, request.path)
            body = {}
    if not isinstance(body, dict):
        body = {}
    request[_BODY_KEY] = body
    return body


def _extract_key(request: web.Request, body: dict[str, Any]) -> Any:
    for name in _KEY_FIELDS:
        if body.get(name):
            return body[name]
    for name in _KEY_FIELDS:
        if request.query.get(name):
            return request.query[name]
    return None


def _error(status: int, message: str) -> web.Response:
    return web.json_response({"success": False, "error": message}, status=status)


@web.middleware
async def error_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Map gateway errors to JSON responses."""
    try:
        return await handler(request)
    except BridgeAuthenticationError as exc:
        return _error(401, str(exc))
    except BridgeValidationError as exc:
        return _error(400, str(exc))


@web.middleware
async def auth_middleware(request: web.Request, handler: Handler) -> web.StreamResponse:
    """Require the shared key on every protected API route."""
    if not request.path.startswith(API_PREFIX) or request.path in _PUBLIC_PATHS:
        return await handler(request)

    body = await _read_body(request)
    _logger.debug("%s %s body=%s", request.method, request.path, redact_for_log(body))
    request.app[GATEWAY_KEY].authenticate(_extract_key(request, body), origin=request.remote)
    return await handler(request)


def _state_response(state: DeviceState) -> web.Response:
    return web.json_response(state.to_json_dict())


async def login(request: web.Request) -> web.Response:
    body = await _read_body(request)
    if not request.app[GATEWAY_KEY].login(_extract_key(request, body)):
        raise BridgeAuthenticationError(origin=request.remote)
    return web.json_response({"success": True})


async def status(request: web.Request) -> web.Response:
    return _state_response(request.app[GATEWAY_KEY].status())


async def control_power(request: web.Request) -> web.Response:
    return _state_response(request.app[GATEWAY_KEY].set_power())


async def control_ct(request: web.Request) -> web.Response:
    body = await _read_body(request)
    return _state_response(request.app[GATEWAY_KEY].set_color_temperature(body.get("value")))


async def control_dimmer(request: web.Request) -> web.Response:
    body = await _read_body(request)
    return _state_response(request.app[GATEWAY_KEY].set_dimmer(body.get("value")))


async def control_hsb(request: web.Request) -> web.Response:
    body = await _read_body(request)
    return _state_response(
        request.app[GATEWAY_KEY].set_hsb(body.get("hue"), body.get("saturation"), body.get("dimmer"))
    )


def create_app(gateway: CommandGateway) -> web.Application:
    """Build the aiohttp application around a gateway."""
    app = web.Application(middlewares=[error_middleware, auth_middleware])
    app[GATEWAY_KEY] = gateway
    app.router.add_post(f"{API_PREFIX}/login", login)
    app.router.add_get(f"{API_PREFIX}/status", status)
    app.router.add_post(f"{API_PREFIX}/control/power", control_power)
    app.router.add_post(f"{API_PREFIX}/control/ct", control_ct)
    app.router.add_post(f"{API_PREFIX}/control/dimmer", control_dimmer)
    app.router.add_post(f"{API_PREFIX}/control/hsb", control_hsb)
    return app
