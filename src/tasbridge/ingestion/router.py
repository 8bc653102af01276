"""Topic router.

Translates one inbound ``(topic, payload)`` pair into a :class:`Patch`.
Every merge kind carries an explicit field whitelist, so keys the device
adds to its payloads never reach the device state.

The router holds no state and never raises on bad input: malformed
messages are logged and discarded (``None``).
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any

from tasbridge._constants import ONLINE_MARKER
from tasbridge.exceptions import BridgeMessageParseError
from tasbridge.ingestion.normalize import safe_int, safe_str, to_mapping, to_power
from tasbridge.state.events import MergeKind, Patch, PatchSource

_logger = logging.getLogger(__name__)

Coercer = Callable[[Any], Any]
FieldMap = Mapping[str, tuple[str, Coercer]]

# payload key -> (DeviceState field, coercer)
RESULT_FIELDS: FieldMap = {
    "POWER": ("power", to_power),
    "Dimmer": ("dimmer", safe_int),
    "CT": ("ct", safe_int),
    "HSBColor": ("hsb_color", safe_str),
}

STATE_FIELDS: FieldMap = {
    **RESULT_FIELDS,
    "Color": ("color", safe_str),
    "Wifi": ("wifi", to_mapping),
}

INFO1_FIELDS: FieldMap = {
    "Module": ("module", safe_str),
    "Version": ("version", safe_str),
}

INFO2_FIELDS: FieldMap = {
    "Hostname": ("hostname", safe_str),
    "IPAddress": ("ip", safe_str),
}

INFO3_FIELDS: FieldMap = {
    "RestartReason": ("restart_reason", safe_str),
    "BootCount": ("boot_count", safe_int),
}

# Discovery payloads use compact keys.
DISCOVERY_FIELDS: FieldMap = {
    "ip": ("ip", safe_str),
    "hn": ("hostname", safe_str),
    "md": ("module", safe_str),
    "sw": ("version", safe_str),
}

# STATE keys copied into the network sub-record next to the Wifi block.
_UPTIME_KEYS = ("Uptime", "UptimeSec")

# suffix -> (merge kind, whitelist, wrapper key used by newer firmware)
_SUFFIX_RULES: tuple[tuple[str, MergeKind, FieldMap | None, str | None], ...] = (
    ("LWT", MergeKind.PRESENCE, None, None),
    ("STATE", MergeKind.FULL_REPLACE, STATE_FIELDS, None),
    ("RESULT", MergeKind.PARTIAL_REPLACE, RESULT_FIELDS, None),
    ("INFO1", MergeKind.PARTIAL_REPLACE, INFO1_FIELDS, "Info1"),
    ("INFO2", MergeKind.PARTIAL_REPLACE, INFO2_FIELDS, "Info2"),
    ("INFO3", MergeKind.PARTIAL_REPLACE, INFO3_FIELDS, "Info3"),
)


def parse_payload(topic: str, payload: bytes | str) -> dict[str, Any] | str:
    """Decode a payload: JSON object when it starts with ``{``, text otherwise.

    Raises
    ------
    BridgeMessageParseError
        When a payload that looks structured is not valid JSON.
    """
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    if not text.startswith("{"):
        return text
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BridgeMessageParseError(f"Invalid JSON payload: {exc}", topic=topic) from exc
    if not isinstance(parsed, dict):
        raise BridgeMessageParseError("JSON payload is not an object", topic=topic)
    return parsed


def classify_topic(
    topic: str,
    *,
    discovery_topic: str,
) -> tuple[MergeKind, FieldMap | None, str | None] | None:
    """Return ``(kind, whitelist, wrapper_key)`` for a topic, or ``None``."""
    for suffix, kind, fields, wrapper in _SUFFIX_RULES:
        if topic.endswith(f"/{suffix}"):
            return kind, fields, wrapper
    if topic == discovery_topic:
        return MergeKind.PARTIAL_REPLACE, DISCOVERY_FIELDS, None
    return None


def extract_fields(topic: str, payload: Mapping[str, Any], fields: FieldMap) -> dict[str, Any]:
    """Pick whitelisted keys that are *present* in the payload.

    Presence is the inclusion test, so falsy values such as ``Dimmer: 0``
    are kept. Values that cannot be coerced are dropped individually.
    """
    data: dict[str, Any] = {}
    for key, (field_name, coerce) in fields.items():
        if key not in payload:
            continue
        value = coerce(payload[key])
        if value is None:
            _logger.debug("Dropping unusable %s=%r from %s", key, payload[key], topic)
            continue
        data[field_name] = value
    return data


def _presence_patch(topic: str, payload: dict[str, Any] | str) -> Patch:
    online = payload == ONLINE_MARKER
    if not online:
        _logger.debug("LWT offline marker on %s: %r", topic, payload)
    return Patch(
        kind=MergeKind.PRESENCE,
        source=PatchSource.MQTT,
        topic=topic,
        data={"online": online},
        raw=payload,
    )


def route_message(topic: str, payload: bytes | str, *, discovery_topic: str) -> Patch | None:
    """Classify an inbound message and build its patch.

    Returns ``None`` for messages that should be discarded: unknown topics,
    malformed payloads, and structured kinds that did not receive an object.
    """
    rule = classify_topic(topic, discovery_topic=discovery_topic)
    if rule is None:
        _logger.debug("Ignoring message on unhandled topic %s", topic)
        return None
    kind, fields, wrapper = rule

    try:
        parsed = parse_payload(topic, payload)
        if kind == MergeKind.PRESENCE:
            return _presence_patch(topic, parsed)
        if not isinstance(parsed, dict):
            raise BridgeMessageParseError("Expected a JSON object payload", topic=topic)
    except BridgeMessageParseError as exc:
        _logger.error("Error processing MQTT message from topic %s: %s", topic, exc)
        return None

    body: Mapping[str, Any] = parsed
    if wrapper is not None and isinstance(parsed.get(wrapper), dict):
        body = parsed[wrapper]

    assert fields is not None  # noqa: S101
    data = extract_fields(topic, body, fields)

    if kind == MergeKind.FULL_REPLACE and "wifi" in data:
        for key in _UPTIME_KEYS:
            if key in body:
                data["wifi"][key] = body[key]

    if kind == MergeKind.PARTIAL_REPLACE and not data:
        _logger.debug("No known fields in %s payload", topic)
        return None

    return Patch(kind=kind, source=PatchSource.MQTT, topic=topic, data=data, raw=parsed)
