"""Ingestion layer.

This package turns raw MQTT messages into normalized state patches.
"""

from tasbridge.ingestion.router import classify_topic, parse_payload, route_message

__all__ = ["classify_topic", "parse_payload", "route_message"]
