"""State/store layer.

This package is the single source of truth for how inbound MQTT telemetry
and optimistic control writes are merged into the one device-state record.
"""
