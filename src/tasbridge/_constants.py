"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Broker topics
# ------------------------------------------------------------------

STAT_PREFIX = "stat"
TELE_PREFIX = "tele"
CMND_PREFIX = "cmnd"
DISCOVERY_TOPIC_TEMPLATE = "tasmota/discovery/{mac}/config"

#: LWT body published by the device while it is reachable.
ONLINE_MARKER = "Online"

SUBSCRIBE_QOS = 1
PUBLISH_QOS = 1

# ------------------------------------------------------------------
# Session defaults
# ------------------------------------------------------------------

DEFAULT_MQTT_PORT = 8883
DEFAULT_MQTT_PROTOCOL = "mqtts"
MQTT_PROTOCOLS: frozenset[str] = frozenset({"mqtt", "mqtts"})
DEFAULT_KEEPALIVE = 60
#: Fixed reconnect period in seconds; there is no backoff and no retry cap.
DEFAULT_RECONNECT_PERIOD = 5.0

DEFAULT_HTTP_PORT = 3000
DEFAULT_API_KEY = "default-secret-key-please-change"

# ------------------------------------------------------------------
# Control ranges
# ------------------------------------------------------------------

CT_MIN = 153
CT_MAX = 500
DIMMER_MIN = 0
DIMMER_MAX = 100
HUE_MIN = 0
HUE_MAX = 360
SATURATION_MIN = 0
SATURATION_MAX = 100
