"""hass2mqtt - Home Assistant event to MQTT bridge."""

__version__ = "0.1.0"
