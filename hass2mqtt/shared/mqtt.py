"""MQTT configuration and utilities."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class MQTTConfig:
    """MQTT broker configuration."""
    broker: str = "localhost"
    port: int = 1883
    client_id: str = "hass2mqtt"
    use_tls: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    base_topic: str = ""
    keepalive: int = 5
    publish_timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: dict) -> "MQTTConfig":
        """Create config from dictionary."""
        return cls(
            broker=data.get("broker", "localhost"),
            port=int(data.get("port", 1883)),
            client_id=data.get("client_id", "hass2mqtt"),
            use_tls=parse_bool(data.get("use_tls", False)),
            username=data.get("username") or None,
            password=data.get("password") or None,
            base_topic=data.get("base_topic", ""),
            keepalive=int(data.get("keepalive", 5)),
            publish_timeout=float(data.get("publish_timeout", 10.0)),
        )


def parse_bool(value) -> bool:
    """Interpret a config value as a boolean.

    Strings like "true", "1", "yes" and "on" (any case) are true.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def build_topic(base_topic: str, event_type: str, entity_id: str) -> str:
    """Build the MQTT topic for a Home Assistant event.

    Components are used verbatim, e.g. ``HA/event/state_changed/light.kitchen``.
    """
    return f"{base_topic}/event/{event_type}/{entity_id}"
