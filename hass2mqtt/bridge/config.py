"""Configuration loading for the Home Assistant to MQTT bridge."""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from hass2mqtt.shared.config import get_config_path, get_env, load_yaml_config
from hass2mqtt.shared.mqtt import MQTTConfig, parse_bool

from .inclusion import Inclusion

logger = logging.getLogger(__name__)


@dataclass
class HassConfig:
    """Home Assistant websocket API configuration."""
    server_uri: str = ""
    admin_token: str = ""
    cancel_after: int = 0  # handshake deadline, milliseconds; 0 disables it
    max_msg_size: int = 0  # 0 means unlimited

    @property
    def handshake_timeout(self) -> Optional[float]:
        """Handshake deadline in seconds, or None for no deadline."""
        if self.cancel_after and self.cancel_after > 0:
            return self.cancel_after / 1000.0
        return None

    @classmethod
    def from_dict(cls, data: dict) -> "HassConfig":
        """Create config from dictionary."""
        return cls(
            server_uri=data.get("server_uri", ""),
            admin_token=data.get("admin_token", ""),
            cancel_after=int(data.get("cancel_after", 0)),
            max_msg_size=int(data.get("max_msg_size", 0)),
        )


@dataclass
class Config:
    """Main configuration container."""
    mqtt: MQTTConfig
    hass: HassConfig
    inclusion: Inclusion = field(default_factory=Inclusion)
    websocket_error_sleep: float = 5.0
    log_level: str = "INFO"


def _split_entities(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _apply_env_overrides(config: Config) -> None:
    """Override file settings with environment variables."""
    mqtt_config = config.mqtt
    hass_config = config.hass

    if server := get_env("MQTT_SERVER"):
        mqtt_config.broker = server
    if port := get_env("MQTT_PORT"):
        mqtt_config.port = int(port)
    if client_id := get_env("MQTT_CLIENT_ID"):
        mqtt_config.client_id = client_id
    if use_tls := get_env("MQTT_USE_TLS"):
        mqtt_config.use_tls = parse_bool(use_tls)
    if username := get_env("MQTT_USERNAME"):
        mqtt_config.username = username
    if password := get_env("MQTT_PASSWORD"):
        mqtt_config.password = password
    if base_topic := get_env("MQTT_BASE_TOPIC"):
        mqtt_config.base_topic = base_topic

    if server_uri := get_env("HASS_SERVER_URI"):
        hass_config.server_uri = server_uri
    if token := get_env("HASS_ADMIN_TOKEN"):
        hass_config.admin_token = token
    if cancel_after := get_env("CANCEL_AFTER"):
        hass_config.cancel_after = int(cancel_after)

    if entities := get_env("INCLUSION_ENTITIES"):
        config.inclusion = Inclusion.from_list(_split_entities(entities))
    if log_level := get_env("LOG_LEVEL"):
        config.log_level = log_level


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from YAML file and environment variables.

    Args:
        config_path: Path to a YAML config file. If not provided, uses
                    HASS2MQTT_CONFIG, then config/hass2mqtt.yaml at the repo
                    root. A missing default file is not an error.

    Returns:
        Config object with all settings loaded.

    Raises:
        FileNotFoundError: If an explicitly requested config file is missing.
        ValueError: If MQTT_BASE_TOPIC or HASS_SERVER_URI is not set.
    """
    load_dotenv()

    if config_path is None:
        config_path = os.environ.get("HASS2MQTT_CONFIG")

    data: dict = {}
    if config_path is not None:
        logger.debug(f"Loading config from {config_path}")
        data = load_yaml_config(config_path)
    else:
        default_path = get_config_path()
        if default_path.exists():
            logger.debug(f"Loading config from {default_path}")
            data = load_yaml_config(default_path)
        else:
            logger.debug("No config file, using environment only")

    inclusion_data = data.get("inclusion") or {}
    config = Config(
        mqtt=MQTTConfig.from_dict(data.get("mqtt") or {}),
        hass=HassConfig.from_dict(data.get("hass") or {}),
        inclusion=Inclusion.from_list(inclusion_data.get("entities")),
        websocket_error_sleep=float(data.get("websocket_error_sleep", 5.0)),
        log_level=data.get("log_level", "INFO"),
    )

    _apply_env_overrides(config)

    if not config.mqtt.base_topic:
        raise ValueError("MQTT_BASE_TOPIC is required")
    if not config.hass.server_uri:
        raise ValueError("HASS_SERVER_URI is required")

    return config
