"""Shared utilities for hass2mqtt."""

from .models import EventView
from .config import load_yaml_config, get_config_path
from .mqtt import MQTTConfig, build_topic
from .logging import setup_logging

__all__ = [
    "EventView",
    "load_yaml_config",
    "get_config_path",
    "MQTTConfig",
    "build_topic",
    "setup_logging",
]
