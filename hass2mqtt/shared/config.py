"""Configuration file and environment helpers."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml


def get_config_path(
    config_name: str = "hass2mqtt.yaml",
    config_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """Get path to a configuration file.

    Args:
        config_name: Name of config file (without path).
        config_dir: Directory containing config files. Defaults to the
            'config' directory at the repo root.
    """
    if config_dir is None:
        config_dir = Path(__file__).parent.parent.parent / "config"
    return Path(config_dir) / config_name


def load_yaml_config(config_path: Union[str, Path]) -> dict:
    """Read a YAML mapping from disk.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If config file is invalid YAML.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read an environment variable, treating empty strings as unset."""
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value
