"""Home Assistant to MQTT Bridge - republishes state change events to MQTT."""

__version__ = "0.1.0"

from .bridge_service import HassMQTTBridge


def main():
    """Entry point for the Home Assistant to MQTT bridge service."""
    from .bridge_service import run_bridge
    run_bridge()


__all__ = ["HassMQTTBridge", "main"]
