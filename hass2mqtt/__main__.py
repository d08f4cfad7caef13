"""Allow running the bridge with ``python -m hass2mqtt``."""

from hass2mqtt.bridge import main

main()
