"""Routes raw Home Assistant event messages to MQTT topics."""

import json
import logging
from typing import Optional

from hass2mqtt.shared.models import EventView
from hass2mqtt.shared.mqtt import build_topic

from .inclusion import Inclusion
from .mqtt_publisher import MQTTPublisher

logger = logging.getLogger(__name__)


def log_inclusions(inclusion: Inclusion, log: Optional[logging.Logger] = None):
    """Log the configured inclusion list."""
    log = log or logger
    if not inclusion.entities:
        log.info("No inclusions.")
        return
    log.info("Inclusions:")
    for entity_id in sorted(inclusion.entities):
        log.info(f"\t{entity_id}")


class EventRouter:
    """Validates event messages and publishes the included ones."""

    def __init__(
        self,
        publisher: MQTTPublisher,
        base_topic: str,
        inclusion: Inclusion,
        log: Optional[logging.Logger] = None,
    ):
        self.publisher = publisher
        self.base_topic = base_topic
        self.inclusion = inclusion
        self.log = log or logger

    async def route(self, raw: bytes) -> Optional[str]:
        """Publish one raw event message if it is valid and included.

        Invalid messages are logged and dropped. The payload is forwarded
        exactly as received.

        Args:
            raw: The message bytes as received from Home Assistant.

        Returns:
            The topic published to, or None if the message was dropped.
        """
        view = self._parse(raw)
        if view is None:
            return None

        if view.event is None:
            self.log.warning(f"No event property: {_preview(raw)}")
            return None
        if view.data is None:
            self.log.warning(f"No data property: {_preview(raw)}")
            return None

        entity_id = view.entity_id
        if entity_id is None:
            self.log.warning(f"No entity_id property: {_preview(raw)}")
            return None
        if not entity_id:
            self.log.warning(f"Empty entity_id: {_preview(raw)}")
            return None

        event_type = view.event_type
        if event_type is None:
            self.log.warning(f"No event_type property: {_preview(raw)}")
            return None
        if not event_type:
            self.log.warning(f"Empty event_type: {_preview(raw)}")
            return None

        # Check for inclusions if any, and skip if implicitly excluded.
        if not self.inclusion.included(entity_id):
            self.log.debug(f"Skipping {entity_id}")
            return None

        topic = build_topic(self.base_topic, event_type, entity_id)
        await self.publisher.publish(topic, raw)
        return topic

    def _parse(self, raw: bytes) -> Optional[EventView]:
        if not raw or not raw.strip():
            self.log.info("Empty message")
            return None
        try:
            return EventView(json.loads(raw))
        # ValueError covers JSONDecodeError, UnicodeDecodeError and the
        # integer digit limit; RecursionError is raised for deep nesting.
        except (ValueError, RecursionError) as e:
            self.log.warning(f"Malformed JSON ({e}): {_preview(raw)}")
            return None


def _preview(raw: bytes, limit: int = 512) -> str:
    text = raw.decode("utf-8", errors="replace")
    if len(text) > limit:
        return text[:limit] + "..."
    return text
