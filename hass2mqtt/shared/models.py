"""Core data models for Home Assistant events."""

from typing import Any, Optional


class EventView:
    """Read-only view over a decoded Home Assistant event message.

    Only the fields needed for routing are exposed. Each accessor returns
    None when the field is missing or has the wrong shape.
    """

    def __init__(self, document: Any):
        self._document = document

    @property
    def event(self) -> Optional[dict]:
        """The top-level ``event`` object."""
        if not isinstance(self._document, dict):
            return None
        event = self._document.get("event")
        return event if isinstance(event, dict) else None

    @property
    def data(self) -> Optional[dict]:
        """The ``event.data`` object."""
        event = self.event
        if event is None:
            return None
        data = event.get("data")
        return data if isinstance(data, dict) else None

    @property
    def entity_id(self) -> Optional[str]:
        data = self.data
        if data is None:
            return None
        return _string_or_none(data.get("entity_id"))

    @property
    def event_type(self) -> Optional[str]:
        event = self.event
        if event is None:
            return None
        return _string_or_none(event.get("event_type"))

    def __repr__(self) -> str:
        return f"EventView({self._document!r})"


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None
