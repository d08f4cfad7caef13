"""Tests for the entity inclusion filter."""

from hass2mqtt.bridge.inclusion import Inclusion


class TestInclusion:
    """Inclusion.included behaviour."""

    def test_empty_set_includes_everything(self):
        inclusion = Inclusion()
        assert inclusion.included("light.kitchen")
        assert inclusion.included("sensor.anything")

    def test_none_list_includes_everything(self):
        assert Inclusion.from_list(None).included("switch.fan")

    def test_only_listed_entities_included(self):
        inclusion = Inclusion.from_list(["light.bedroom", "switch.fan"])
        assert inclusion.included("light.bedroom")
        assert inclusion.included("switch.fan")
        assert not inclusion.included("light.kitchen")

    def test_match_is_exact(self):
        inclusion = Inclusion.from_list(["light.bedroom"])
        assert not inclusion.included("light.bedroom_2")
        assert not inclusion.included("Light.Bedroom")

    def test_blank_entries_ignored(self):
        inclusion = Inclusion.from_list(["", "  ", " light.bedroom "])
        assert inclusion.entities == frozenset({"light.bedroom"})
