"""
Studio Resolver -- Fallback Tests

Covers:
  - responsive fallback: requested -> smaller -> base -> larger -> default
  - state overrides layer over the resolved default state
  - invalid breakpoint / state rejected
  - resolution is deterministic and does not touch the component
"""

import copy

import pytest

from studio.kernel.errors import InvalidBreakpointError, InvalidStateError
from studio.kernel.resolver import resolve, resolve_value


def component(type="Button", properties=None, state_overrides=None):
    record = {"id": "b1", "type": type, "properties": properties or {}, "parent_id": "root", "zone_id": None}
    if state_overrides:
        record["state_overrides"] = state_overrides
    return record


class TestResolveValue:
    def test_tablet_falls_back_to_mobile(self):
        assert resolve_value({"mobile": "100%", "desktop": "50%"}, "tablet") == "100%"

    def test_exact_breakpoint(self):
        assert resolve_value({"mobile": "100%", "desktop": "50%"}, "desktop") == "50%"

    def test_base_before_larger(self):
        assert resolve_value({"base": 12, "desktop": 20}, "mobile") == 12

    def test_smallest_larger_when_nothing_smaller(self):
        assert resolve_value({"tablet": 14, "desktop": 20}, "mobile") == 14

    def test_plain_value_passes_through(self):
        assert resolve_value("red", "mobile") == "red"
        assert resolve_value(0, "desktop") == 0

    def test_non_breakpoint_dict_is_a_plain_value(self):
        value = {"top": 8, "bottom": 8}
        assert resolve_value(value, "mobile") == value


class TestResolve:
    def test_scenario_width_at_tablet(self, registry):
        comp = component(properties={"width": {"mobile": "100%", "desktop": "50%"}})
        assert resolve(comp, registry, "tablet")["width"] == "100%"

    def test_registry_defaults_fill_in(self, registry):
        props = resolve(component(properties={"text": "Go"}), registry)
        assert props["text"] == "Go"
        assert props["backgroundColor"] == "#3b82f6"
        assert props["color"] == "#ffffff"

    def test_responsive_default(self, registry):
        props = resolve(component(type="Section"), registry, "mobile")
        assert props["padding"] == 48

    def test_hover_overlays_default(self, registry):
        comp = component(state_overrides={"hover": {"backgroundColor": "#111"}})
        assert resolve(comp, registry, "desktop", "hover")["backgroundColor"] == "#111"
        assert resolve(comp, registry, "desktop", "default")["backgroundColor"] == "#3b82f6"
        assert resolve(comp, registry, "desktop", "focus")["backgroundColor"] == "#3b82f6"

    def test_unknown_type_resolves_own_properties(self, registry):
        props = resolve(component(type="Carousel", properties={"slides": {"base": 3}}), registry, "tablet")
        assert props == {"slides": 3}

    def test_desktop_only_value_applies_at_mobile(self, registry):
        comp = component(type="Heading", properties={"fontSize": {"desktop": 40}})
        assert resolve(comp, registry, "mobile")["fontSize"] == 40

    def test_invalid_breakpoint(self, registry):
        with pytest.raises(InvalidBreakpointError):
            resolve(component(), registry, "watch")

    def test_invalid_state(self, registry):
        with pytest.raises(InvalidStateError):
            resolve(component(), registry, "desktop", "visited")

    def test_deterministic_and_pure(self, registry):
        comp = component(
            properties={"width": {"mobile": "100%"}, "text": "Go"},
            state_overrides={"active": {"scale": 0.98}},
        )
        original = copy.deepcopy(comp)
        first = resolve(comp, registry, "tablet", "active")
        assert resolve(comp, registry, "tablet", "active") == first
        assert comp == original
        assert first["scale"] == 0.98
