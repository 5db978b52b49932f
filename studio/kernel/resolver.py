"""
Studio Kernel — Property Resolver

Effective properties for one component at one breakpoint and one
interaction state:

  registry defaults  <  component properties  <  state_overrides[state]

Responsive values are dicts keyed by breakpoint (plus "base"). Lookup order
for a requested breakpoint:

  1. the breakpoint itself
  2. the next smaller defined breakpoint (desktop → tablet → mobile)
  3. the bare "base" value
  4. the smallest defined larger breakpoint
  5. the registry default

State overrides are plain values; they are never responsive-aware.
"""

from __future__ import annotations

from typing import Any

from studio.kernel.errors import InvalidBreakpointError, InvalidStateError
from studio.kernel.registry import ComponentRegistry
from studio.kernel.types import BREAKPOINTS, STATES, is_responsive_value

_MISSING = object()


def resolve_value(value: Any, breakpoint: str, default: Any = None) -> Any:
    """Pick one concrete value out of a possibly-responsive value."""
    if not is_responsive_value(value):
        return value

    position = BREAKPOINTS.index(breakpoint)
    for name in reversed(BREAKPOINTS[: position + 1]):
        if name in value:
            return value[name]
    if "base" in value:
        return value["base"]
    for name in BREAKPOINTS[position + 1 :]:
        if name in value:
            return value[name]
    return default


def resolve(
    component: dict[str, Any],
    registry: ComponentRegistry,
    breakpoint: str = "desktop",
    state: str = "default",
) -> dict[str, Any]:
    if breakpoint not in BREAKPOINTS:
        raise InvalidBreakpointError(f"'{breakpoint}' is not one of {list(BREAKPOINTS)}")
    if state not in STATES:
        raise InvalidStateError(f"'{state}' is not one of {list(STATES)}")

    defaults = registry.defaults(component["type"])
    resolved: dict[str, Any] = {}

    for name, default in defaults.items():
        resolved[name] = resolve_value(default, breakpoint)

    for name, value in component.get("properties", {}).items():
        fallback = resolved.get(name, _MISSING)
        picked = resolve_value(value, breakpoint, fallback)
        if picked is _MISSING:
            resolved.pop(name, None)
        else:
            resolved[name] = picked

    if state != "default":
        overrides = (component.get("state_overrides") or {}).get(state) or {}
        resolved.update(overrides)

    return resolved
