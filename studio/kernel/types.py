"""
Studio Kernel — Shared Types

Constants and data classes used across the registry, mutation engine,
resolver, renderer, stylesheet generator, and assembly.
These are the contracts that bind the kernel together.

Documents themselves stay plain dicts (JSON-shaped) so that snapshots can be
deep-copied, compared, and serialized without conversion.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

# ---------------------------------------------------------------------------
# Document constants
# ---------------------------------------------------------------------------

FORMAT_VERSION = 2
ROOT_ID = "root"
ROOT_TYPE = "Root"

ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")

# Breakpoints, narrowest first. Order matters for responsive fallback.
BREAKPOINTS: tuple[str, ...] = ("mobile", "tablet", "desktop")
RESPONSIVE_KEYS: frozenset[str] = frozenset(BREAKPOINTS) | {"base"}

BREAKPOINT_WIDTHS: dict[str, int] = {
    "mobile": 375,
    "tablet": 768,
    "desktop": 1280,
}

# Interaction states in stylesheet order.
STATES: tuple[str, ...] = ("default", "hover", "active", "focus")
OVERRIDE_STATES: tuple[str, ...] = ("hover", "active", "focus")

# Visual-only properties that may ever carry state overrides.
# Structural and text properties never qualify.
STATE_EDITABLE_PROPERTIES: frozenset[str] = frozenset(
    {
        # Colors
        "backgroundColor",
        "color",
        "borderColor",
        "outlineColor",
        # Transform
        "scale",
        "scaleX",
        "scaleY",
        "rotate",
        "translateX",
        "translateY",
        "skewX",
        "skewY",
        # Opacity
        "opacity",
        # Shadows
        "boxShadow",
        "textShadow",
        # Borders
        "borderWidth",
        "borderStyle",
        # Outline (for focus)
        "outlineWidth",
        "outlineStyle",
        "outlineOffset",
    }
)

TRANSITION_PROPERTIES: tuple[str, ...] = ("all", "transform", "opacity", "colors", "shadow", "none")
EASINGS: tuple[str, ...] = ("ease", "ease-in", "ease-out", "ease-in-out", "linear")

# Container modes
CONTAINER_NONE = "none"
CONTAINER_FREE = "free"
CONTAINER_ZONES = "zones"
CONTAINER_MODES: tuple[str, ...] = (CONTAINER_NONE, CONTAINER_FREE, CONTAINER_ZONES)

HISTORY_LIMIT = 50


# ---------------------------------------------------------------------------
# Registry data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PropertyDef:
    """One declared property of a component type."""

    name: str
    kind: str = "text"  # text, number, color, select, toggle, image, link, spacing
    default: Any = None
    responsive: bool = False


@dataclass(frozen=True)
class ZoneRule:
    """Optional constraints on what a named zone accepts."""

    allowed_types: tuple[str, ...] | None = None
    max_children: int | None = None
    label: str = ""

    def accepts(self, component_type: str) -> bool:
        if self.allowed_types is None:
            return True
        return component_type in self.allowed_types


# draw(component_id, props, attrs, slots) -> markup
DrawFn = Callable[[str, dict[str, Any], str, dict[str, str]], str]


@dataclass(frozen=True)
class ComponentSchema:
    """
    A tagged component variant: declared properties, defaults, container
    capabilities, the state-editable subset, and how to draw it.
    """

    type: str
    properties: tuple[PropertyDef, ...] = ()
    state_editable: frozenset[str] = frozenset()
    container: str = CONTAINER_NONE
    zones: tuple[str, ...] = ()
    zone_rules: dict[str, ZoneRule] = field(default_factory=dict)
    layout: str = "vertical"  # axis used for drop index computation
    draw: DrawFn | None = None
    label: str = ""
    category: str = "basic"
    known: bool = True

    def defaults(self) -> dict[str, Any]:
        return {p.name: p.default for p in self.properties if p.default is not None}

    def property_names(self) -> set[str]:
        return {p.name for p in self.properties}

    def zone_rule(self, zone_name: str) -> ZoneRule:
        return self.zone_rules.get(zone_name, _OPEN_ZONE)

    @property
    def is_container(self) -> bool:
        return self.container != CONTAINER_NONE


_OPEN_ZONE = ZoneRule()

# Returned by registry lookups for types the block library does not provide.
UNKNOWN_SCHEMA = ComponentSchema(type="<unknown>", known=False)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TransitionSpec:
    properties: str = "all"
    duration_ms: int = 200
    easing: str = "ease-out"
    delay_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "properties": self.properties,
            "duration_ms": self.duration_ms,
            "easing": self.easing,
            "delay_ms": self.delay_ms,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TransitionSpec:
        return cls(
            properties=d.get("properties", "all"),
            duration_ms=d.get("duration_ms", 200),
            easing=d.get("easing", "ease-out"),
            delay_ms=d.get("delay_ms", 0),
        )


DEFAULT_TRANSITION = TransitionSpec()


# ---------------------------------------------------------------------------
# Drag & drop
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px <= self.x + self.width and self.y <= py <= self.y + self.height

    def midpoint(self, axis: str) -> float:
        if axis == "horizontal":
            return self.x + self.width / 2
        return self.y + self.height / 2


@dataclass(frozen=True)
class Pointer:
    """One drag sample: the node under the pointer, and where the pointer is."""

    candidate_id: str
    x: float
    y: float
    zone: str | None = None  # zone name, when the host knows which slot is hovered


@dataclass(frozen=True)
class DropTarget:
    parent_id: str
    zone: str | None
    index: int


@dataclass(frozen=True)
class PaletteSource:
    """A new component dragged in from the block library."""

    type: str
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CanvasSource:
    """An existing component dragged within the canvas."""

    component_id: str


# ---------------------------------------------------------------------------
# Stylesheet & history
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StyleRule:
    selector: str
    declarations: tuple[tuple[str, str], ...]
    component_id: str
    state: str
    media: str | None = None  # media query for breakpoint-specific base values

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "declarations": [list(d) for d in self.declarations],
            "component_id": self.component_id,
            "state": self.state,
            "media": self.media,
        }


@dataclass(frozen=True)
class HistoryEntry:
    """Snapshot pair for exactly one committed mutation."""

    label: str
    before: dict[str, Any]
    after: dict[str, Any]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and bool(ID_PATTERN.match(value))


def generate_component_id() -> str:
    return f"comp_{uuid.uuid4().hex[:12]}"


def zone_key(parent_id: str, zone_name: str) -> str:
    return f"{parent_id}:{zone_name}"


def parse_zone_key(key: str) -> tuple[str, str] | None:
    """Split "parent:zone" on the first colon. None if malformed."""
    parent_id, sep, zone_name = key.partition(":")
    if not sep or not parent_id or not zone_name:
        return None
    return parent_id, zone_name


def is_responsive_value(value: Any) -> bool:
    """A dict keyed only by breakpoint names (plus optional "base")."""
    return isinstance(value, dict) and bool(value) and set(value) <= RESPONSIVE_KEYS
