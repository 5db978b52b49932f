"""
Studio Kernel — Stylesheet Generator

Compiles interaction-state overrides into ordered CSS rules.

For every component that has at least one state override, in document
traversal order:

  [data-component-id="<id>"]         base values of the state-editable
                                     properties (mobile-first) + transition
  [data-component-id="<id>"]:hover   hover overrides
  [data-component-id="<id>"]:active  active overrides
  [data-component-id="<id>"]:focus   focus overrides

When a state-editable base value differs at a wider breakpoint, the default
rule is followed by `@media (min-width: ...)` rules for tablet and desktop
holding only the changed declarations.

The property table below is the single source for CSS names and units. The
render engine uses the same table for inline styles.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from studio.kernel.document import walk
from studio.kernel.registry import ComponentRegistry
from studio.kernel.resolver import resolve
from studio.kernel.types import (
    BREAKPOINT_WIDTHS,
    BREAKPOINTS,
    OVERRIDE_STATES,
    STATE_EDITABLE_PROPERTIES,
    TRANSITION_PROPERTIES,
    StyleRule,
    TransitionSpec,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Property table
# ---------------------------------------------------------------------------

PX = "px"
UNITLESS = "unitless"
RATIO = "ratio"  # stored 0-100, emitted 0-1
DEG = "deg"
KEYWORD = "keyword"  # strings only; numbers pass through bare

# prop name -> (css property, unit for numeric values). Declaration order follows this table.
CSS_PROPERTIES: dict[str, tuple[str, str]] = {
    # Layout
    "display": ("display", KEYWORD),
    "flexDirection": ("flex-direction", KEYWORD),
    "alignItems": ("align-items", KEYWORD),
    "justifyContent": ("justify-content", KEYWORD),
    "flexWrap": ("flex-wrap", KEYWORD),
    "width": ("width", PX),
    "height": ("height", PX),
    "minWidth": ("min-width", PX),
    "maxWidth": ("max-width", PX),
    "minHeight": ("min-height", PX),
    "maxHeight": ("max-height", PX),
    # Spacing
    "padding": ("padding", PX),
    "paddingTop": ("padding-top", PX),
    "paddingRight": ("padding-right", PX),
    "paddingBottom": ("padding-bottom", PX),
    "paddingLeft": ("padding-left", PX),
    "margin": ("margin", PX),
    "marginTop": ("margin-top", PX),
    "marginRight": ("margin-right", PX),
    "marginBottom": ("margin-bottom", PX),
    "marginLeft": ("margin-left", PX),
    "gap": ("gap", PX),
    # Colors
    "backgroundColor": ("background-color", KEYWORD),
    "color": ("color", KEYWORD),
    "borderColor": ("border-color", KEYWORD),
    "outlineColor": ("outline-color", KEYWORD),
    # Typography
    "fontSize": ("font-size", PX),
    "fontWeight": ("font-weight", UNITLESS),
    "lineHeight": ("line-height", UNITLESS),
    "letterSpacing": ("letter-spacing", PX),
    "textAlign": ("text-align", KEYWORD),
    "textDecoration": ("text-decoration", KEYWORD),
    "textTransform": ("text-transform", KEYWORD),
    # Border & outline
    "borderWidth": ("border-width", PX),
    "borderStyle": ("border-style", KEYWORD),
    "borderRadius": ("border-radius", PX),
    "outlineWidth": ("outline-width", PX),
    "outlineStyle": ("outline-style", KEYWORD),
    "outlineOffset": ("outline-offset", PX),
    # Effects
    "opacity": ("opacity", RATIO),
    "boxShadow": ("box-shadow", KEYWORD),
    "textShadow": ("text-shadow", KEYWORD),
    "cursor": ("cursor", KEYWORD),
}

# transform pieces, in the order they are combined
TRANSFORM_FUNCTIONS: dict[str, str] = {
    "translateX": PX,
    "translateY": PX,
    "rotate": DEG,
    "scale": UNITLESS,
    "scaleX": UNITLESS,
    "scaleY": UNITLESS,
    "skewX": DEG,
    "skewY": DEG,
}

_TRANSITION_TARGETS: dict[str, tuple[str, ...]] = {
    "all": ("all",),
    "transform": ("transform",),
    "opacity": ("opacity",),
    "colors": ("background-color", "color", "border-color", "outline-color"),
    "shadow": ("box-shadow", "text-shadow"),
}

_PSEUDO_CLASS = {"default": "", "hover": ":hover", "active": ":active", "focus": ":focus"}


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------


def _number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value:g}" if isinstance(value, float) else str(value)


def format_value(value: Any, unit: str) -> str | None:
    """CSS text for one value, or None when there is nothing to emit."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if unit == RATIO:
            return _number(value / 100)
        if unit in (PX, DEG):
            return f"{_number(value)}{unit}"
        return _number(value)
    if isinstance(value, str):
        return value or None
    return None


def declarations(props: dict[str, Any], only: Iterable[str] | None = None) -> list[tuple[str, str]]:
    """
    (css-property, css-value) pairs for resolved props: table properties in
    table order, then one combined transform. Props outside the table are
    ignored.
    """
    allowed = set(only) if only is not None else None
    result: list[tuple[str, str]] = []

    for name, (css_name, unit) in CSS_PROPERTIES.items():
        if name not in props or (allowed is not None and name not in allowed):
            continue
        text = format_value(props[name], unit)
        if text is not None:
            result.append((css_name, text))

    pieces = []
    for name, unit in TRANSFORM_FUNCTIONS.items():
        if name not in props or (allowed is not None and name not in allowed):
            continue
        text = format_value(props[name], unit)
        if text is not None:
            pieces.append(f"{name}({text})")
    if pieces:
        result.append(("transform", " ".join(pieces)))

    return result


def transition_value(transition: dict[str, Any] | None) -> str | None:
    if not transition:
        return None
    spec = TransitionSpec.from_dict(transition)
    if spec.properties == "none" or spec.properties not in TRANSITION_PROPERTIES:
        return None
    timing = f"{spec.duration_ms}ms {spec.easing}"
    if spec.delay_ms:
        timing += f" {spec.delay_ms}ms"
    return ", ".join(f"{target} {timing}" for target in _TRANSITION_TARGETS[spec.properties])


def selector_for(component_id: str, state: str = "default") -> str:
    return f'[data-component-id="{component_id}"]{_PSEUDO_CLASS[state]}'


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


def component_rules(component: dict[str, Any], registry: ComponentRegistry) -> list[StyleRule]:
    overrides = component.get("state_overrides") or {}
    if not any(overrides.get(state) for state in OVERRIDE_STATES):
        return []

    schema = registry.lookup(component["type"])
    editable = schema.state_editable if schema.known else STATE_EDITABLE_PROPERTIES
    component_id = component["id"]

    base = declarations(resolve(component, registry, "mobile", "default"), only=editable)
    transition = transition_value(component.get("transition"))
    if transition is not None:
        base.append(("transition", transition))
    rules = [StyleRule(selector_for(component_id), tuple(base), component_id, "default")]
    rules.extend(_breakpoint_rules(component, registry, editable))

    for state in OVERRIDE_STATES:
        state_props = overrides.get(state)
        if not state_props:
            continue
        rules.append(
            StyleRule(
                selector_for(component_id, state),
                tuple(declarations(state_props, only=editable)),
                component_id,
                state,
            )
        )
    return rules


def media_query(breakpoint: str) -> str:
    return f"(min-width: {BREAKPOINT_WIDTHS[breakpoint]}px)"


def _breakpoint_rules(
    component: dict[str, Any], registry: ComponentRegistry, editable: Iterable[str]
) -> list[StyleRule]:
    """
    Base values that change above mobile. The default rule carries the mobile
    values; each wider breakpoint gets a media rule holding only what differs
    from the breakpoint below it.
    """
    component_id = component["id"]
    rules = []
    previous = dict(declarations(resolve(component, registry, BREAKPOINTS[0], "default"), only=editable))
    for breakpoint in BREAKPOINTS[1:]:
        current = declarations(resolve(component, registry, breakpoint, "default"), only=editable)
        changed = tuple((name, value) for name, value in current if previous.get(name) != value)
        if changed:
            rules.append(
                StyleRule(selector_for(component_id), changed, component_id, "default", media_query(breakpoint))
            )
        previous = dict(current)
    return rules


def generate(document: dict[str, Any], registry: ComponentRegistry) -> list[StyleRule]:
    """Ordered state rules for the whole page. Deterministic."""
    rules: list[StyleRule] = []
    for component_id in walk(document, registry):
        rules.extend(component_rules(document["components"][component_id], registry))
    logger.debug("generated %s style rules", len(rules))
    return rules


def to_css(rules: list[StyleRule], minify: bool = False) -> str:
    """Serialize rules to stylesheet text. Rules without declarations are skipped."""
    blocks = []
    for rule in rules:
        if not rule.declarations:
            continue
        if minify:
            body = ";".join(f"{name}:{value}" for name, value in rule.declarations)
            block = f"{rule.selector}{{{body}}}"
            if rule.media:
                block = f"@media {rule.media}{{{block}}}"
        elif rule.media:
            body = "\n".join(f"    {name}: {value};" for name, value in rule.declarations)
            block = f"@media {rule.media} {{\n  {rule.selector} {{\n{body}\n  }}\n}}"
        else:
            body = "\n".join(f"  {name}: {value};" for name, value in rule.declarations)
            block = f"{rule.selector} {{\n{body}\n}}"
        blocks.append(block)
    if minify:
        return "".join(blocks)
    return "\n\n".join(blocks) + ("\n" if blocks else "")
