"""
Studio Kernel — Render Engine

Pure, depth-first document → HTML. The editor canvas and the published page
call the same functions, so both show the same tree.

Per node:
  1. skip it (and its subtree) if hidden
  2. resolve properties for the breakpoint and the node's viewer state
  3. build root attributes: data-component-id plus an inline style from the
     stylesheet property table. When the node has state overrides and is in
     its default state, state-editable properties are left to the generated
     stylesheet so that :hover/:active/:focus rules can win.
  4. render children ("children" slot) and zone members (one slot per zone)
  5. call the schema's draw function

Unknown types render a visible placeholder with their children inside, so the
rest of the page still renders.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Any

import chevron

from studio.kernel.document import zone_keys_of
from studio.kernel.errors import (
    ComponentNotFoundError,
    InvalidBreakpointError,
    InvalidStateError,
)
from studio.kernel.registry import ComponentRegistry
from studio.kernel.resolver import resolve
from studio.kernel.stylesheet import declarations, generate, to_css
from studio.kernel.types import (
    BREAKPOINTS,
    STATE_EDITABLE_PROPERTIES,
    STATES,
    ComponentSchema,
    parse_zone_key,
)

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="{{lang}}">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{title}}</title>
{{#description}}
<meta name="description" content="{{description}}">
{{/description}}
<style>
{{{css}}}</style>
</head>
<body>
{{{body}}}
</body>
</html>
"""


@dataclass
class _RenderContext:
    document: dict[str, Any]
    registry: ComponentRegistry
    breakpoint: str
    viewer_state: dict[str, str]
    unknown_types: set[str] = field(default_factory=set)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render(
    document: dict[str, Any],
    registry: ComponentRegistry,
    breakpoint: str = "desktop",
    viewer_state: dict[str, str] | None = None,
) -> str:
    """Render the whole page as an HTML fragment."""
    return render_component(document, registry, document["root_id"], breakpoint, viewer_state)


def render_component(
    document: dict[str, Any],
    registry: ComponentRegistry,
    component_id: str,
    breakpoint: str = "desktop",
    viewer_state: dict[str, str] | None = None,
) -> str:
    """Render one component and its subtree."""
    if breakpoint not in BREAKPOINTS:
        raise InvalidBreakpointError(f"'{breakpoint}' is not one of {list(BREAKPOINTS)}")
    viewer_state = dict(viewer_state or {})
    for cid, state in viewer_state.items():
        if state not in STATES:
            raise InvalidStateError(f"'{state}' for '{cid}' is not one of {list(STATES)}")
    if component_id not in document["components"]:
        raise ComponentNotFoundError(component_id)

    ctx = _RenderContext(document, registry, breakpoint, viewer_state)
    markup = _render_node(ctx, component_id)
    if ctx.unknown_types:
        logger.warning("Rendered placeholders for unknown component types: %s", sorted(ctx.unknown_types))
    return markup


def render_page(
    document: dict[str, Any],
    registry: ComponentRegistry,
    breakpoint: str = "desktop",
    *,
    title: str | None = None,
    lang: str = "en",
    minify: bool = False,
) -> str:
    """A complete HTML document: page fragment plus the state stylesheet."""
    root = document["components"][document["root_id"]]
    root_props = resolve(root, registry, breakpoint)
    context = {
        "lang": lang,
        "title": title or root_props.get("title") or "Untitled Page",
        "description": root_props.get("description") or "",
        "css": to_css(generate(document, registry), minify=minify),
        "body": render(document, registry, breakpoint),
    }
    return chevron.render(PAGE_TEMPLATE, context)


# ---------------------------------------------------------------------------
# Node rendering
# ---------------------------------------------------------------------------


def _render_node(ctx: _RenderContext, component_id: str) -> str:
    record = ctx.document["components"][component_id]
    if record.get("hidden"):
        return ""

    schema = ctx.registry.lookup(record["type"])
    if not schema.known or schema.draw is None:
        ctx.unknown_types.add(record["type"])
        return _render_placeholder(ctx, record)

    state = ctx.viewer_state.get(component_id, "default")
    props = resolve(record, ctx.registry, ctx.breakpoint, state)
    attrs = _root_attrs(component_id, props, _inline_exclusions(record, schema, state))
    return schema.draw(component_id, props, attrs, _render_slots(ctx, record, schema))


def _inline_exclusions(record: dict[str, Any], schema: ComponentSchema, state: str) -> frozenset[str]:
    if state == "default" and record.get("state_overrides"):
        return schema.state_editable if schema.known else STATE_EDITABLE_PROPERTIES
    return frozenset()


def _root_attrs(component_id: str, props: dict[str, Any], exclude: frozenset[str]) -> str:
    allowed = [name for name in props if name not in exclude]
    style = "; ".join(f"{name}: {value}" for name, value in declarations(props, only=allowed))
    attrs = f'data-component-id="{html.escape(component_id)}"'
    if style:
        attrs += f' style="{html.escape(style)}"'
    return attrs


def _render_slots(ctx: _RenderContext, record: dict[str, Any], schema: ComponentSchema) -> dict[str, str]:
    slots: dict[str, str] = {}
    if "children" in record:
        slots["children"] = "".join(_render_node(ctx, cid) for cid in record["children"])
    for name in schema.zones:
        slots[name] = ""
    for key in zone_keys_of(ctx.document, record["id"], schema.zones):
        _, name = parse_zone_key(key)
        slots[name] = "".join(_render_node(ctx, cid) for cid in ctx.document["zones"][key])
    return slots


def _render_placeholder(ctx: _RenderContext, record: dict[str, Any]) -> str:
    slots = _render_slots(ctx, record, ctx.registry.lookup(record["type"]))
    inner = "".join(slots.values())
    component_type = html.escape(record["type"])
    return (
        f'<div data-component-id="{html.escape(record["id"])}" data-unknown-type="{component_type}"'
        f' class="studio-placeholder">'
        f'<span class="studio-placeholder-label">Unknown component: {component_type}</span>'
        f"{inner}</div>"
    )
