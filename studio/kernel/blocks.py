"""
Studio Kernel — Default Block Library

The set of component types supplied to the registry at process start.
Each block draws itself from a Mustache template (chevron). The render engine
hands every template:

  attrs   — pre-escaped root attributes (data-component-id, style); use {{{attrs}}}
  slots   — pre-rendered child markup keyed by "children" or zone name
  <props> — the resolved property values, HTML-escaped by chevron

Templates must be pure functions of that context.
"""

from __future__ import annotations

from typing import Any

import chevron

from studio.kernel.registry import ComponentRegistry
from studio.kernel.types import (
    CONTAINER_FREE,
    CONTAINER_ZONES,
    ROOT_TYPE,
    ComponentSchema,
    DrawFn,
    PropertyDef,
    ZoneRule,
)

# Visual properties every styled block may animate.
_BOX_STATE_PROPS = frozenset(
    {
        "backgroundColor",
        "borderColor",
        "borderWidth",
        "borderStyle",
        "boxShadow",
        "opacity",
        "scale",
        "translateY",
    }
)
_TEXT_STATE_PROPS = frozenset({"color", "textShadow", "opacity"})
_BUTTON_STATE_PROPS = _BOX_STATE_PROPS | {
    "color",
    "outlineColor",
    "outlineWidth",
    "outlineStyle",
    "outlineOffset",
    "rotate",
}


def template_draw(template: str) -> DrawFn:
    """Build a draw function from a Mustache template."""

    def draw(component_id: str, props: dict[str, Any], attrs: str, slots: dict[str, str]) -> str:
        context = dict(props)
        context["id"] = component_id
        context["attrs"] = attrs
        context["slots"] = slots
        return chevron.render(template, context)

    return draw


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

ROOT = ComponentSchema(
    type=ROOT_TYPE,
    label="Page",
    category="layout",
    container=CONTAINER_FREE,
    properties=(
        PropertyDef("title", "text", "Untitled Page"),
        PropertyDef("description", "textarea", ""),
        PropertyDef("backgroundColor", "color"),
        PropertyDef("maxWidth", "text"),
    ),
    draw=template_draw('<main {{{attrs}}} class="studio-page">{{{slots.children}}}</main>'),
)

SECTION = ComponentSchema(
    type="Section",
    label="Section",
    category="layout",
    container=CONTAINER_FREE,
    properties=(
        PropertyDef("backgroundColor", "color"),
        PropertyDef("padding", "spacing", 48, responsive=True),
        PropertyDef("width", "text", "100%", responsive=True),
    ),
    state_editable=frozenset({"backgroundColor", "boxShadow"}),
    draw=template_draw('<section {{{attrs}}} class="studio-section">{{{slots.children}}}</section>'),
)

CONTAINER = ComponentSchema(
    type="Container",
    label="Container",
    category="layout",
    container=CONTAINER_FREE,
    properties=(
        PropertyDef("maxWidth", "text", "1280px", responsive=True),
        PropertyDef("padding", "spacing", 16, responsive=True),
        PropertyDef("gap", "number", 16),
        PropertyDef("backgroundColor", "color"),
    ),
    state_editable=_BOX_STATE_PROPS,
    draw=template_draw('<div {{{attrs}}} class="studio-container">{{{slots.children}}}</div>'),
)

ROW = ComponentSchema(
    type="Row",
    label="Row",
    category="layout",
    container=CONTAINER_FREE,
    layout="horizontal",
    properties=(
        PropertyDef("gap", "number", 16),
        PropertyDef("display", "select", "flex"),
        PropertyDef("flexDirection", "select", "row", responsive=True),
        PropertyDef("alignItems", "select", "stretch"),
    ),
    draw=template_draw('<div {{{attrs}}} class="studio-row">{{{slots.children}}}</div>'),
)

COLUMNS = ComponentSchema(
    type="Columns",
    label="Columns",
    category="layout",
    container=CONTAINER_ZONES,
    layout="horizontal",
    zones=("column_1", "column_2", "column_3", "column_4"),
    zone_rules={
        "column_1": ZoneRule(label="Column 1"),
        "column_2": ZoneRule(label="Column 2"),
        "column_3": ZoneRule(label="Column 3"),
        "column_4": ZoneRule(label="Column 4"),
    },
    properties=(
        PropertyDef("columns", "select", 2, responsive=True),
        PropertyDef("gap", "number", 24),
        PropertyDef("display", "select", "grid"),
    ),
    draw=template_draw(
        '<div {{{attrs}}} class="studio-columns studio-columns-{{columns}}">'
        '<div class="studio-column">{{{slots.column_1}}}</div>'
        '<div class="studio-column">{{{slots.column_2}}}</div>'
        '<div class="studio-column">{{{slots.column_3}}}</div>'
        '<div class="studio-column">{{{slots.column_4}}}</div>'
        "</div>"
    ),
)

CARD = ComponentSchema(
    type="Card",
    label="Card",
    category="layout",
    container=CONTAINER_ZONES,
    zones=("header", "content", "footer"),
    zone_rules={
        "header": ZoneRule(allowed_types=("Heading", "Text", "Image"), max_children=2, label="Header"),
        "content": ZoneRule(label="Content"),
        "footer": ZoneRule(allowed_types=("Button", "Text"), label="Footer"),
    },
    properties=(
        PropertyDef("backgroundColor", "color", "#ffffff"),
        PropertyDef("borderRadius", "number", 8),
        PropertyDef("padding", "spacing", 24, responsive=True),
        PropertyDef("boxShadow", "text", "0 1px 3px rgba(0,0,0,0.1)"),
    ),
    state_editable=_BOX_STATE_PROPS,
    draw=template_draw(
        '<article {{{attrs}}} class="studio-card">'
        '<header class="studio-card-header">{{{slots.header}}}</header>'
        '<div class="studio-card-content">{{{slots.content}}}</div>'
        '<footer class="studio-card-footer">{{{slots.footer}}}</footer>'
        "</article>"
    ),
)

# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

HEADING = ComponentSchema(
    type="Heading",
    label="Heading",
    category="typography",
    properties=(
        PropertyDef("text", "textarea", "Heading"),
        PropertyDef("level", "select", "h2"),
        PropertyDef("color", "color"),
        PropertyDef("fontSize", "number", responsive=True),
        PropertyDef("textAlign", "select", "left", responsive=True),
    ),
    state_editable=_TEXT_STATE_PROPS,
    draw=template_draw('<div {{{attrs}}} class="studio-heading studio-heading-{{level}}">{{text}}</div>'),
)

TEXT = ComponentSchema(
    type="Text",
    label="Text",
    category="typography",
    properties=(
        PropertyDef("text", "textarea", "Enter your text here"),
        PropertyDef("color", "color"),
        PropertyDef("fontSize", "number", 16, responsive=True),
        PropertyDef("lineHeight", "number", 1.6),
        PropertyDef("textAlign", "select", "left", responsive=True),
    ),
    state_editable=_TEXT_STATE_PROPS,
    draw=template_draw('<p {{{attrs}}} class="studio-text">{{text}}</p>'),
)

BUTTON = ComponentSchema(
    type="Button",
    label="Button",
    category="interactive",
    properties=(
        PropertyDef("text", "text", "Click me"),
        PropertyDef("link", "link", "#"),
        PropertyDef("backgroundColor", "color", "#3b82f6"),
        PropertyDef("color", "color", "#ffffff"),
        PropertyDef("borderRadius", "number", 6),
        PropertyDef("padding", "spacing", "12px 24px"),
        PropertyDef("width", "text", responsive=True),
    ),
    state_editable=_BUTTON_STATE_PROPS,
    draw=template_draw('<a {{{attrs}}} class="studio-button" href="{{link}}">{{text}}</a>'),
)

IMAGE = ComponentSchema(
    type="Image",
    label="Image",
    category="media",
    properties=(
        PropertyDef("src", "image", ""),
        PropertyDef("alt", "text", ""),
        PropertyDef("width", "text", "100%", responsive=True),
        PropertyDef("borderRadius", "number", 0),
    ),
    state_editable=frozenset({"opacity", "scale", "boxShadow", "borderColor"}),
    draw=template_draw('<img {{{attrs}}} class="studio-image" src="{{src}}" alt="{{alt}}" loading="lazy">'),
)

DIVIDER = ComponentSchema(
    type="Divider",
    label="Divider",
    category="layout",
    properties=(
        PropertyDef("borderColor", "color", "#e5e7eb"),
        PropertyDef("borderWidth", "number", 1),
        PropertyDef("borderStyle", "select", "solid"),
        PropertyDef("marginTop", "number", 16),
        PropertyDef("marginBottom", "number", 16),
    ),
    draw=template_draw('<hr {{{attrs}}} class="studio-divider">'),
)

SPACER = ComponentSchema(
    type="Spacer",
    label="Spacer",
    category="layout",
    properties=(PropertyDef("height", "number", 32, responsive=True),),
    draw=template_draw('<div {{{attrs}}} class="studio-spacer" aria-hidden="true"></div>'),
)

CORE_BLOCKS: tuple[ComponentSchema, ...] = (
    ROOT,
    SECTION,
    CONTAINER,
    ROW,
    COLUMNS,
    CARD,
    HEADING,
    TEXT,
    BUTTON,
    IMAGE,
    DIVIDER,
    SPACER,
)


def load_block_library(extra: tuple[ComponentSchema, ...] = ()) -> ComponentRegistry:
    """Registry with the core blocks plus any host-supplied ones. Not frozen."""
    return ComponentRegistry(CORE_BLOCKS + tuple(extra))
