"""
Studio Kernel — Zone & Drag-Drop Resolver

Turns pointer samples into drop targets and a finished gesture into exactly
one mutation (add for palette drags, move for canvas drags).

Resolution runs against the document as it was when the gesture began, in
this order:

  1. Candidate declares zones → drop into a zone. The pointer's hovered zone
     if the host reports one, else the zone whose rect contains the pointer,
     else the first declared zone.
  2. Candidate is a free container → drop among its children, index by
     comparing the pointer with the children's midpoints along the
     container's layout axis.
  3. Candidate is a leaf (or of unknown type) → drop into the list that owns
     it, before or after it.

No target when the candidate is the dragged node or inside its subtree, when
the hovered zone is not declared, or when a zone rule rejects the type.

The dragged node is left out of sibling midpoints, so the index addresses the
target list after the node is removed from it (what move() expects).

Layout is host knowledge: the controller asks a LayoutProbe for rects.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Union

from studio.kernel.document import is_descendant, owner_of
from studio.kernel.errors import (
    ComponentNotFoundError,
    NoActiveDragError,
    NotDraggableError,
    SchemaError,
    StructuralError,
)
from studio.kernel.mutations import MutationEngine
from studio.kernel.registry import ComponentRegistry
from studio.kernel.types import (
    CONTAINER_FREE,
    CONTAINER_ZONES,
    CanvasSource,
    DropTarget,
    PaletteSource,
    Pointer,
    Rect,
    parse_zone_key,
    zone_key,
)

logger = logging.getLogger(__name__)

DragSource = Union[PaletteSource, CanvasSource]


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class LayoutProbe(ABC):
    """Where the host currently draws components and zones."""

    @abstractmethod
    def rect(self, component_id: str) -> Rect | None: ...

    @abstractmethod
    def zone_rect(self, parent_id: str, zone: str) -> Rect | None: ...


class StaticLayout(LayoutProbe):
    """Fixed rects, e.g. measured once per gesture by the host."""

    def __init__(
        self,
        rects: dict[str, Rect] | None = None,
        zone_rects: dict[str, Rect] | None = None,
    ) -> None:
        self._rects = dict(rects or {})
        self._zone_rects = dict(zone_rects or {})

    def rect(self, component_id: str) -> Rect | None:
        return self._rects.get(component_id)

    def zone_rect(self, parent_id: str, zone: str) -> Rect | None:
        return self._zone_rects.get(zone_key(parent_id, zone))


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def resolve_drop_target(
    document: dict[str, Any],
    registry: ComponentRegistry,
    source: DragSource,
    pointer: Pointer,
    layout: LayoutProbe,
) -> DropTarget | None:
    components = document["components"]
    candidate = components.get(pointer.candidate_id)
    if candidate is None:
        return None

    dragged_id = source.component_id if isinstance(source, CanvasSource) else None
    if dragged_id is not None:
        if dragged_id not in components:
            return None
        if pointer.candidate_id == dragged_id or is_descendant(document, pointer.candidate_id, dragged_id):
            return None
        dragged_type = components[dragged_id]["type"]
    else:
        dragged_type = source.type

    schema = registry.lookup(candidate["type"])
    is_root = candidate["id"] == document["root_id"]

    if schema.known and schema.container == CONTAINER_ZONES:
        zone = _pick_zone(candidate["id"], schema.zones, pointer, layout)
        if zone is None:
            return None
        members = document["zones"].get(zone_key(candidate["id"], zone), [])
        return _zone_target(registry, candidate, zone, members, dragged_id, dragged_type, pointer, layout)

    # only zones containers declare zones
    if pointer.zone is not None:
        return None

    if is_root or (schema.known and schema.container == CONTAINER_FREE):
        members = [cid for cid in candidate.get("children", []) if cid != dragged_id]
        index = _insertion_index(members, pointer, schema.layout, layout)
        return DropTarget(parent_id=candidate["id"], zone=None, index=index)

    return _sibling_target(document, registry, candidate, dragged_id, dragged_type, pointer, layout)


def _pick_zone(parent_id: str, zones: tuple[str, ...], pointer: Pointer, layout: LayoutProbe) -> str | None:
    if pointer.zone is not None:
        return pointer.zone if pointer.zone in zones else None
    for name in zones:
        rect = layout.zone_rect(parent_id, name)
        if rect is not None and rect.contains(pointer.x, pointer.y):
            return name
    return zones[0]


def _zone_target(
    registry: ComponentRegistry,
    parent: dict[str, Any],
    zone: str,
    members: list[str],
    dragged_id: str | None,
    dragged_type: str,
    pointer: Pointer,
    layout: LayoutProbe,
    index: int | None = None,
) -> DropTarget | None:
    rule = registry.lookup(parent["type"]).zone_rule(zone)
    if not rule.accepts(dragged_type):
        return None
    others = [cid for cid in members if cid != dragged_id]
    if rule.max_children is not None and len(others) >= rule.max_children:
        return None
    if index is None:
        index = _insertion_index(others, pointer, "vertical", layout)
    return DropTarget(parent_id=parent["id"], zone=zone, index=index)


def _sibling_target(
    document: dict[str, Any],
    registry: ComponentRegistry,
    candidate: dict[str, Any],
    dragged_id: str | None,
    dragged_type: str,
    pointer: Pointer,
    layout: LayoutProbe,
) -> DropTarget | None:
    """Drop next to a leaf, in the list that owns it."""
    parent_id = owner_of(candidate)
    parent = document["components"].get(parent_id or "")
    if parent is None:
        return None
    parent_schema = registry.lookup(parent["type"])

    if candidate.get("zone_id"):
        _, zone = parse_zone_key(candidate["zone_id"])
        if zone not in parent_schema.zones:
            return None
        members = document["zones"].get(candidate["zone_id"], [])
        axis = "vertical"
    else:
        if parent["id"] != document["root_id"] and parent_schema.container != CONTAINER_FREE:
            return None
        zone = None
        members = parent.get("children", [])
        axis = parent_schema.layout

    others = [cid for cid in members if cid != dragged_id]
    index = others.index(candidate["id"])
    rect = layout.rect(candidate["id"])
    coord = pointer.x if axis == "horizontal" else pointer.y
    if rect is None or coord >= rect.midpoint(axis):
        index += 1

    if zone is not None:
        return _zone_target(registry, parent, zone, members, dragged_id, dragged_type, pointer, layout, index)
    return DropTarget(parent_id=parent["id"], zone=None, index=index)


def _insertion_index(members: list[str], pointer: Pointer, axis: str, layout: LayoutProbe) -> int:
    coord = pointer.x if axis == "horizontal" else pointer.y
    for i, cid in enumerate(members):
        rect = layout.rect(cid)
        if rect is not None and coord < rect.midpoint(axis):
            return i
    return len(members)


# ---------------------------------------------------------------------------
# Gesture controller
# ---------------------------------------------------------------------------


class DragController:
    """
    Drag state for one canvas. Lives outside the document: nothing here is
    persisted or recorded in history.

    With preview=True every resolved sample is applied as a transient
    mutation so the host can re-render the drop in place. Previews are thrown
    away on the next sample, on cancel, and before the real drop.
    """

    def __init__(
        self,
        engine: MutationEngine,
        layout: LayoutProbe,
        *,
        preview: bool = False,
        min_interval_s: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._engine = engine
        self._layout = layout
        self._preview = preview
        self._min_interval_s = min_interval_s
        self._clock = clock
        self._reset()

    def _reset(self) -> None:
        self._source: DragSource | None = None
        self._document: dict[str, Any] | None = None
        self._target: DropTarget | None = None
        self._last_sample_at: float | None = None

    @property
    def active(self) -> bool:
        return self._source is not None

    @property
    def target(self) -> DropTarget | None:
        return self._target

    def begin_drag(self, source: DragSource) -> None:
        if self.active:
            self.cancel_drag()

        self._engine.discard_transient()
        document = self._engine.committed_snapshot()
        if isinstance(source, CanvasSource):
            record = document["components"].get(source.component_id)
            if record is None:
                raise ComponentNotFoundError(source.component_id)
            if source.component_id == document["root_id"]:
                raise NotDraggableError("The root component cannot be dragged")
            if record.get("locked"):
                raise NotDraggableError(f"'{source.component_id}' is locked")

        self._source = source
        self._document = document
        logger.debug("drag started: %s", source)

    def update_drag_target(self, pointer: Pointer) -> DropTarget | None:
        if self._source is None:
            raise NoActiveDragError("update_drag_target called with no drag in progress")

        now = self._clock()
        if self._last_sample_at is not None and now - self._last_sample_at < self._min_interval_s:
            return self._target
        self._last_sample_at = now

        target = resolve_drop_target(self._document, self._engine.registry, self._source, pointer, self._layout)
        if self._preview:
            target = self._apply_preview(target)
        self._target = target
        return target

    def end_drag(self) -> str | None:
        """Commit the drop. Returns the dropped component's id, or None."""
        if self._source is None:
            raise NoActiveDragError("end_drag called with no drag in progress")

        source, target = self._source, self._target
        self._engine.discard_transient()
        self._reset()
        if target is None:
            logger.debug("drag ended without a target")
            return None

        if isinstance(source, PaletteSource):
            new_id = self._engine.add(
                source.type,
                dict(source.properties),
                target.parent_id,
                target.index,
                target.zone,
            )
            logger.debug("dropped new %s as %s into %s", source.type, new_id, target)
            return new_id

        self._engine.move(source.component_id, target.parent_id, target.index, target.zone)
        logger.debug("moved %s into %s", source.component_id, target)
        return source.component_id

    def cancel_drag(self) -> None:
        """Abort the gesture. The document is left exactly as before begin_drag."""
        if self._source is None:
            return
        self._engine.discard_transient()
        self._reset()
        logger.debug("drag cancelled")

    def _apply_preview(self, target: DropTarget | None) -> DropTarget | None:
        self._engine.discard_transient()
        if target is None:
            return None
        try:
            if isinstance(self._source, PaletteSource):
                self._engine.add(
                    self._source.type,
                    dict(self._source.properties),
                    target.parent_id,
                    target.index,
                    target.zone,
                    transient=True,
                )
            else:
                self._engine.move(
                    self._source.component_id,
                    target.parent_id,
                    target.index,
                    target.zone,
                    transient=True,
                )
        except (SchemaError, StructuralError) as e:
            logger.debug("preview rejected for %s: %s", target, e)
            return None
        return target
