"""
Studio Kernel — Mutation Engine

The only writer of the page document.

apply_operation(doc, op, registry) is pure: it deep-copies the document, runs
the operation's handler on the copy, checks the ownership invariant, and
returns the new document. Any rejection raises before anything is returned,
so a failed call leaves the caller's document untouched.

MutationEngine owns the current document and its undo/redo history, and
exposes the editing API (add / move / update / update_state / remove, plus
duplicate / set_transition / set_flags).
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from studio.kernel.document import (
    assert_integrity,
    descendants,
    empty_document,
    is_descendant,
    new_record,
    owning_list,
)
from studio.kernel.errors import (
    ComponentNotFoundError,
    CycleError,
    InvalidContainerError,
    InvalidStateError,
    InvalidTransitionError,
    LockedComponentError,
    NonOverridablePropertyError,
    RootMoveError,
    RootRemovalError,
    StructuralError,
    UnknownTypeError,
)
from studio.kernel.history import History
from studio.kernel.registry import ComponentRegistry
from studio.kernel.types import (
    CONTAINER_FREE,
    CONTAINER_ZONES,
    EASINGS,
    HISTORY_LIMIT,
    OVERRIDE_STATES,
    TRANSITION_PROPERTIES,
    HistoryEntry,
    TransitionSpec,
    generate_component_id,
    parse_zone_key,
    zone_key,
)

logger = logging.getLogger(__name__)


@dataclass
class Operation:
    """One mutation request. Handlers read only `type` and `payload`."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Context:
    registry: ComponentRegistry
    allow_placeholders: bool
    new_id: Callable[[], str]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_operation(
    doc: dict[str, Any],
    op: Operation,
    registry: ComponentRegistry,
    *,
    allow_placeholders: bool = False,
    id_factory: Callable[[], str] = generate_component_id,
) -> tuple[dict[str, Any], Any]:
    """
    Apply one operation. Returns (new_document, result).
    The input document is never modified.
    """
    handler = _HANDLERS.get(op.type)
    if handler is None:
        raise ValueError(f"Unknown operation: {op.type}")

    ctx = _Context(registry=registry, allow_placeholders=allow_placeholders, new_id=id_factory)
    new_doc = copy.deepcopy(doc)
    result = handler(new_doc, op.payload, ctx)
    assert_integrity(new_doc)
    return new_doc, result


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _require(doc: dict, component_id: str) -> dict:
    record = doc["components"].get(component_id)
    if record is None:
        raise ComponentNotFoundError(component_id)
    return record


def _require_unlocked(doc: dict, component_id: str) -> dict:
    record = _require(doc, component_id)
    if record.get("locked"):
        raise LockedComponentError(component_id)
    return record


def _zone_name(parent_id: str, zone: str) -> str:
    """Accept a bare zone name or a full "parent:zone" key for this parent."""
    if ":" not in zone:
        return zone
    parsed = parse_zone_key(zone)
    if parsed is None or parsed[0] != parent_id:
        raise InvalidContainerError(f"Zone '{zone}' does not belong to '{parent_id}'")
    return parsed[1]


def _target_list(
    doc: dict,
    ctx: _Context,
    parent_id: str,
    zone: str | None,
    child_type: str,
) -> tuple[list[str], str | None]:
    """
    Validate that parent_id accepts child_type in the requested mode.
    Returns (owning_list, zone_key_or_None).
    """
    parent = _require(doc, parent_id)
    schema = ctx.registry.lookup(parent["type"])
    is_root = parent_id == doc["root_id"]

    if zone is not None:
        name = _zone_name(parent_id, zone)
        if schema.container != CONTAINER_ZONES or name not in schema.zones:
            raise InvalidContainerError(f"'{parent['type']}' has no zone '{name}'")
        rule = schema.zone_rule(name)
        if not rule.accepts(child_type):
            raise InvalidContainerError(f"Zone '{name}' does not accept '{child_type}'")
        key = zone_key(parent_id, name)
        members = doc["zones"].setdefault(key, [])
        if rule.max_children is not None and len(members) >= rule.max_children:
            raise InvalidContainerError(f"Zone '{name}' is full ({rule.max_children})")
        return members, key

    if not is_root and schema.container != CONTAINER_FREE:
        if schema.container == CONTAINER_ZONES:
            raise InvalidContainerError(f"'{parent['type']}' only accepts children in zones {list(schema.zones)}")
        raise InvalidContainerError(f"'{parent['type']}' does not accept children")
    return parent.setdefault("children", []), None


def _insert(members: list[str], index: int | None, component_id: str) -> None:
    if index is not None and 0 <= index <= len(members):
        members.insert(index, component_id)
    else:
        members.append(component_id)


def _place(record: dict, parent_id: str, key: str | None) -> None:
    if key is not None:
        record["parent_id"] = None
        record["zone_id"] = key
    else:
        record["parent_id"] = parent_id
        record["zone_id"] = None


def _detach(doc: dict, record: dict) -> None:
    members = owning_list(doc, record)
    if members is not None and record["id"] in members:
        members.remove(record["id"])


# ---------------------------------------------------------------------------
# Operation handlers
# ---------------------------------------------------------------------------


def _handle_add(doc: dict, p: dict, ctx: _Context) -> str:
    component_type = p["type"]
    schema = ctx.registry.lookup(component_type)
    if not schema.known and not ctx.allow_placeholders:
        raise UnknownTypeError(component_type)

    component_id = p.get("id") or ctx.new_id()
    if component_id in doc["components"]:
        raise StructuralError(f"Component '{component_id}' already exists")

    parent_id = p.get("parent_id") or doc["root_id"]
    _require(doc, parent_id)
    if parent_id == component_id or is_descendant(doc, parent_id, component_id):
        raise CycleError(f"'{parent_id}' is inside '{component_id}'")

    members, key = _target_list(doc, ctx, parent_id, p.get("zone"), component_type)

    record = new_record(
        component_id,
        component_type,
        copy.deepcopy(p.get("properties")),
        free_container=schema.container == CONTAINER_FREE,
    )
    _place(record, parent_id, key)
    doc["components"][component_id] = record
    _insert(members, p.get("index"), component_id)
    return component_id


def _handle_move(doc: dict, p: dict, ctx: _Context) -> None:
    component_id = p["id"]
    if component_id == doc["root_id"]:
        raise RootMoveError("Cannot move the root component")
    record = _require_unlocked(doc, component_id)

    new_parent_id = p.get("parent_id") or doc["root_id"]
    _require(doc, new_parent_id)
    if new_parent_id == component_id or is_descendant(doc, new_parent_id, component_id):
        raise CycleError(f"Cannot move '{component_id}' into its own subtree ('{new_parent_id}')")

    _detach(doc, record)
    members, key = _target_list(doc, ctx, new_parent_id, p.get("zone"), record["type"])
    _insert(members, p.get("index"), component_id)
    _place(record, new_parent_id, key)


def _handle_update(doc: dict, p: dict, ctx: _Context) -> None:
    record = _require_unlocked(doc, p["id"])
    patch = p.get("properties") or {}
    if not isinstance(patch, dict):
        raise TypeError("property patch must be a dict")

    props = record["properties"]
    for key, value in patch.items():
        if value is None:
            props.pop(key, None)
        else:
            props[key] = copy.deepcopy(value)


def _handle_update_state(doc: dict, p: dict, ctx: _Context) -> None:
    record = _require_unlocked(doc, p["id"])
    state = p["state"]
    if state not in OVERRIDE_STATES:
        raise InvalidStateError(f"'{state}' is not one of {list(OVERRIDE_STATES)}")

    schema = ctx.registry.lookup(record["type"])
    if not schema.known:
        raise UnknownTypeError(record["type"])

    patch = p.get("properties") or {}
    rejected = sorted(k for k in patch if k not in schema.state_editable)
    if rejected:
        raise NonOverridablePropertyError(f"{record['type']}: {', '.join(rejected)}")

    overrides = record.setdefault("state_overrides", {})
    state_props = overrides.setdefault(state, {})
    for key, value in patch.items():
        if value is None:
            state_props.pop(key, None)
        else:
            state_props[key] = copy.deepcopy(value)

    if not state_props:
        del overrides[state]
    if not overrides:
        del record["state_overrides"]


def _handle_remove(doc: dict, p: dict, ctx: _Context) -> list[str]:
    component_id = p["id"]
    if component_id == doc["root_id"]:
        raise RootRemovalError("Cannot remove the root component")
    record = _require_unlocked(doc, component_id)

    to_remove = [component_id] + descendants(doc, component_id)
    _detach(doc, record)

    removed = set(to_remove)
    for key in list(doc["zones"]):
        parsed = parse_zone_key(key)
        if parsed is not None and parsed[0] in removed:
            del doc["zones"][key]
    for cid in to_remove:
        doc["components"].pop(cid, None)
    return to_remove


def _handle_remove_many(doc: dict, p: dict, ctx: _Context) -> list[str]:
    ids = list(p["ids"])
    for component_id in ids:
        if component_id == doc["root_id"]:
            raise RootRemovalError("Cannot remove the root component")
        _require_unlocked(doc, component_id)

    removed: list[str] = []
    for component_id in ids:
        # already gone as part of an earlier subtree
        if component_id not in doc["components"]:
            continue
        removed.extend(_handle_remove(doc, {"id": component_id}, ctx))
    return removed


def _handle_duplicate(doc: dict, p: dict, ctx: _Context) -> str:
    component_id = p["id"]
    if component_id == doc["root_id"]:
        raise RootMoveError("Cannot duplicate the root component")
    original = _require(doc, component_id)

    subtree = [component_id] + descendants(doc, component_id)
    id_map = {old: ctx.new_id() for old in subtree}

    for old in subtree:
        clone = copy.deepcopy(doc["components"][old])
        clone["id"] = id_map[old]
        if "children" in clone:
            clone["children"] = [id_map[c] for c in clone["children"]]
        if old != component_id:
            if clone.get("zone_id"):
                parent_id, name = parse_zone_key(clone["zone_id"])
                clone["zone_id"] = zone_key(id_map[parent_id], name)
            else:
                clone["parent_id"] = id_map[clone["parent_id"]]
        doc["components"][id_map[old]] = clone

    for key in list(doc["zones"]):
        parsed = parse_zone_key(key)
        if parsed is not None and parsed[0] in id_map:
            parent_id, name = parsed
            doc["zones"][zone_key(id_map[parent_id], name)] = [id_map[c] for c in doc["zones"][key]]

    # Insert right after the original, in the same owning list.
    parent_id = original.get("parent_id")
    zone = original.get("zone_id")
    if zone:
        parent_id = parse_zone_key(zone)[0]
    members, key = _target_list(doc, ctx, parent_id, zone, original["type"])
    _insert(members, members.index(component_id) + 1, id_map[component_id])
    _place(doc["components"][id_map[component_id]], parent_id, key)
    return id_map[component_id]


def _handle_set_transition(doc: dict, p: dict, ctx: _Context) -> None:
    record = _require_unlocked(doc, p["id"])
    transition = p.get("transition")
    if transition is None:
        record.pop("transition", None)
        return
    if isinstance(transition, TransitionSpec):
        transition = transition.to_dict()
    record["transition"] = validate_transition(transition)


def _handle_set_flags(doc: dict, p: dict, ctx: _Context) -> None:
    record = _require(doc, p["id"])
    for flag in ("locked", "hidden"):
        value = p.get(flag)
        if value is not None:
            record[flag] = bool(value)


def validate_transition(transition: dict[str, Any]) -> dict[str, Any]:
    spec = TransitionSpec.from_dict(transition)
    if spec.properties not in TRANSITION_PROPERTIES:
        raise InvalidTransitionError(f"properties must be one of {list(TRANSITION_PROPERTIES)}")
    if spec.easing not in EASINGS:
        raise InvalidTransitionError(f"easing must be one of {list(EASINGS)}")
    for name, value in (("duration_ms", spec.duration_ms), ("delay_ms", spec.delay_ms)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidTransitionError(f"{name} must be a non-negative integer")
    return spec.to_dict()


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

_HANDLERS: dict[str, Any] = {
    "component.add": _handle_add,
    "component.move": _handle_move,
    "component.update": _handle_update,
    "component.update_state": _handle_update_state,
    "component.remove": _handle_remove,
    "component.remove_many": _handle_remove_many,
    "component.duplicate": _handle_duplicate,
    "component.set_transition": _handle_set_transition,
    "component.set_flags": _handle_set_flags,
}


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class MutationEngine:
    """
    Owns one page document for one editing session.

    Every successful non-transient call pushes exactly one history entry and
    clears the redo stack. Transient calls (drag previews) change the live
    document only; they never reach history and are never what gets saved.
    A non-transient call discards any outstanding preview first.
    """

    def __init__(
        self,
        registry: ComponentRegistry,
        document: dict[str, Any] | None = None,
        *,
        history_limit: int = HISTORY_LIMIT,
        allow_placeholders: bool = False,
        id_factory: Callable[[], str] = generate_component_id,
    ) -> None:
        doc = copy.deepcopy(document) if document is not None else empty_document()
        assert_integrity(doc)
        self._registry = registry
        self._allow_placeholders = allow_placeholders
        self._id_factory = id_factory
        self._history = History(history_limit)
        self._doc = doc
        self._committed = doc
        self._revision = 0
        self._listeners: list[Callable[[int], None]] = []

    # -- reads --

    @property
    def registry(self) -> ComponentRegistry:
        return self._registry

    @property
    def revision(self) -> int:
        """Bumped on every committed change, including undo and redo."""
        return self._revision

    @property
    def has_transient_changes(self) -> bool:
        return self._doc is not self._committed

    def snapshot(self) -> dict[str, Any]:
        """The live document, including any transient preview."""
        return copy.deepcopy(self._doc)

    def committed_snapshot(self) -> dict[str, Any]:
        """The last committed document. This is what gets persisted."""
        return copy.deepcopy(self._committed)

    # -- editing API --

    def add(
        self,
        type: str,
        properties: dict[str, Any] | None = None,
        parent_id: str | None = None,
        index: int | None = None,
        zone: str | None = None,
        *,
        transient: bool = False,
    ) -> str:
        payload = {
            "type": type,
            "properties": properties,
            "parent_id": parent_id,
            "index": index,
            "zone": zone,
        }
        return self._apply(Operation("component.add", payload), transient)

    def move(
        self,
        component_id: str,
        new_parent_id: str | None,
        index: int | None = None,
        zone: str | None = None,
        *,
        transient: bool = False,
    ) -> None:
        payload = {"id": component_id, "parent_id": new_parent_id, "index": index, "zone": zone}
        self._apply(Operation("component.move", payload), transient)

    def update(self, component_id: str, patch: dict[str, Any], *, transient: bool = False) -> None:
        self._apply(Operation("component.update", {"id": component_id, "properties": patch}), transient)

    def update_state(
        self,
        component_id: str,
        state: str,
        patch: dict[str, Any],
        *,
        transient: bool = False,
    ) -> None:
        payload = {"id": component_id, "state": state, "properties": patch}
        self._apply(Operation("component.update_state", payload), transient)

    def remove(self, component_id: str, *, transient: bool = False) -> list[str]:
        """Remove a component and its whole subtree. Returns the removed ids."""
        return self._apply(Operation("component.remove", {"id": component_id}), transient)

    def remove_many(self, component_ids: list[str], *, transient: bool = False) -> list[str]:
        """
        Remove several components as one history entry. Ids inside another
        listed subtree are covered by that removal. Returns every removed id.
        """
        return self._apply(Operation("component.remove_many", {"ids": list(component_ids)}), transient)

    def duplicate(self, component_id: str) -> str:
        return self._apply(Operation("component.duplicate", {"id": component_id}), False)

    def set_transition(self, component_id: str, transition: TransitionSpec | dict[str, Any] | None) -> None:
        self._apply(Operation("component.set_transition", {"id": component_id, "transition": transition}), False)

    def set_flags(self, component_id: str, *, locked: bool | None = None, hidden: bool | None = None) -> None:
        payload = {"id": component_id, "locked": locked, "hidden": hidden}
        self._apply(Operation("component.set_flags", payload), False)

    def add_listener(self, listener: Callable[[int], None]) -> None:
        """Called with the new revision after every committed change."""
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[int], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def discard_transient(self) -> None:
        """Throw away preview mutations; the live document returns to the committed one."""
        self._doc = self._committed

    # -- history API --

    def undo(self) -> bool:
        self.discard_transient()
        entry = self._history.pop_undo()
        if entry is None:
            return False
        self._commit(entry.before, f"undo {entry.label}")
        return True

    def redo(self) -> bool:
        self.discard_transient()
        entry = self._history.pop_redo()
        if entry is None:
            return False
        self._commit(entry.after, f"redo {entry.label}")
        return True

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    # -- internals --

    def _apply(self, op: Operation, transient: bool) -> Any:
        # Committed edits never build on top of a preview.
        base = self._doc if transient else self._committed
        new_doc, result = apply_operation(
            base,
            op,
            self._registry,
            allow_placeholders=self._allow_placeholders,
            id_factory=self._id_factory,
        )
        if transient:
            self._doc = new_doc
            return result

        self._history.push(HistoryEntry(label=op.type, before=self._committed, after=new_doc))
        self._commit(new_doc, op.type)
        return result

    def _commit(self, doc: dict[str, Any], label: str) -> None:
        self._doc = self._committed = doc
        self._revision += 1
        logger.debug("%s committed (revision %s)", label, self._revision)
        for listener in list(self._listeners):
            try:
                listener(self._revision)
            except Exception:
                logger.exception("Listener failed after %s (revision %s)", label, self._revision)
