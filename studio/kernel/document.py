"""
Studio Kernel — Page Document Model

The page document is a flat arena of component records plus named zone lists:

    {
        "version":    2,
        "root_id":    "root",
        "components": {id: ComponentRecord},
        "zones":      {"<parent_id>:<zone_name>": [id, ...]},
    }

Ownership invariant: every non-root id lives in exactly one owning list:
either its parent's "children" (record has parent_id, no zone_id) or one zone
list (record has zone_id, no parent_id). No duplicates, no orphans, no
dangling ids, everything reachable from the root.

Read helpers here never mutate. Only mutations.py writes documents.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Iterator

from studio.kernel.errors import IntegrityError, ParseError, VersionNotSupported
from studio.kernel.registry import ComponentRegistry
from studio.kernel.types import (
    FORMAT_VERSION,
    ROOT_ID,
    ROOT_TYPE,
    is_valid_id,
    parse_zone_key,
    zone_key,
)

# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def new_record(
    component_id: str,
    type: str,
    properties: dict[str, Any] | None = None,
    *,
    free_container: bool = False,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": component_id,
        "type": type,
        "properties": dict(properties or {}),
        "parent_id": None,
        "zone_id": None,
        "locked": False,
        "hidden": False,
    }
    if free_container:
        record["children"] = []
    return record


def empty_document(title: str | None = None) -> dict[str, Any]:
    """A page with only the root component."""
    root = new_record(ROOT_ID, ROOT_TYPE, free_container=True)
    if title:
        root["properties"]["title"] = title
    return {
        "version": FORMAT_VERSION,
        "root_id": ROOT_ID,
        "components": {ROOT_ID: root},
        "zones": {},
    }


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def owner_of(record: dict[str, Any]) -> str | None:
    """The id of the component that owns this record (via children or zone)."""
    if record.get("zone_id"):
        parsed = parse_zone_key(record["zone_id"])
        return parsed[0] if parsed else None
    return record.get("parent_id")


def owning_list(doc: dict[str, Any], record: dict[str, Any]) -> list[str] | None:
    """The list that currently holds this record's id."""
    if record.get("zone_id"):
        return doc["zones"].get(record["zone_id"])
    parent = doc["components"].get(record.get("parent_id") or "")
    if parent is None:
        return None
    return parent.get("children")


def zone_keys_of(doc: dict[str, Any], parent_id: str, declared: tuple[str, ...] = ()) -> list[str]:
    """
    Zone keys owned by parent_id: declared zones first (in declaration order),
    then any other zones present in the document, sorted.
    """
    present = {k for k in doc["zones"] if k.startswith(f"{parent_id}:")}
    ordered = [zone_key(parent_id, name) for name in declared if zone_key(parent_id, name) in present]
    ordered.extend(sorted(present - set(ordered)))
    return ordered


def child_ids(doc: dict[str, Any], component_id: str, registry: ComponentRegistry | None = None) -> list[str]:
    """Direct children plus zone members, in traversal order."""
    record = doc["components"].get(component_id)
    if record is None:
        return []
    result = list(record.get("children") or [])
    declared = registry.lookup(record["type"]).zones if registry is not None else ()
    for key in zone_keys_of(doc, component_id, declared):
        result.extend(doc["zones"][key])
    return result


def descendants(doc: dict[str, Any], component_id: str) -> list[str]:
    """All transitive children and zone members (excluding the node itself)."""
    result: list[str] = []
    stack = list(reversed(child_ids(doc, component_id)))
    seen: set[str] = {component_id}
    while stack:
        cid = stack.pop()
        if cid in seen:
            continue
        seen.add(cid)
        result.append(cid)
        stack.extend(reversed(child_ids(doc, cid)))
    return result


def is_descendant(doc: dict[str, Any], candidate_id: str, ancestor_id: str) -> bool:
    """True if candidate_id sits somewhere under ancestor_id."""
    seen: set[str] = set()
    current = doc["components"].get(candidate_id)
    while current is not None:
        parent_id = owner_of(current)
        if parent_id is None or parent_id in seen:
            return False
        if parent_id == ancestor_id:
            return True
        seen.add(parent_id)
        current = doc["components"].get(parent_id)
    return False


def walk(doc: dict[str, Any], registry: ComponentRegistry | None = None) -> Iterator[str]:
    """Pre-order traversal from the root. Deterministic."""
    stack = [doc["root_id"]]
    seen: set[str] = set()
    while stack:
        cid = stack.pop()
        if cid in seen or cid not in doc["components"]:
            continue
        seen.add(cid)
        yield cid
        stack.extend(reversed(child_ids(doc, cid, registry)))


# ---------------------------------------------------------------------------
# Integrity
# ---------------------------------------------------------------------------


def check_integrity(doc: dict[str, Any]) -> list[str]:
    """
    Verify the ownership invariant. Returns a list of problems; empty = valid.
    Registry-independent: documents that use types this process does not know
    are still structurally checkable.
    """
    problems: list[str] = []
    components = doc.get("components")
    zones = doc.get("zones")
    root_id = doc.get("root_id")

    if not isinstance(components, dict) or not isinstance(zones, dict):
        return ["document must have 'components' and 'zones' objects"]
    if not isinstance(root_id, str) or root_id not in components:
        return [f"root '{root_id}' missing from components"]

    root = components[root_id]
    if not isinstance(root, dict):
        return [f"root '{root_id}' is not an object"]
    if root.get("parent_id") or root.get("zone_id"):
        problems.append("root must not have a parent")

    owners: dict[str, str] = {}

    def claim(child_id: Any, where: str) -> None:
        if not isinstance(child_id, str):
            problems.append(f"non-string id {child_id!r} in {where}")
            return
        if child_id not in components:
            problems.append(f"dangling reference '{child_id}' in {where}")
            return
        if child_id == root_id:
            problems.append(f"root referenced as a child in {where}")
            return
        if child_id in owners:
            problems.append(f"'{child_id}' owned twice ({owners[child_id]} and {where})")
            return
        owners[child_id] = where

    for cid, record in components.items():
        if not isinstance(record, dict):
            problems.append(f"component '{cid}' is not an object")
            continue
        shape = _record_shape_problems(cid, record)
        if shape:
            problems.extend(shape)
            continue
        if record.get("id") != cid:
            problems.append(f"component key '{cid}' does not match id '{record.get('id')}'")
        if record.get("parent_id") and record.get("zone_id"):
            problems.append(f"'{cid}' has both parent_id and zone_id")
        for child_id in record.get("children") or []:
            claim(child_id, f"children of '{cid}'")
            child = components.get(child_id) if isinstance(child_id, str) else None
            if isinstance(child, dict) and child_id != root_id and (
                child.get("parent_id") != cid or child.get("zone_id")
            ):
                problems.append(f"'{child_id}' listed under '{cid}' but points elsewhere")

    for key, members in zones.items():
        parsed = parse_zone_key(key)
        if parsed is None:
            problems.append(f"malformed zone key '{key}'")
            continue
        if parsed[0] not in components:
            problems.append(f"zone '{key}' owned by missing component '{parsed[0]}'")
        if not isinstance(members, list):
            problems.append(f"zone '{key}' is not a list")
            continue
        for child_id in members:
            claim(child_id, f"zone '{key}'")
            child = components.get(child_id) if isinstance(child_id, str) else None
            if isinstance(child, dict) and child_id != root_id and (
                child.get("zone_id") != key or child.get("parent_id")
            ):
                problems.append(f"'{child_id}' listed in zone '{key}' but points elsewhere")

    for cid in components:
        if cid != root_id and cid not in owners:
            problems.append(f"orphan component '{cid}'")

    if not problems:
        reachable = set(walk(doc))
        unreachable = sorted(set(components) - reachable)
        if unreachable:
            problems.append(f"unreachable from root (cycle): {unreachable}")

    return problems


def _record_shape_problems(cid: str, record: dict[str, Any]) -> list[str]:
    """Field types a record must have before its references can be checked."""
    problems = []
    if not isinstance(record.get("type"), str) or not record.get("type"):
        problems.append(f"'{cid}' has no type")
    if not isinstance(record.get("properties", {}), dict):
        problems.append(f"'{cid}' properties must be an object")
    if "children" in record and not isinstance(record["children"], list):
        problems.append(f"'{cid}' children must be a list")
    for name in ("parent_id", "zone_id"):
        if record.get(name) is not None and not isinstance(record[name], str):
            problems.append(f"'{cid}' {name} must be a string or null")
    overrides = record.get("state_overrides")
    if overrides is not None and (
        not isinstance(overrides, dict) or not all(isinstance(v, dict) for v in overrides.values())
    ):
        problems.append(f"'{cid}' state_overrides must map states to objects")
    if record.get("transition") is not None and not isinstance(record["transition"], dict):
        problems.append(f"'{cid}' transition must be an object")
    return problems


def assert_integrity(doc: dict[str, Any]) -> None:
    problems = check_integrity(doc)
    if problems:
        raise IntegrityError(problems)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize(doc: dict[str, Any]) -> dict[str, Any]:
    """Persisted record of a document. Always the current format version."""
    return {
        "version": FORMAT_VERSION,
        "root_id": doc["root_id"],
        "components": copy.deepcopy(doc["components"]),
        "zones": copy.deepcopy(doc["zones"]),
    }


def deserialize(data: Any) -> dict[str, Any]:
    """
    Load any supported version. Upgrades legacy formats, then rejects
    documents that violate the ownership invariant. Never partially repairs.
    """
    if not isinstance(data, dict):
        raise ParseError("page document must be an object")

    version = data.get("version", FORMAT_VERSION)
    if version in ("1.0", 1):
        try:
            data = _upgrade_v1(data)
        except (TypeError, ValueError, AttributeError) as e:
            raise ParseError(f"Malformed v1 page document: {e}") from e
    elif not isinstance(version, int) or version > FORMAT_VERSION:
        raise VersionNotSupported(f"Document version {version} not supported")

    for key in ("root_id", "components", "zones"):
        if key not in data:
            raise ParseError(f"page document missing '{key}'")
    for cid in data["components"] if isinstance(data["components"], dict) else ():
        if not is_valid_id(cid):
            raise ParseError(f"invalid component id: {cid!r}")

    doc = {
        "version": FORMAT_VERSION,
        "root_id": data["root_id"],
        "components": copy.deepcopy(data["components"]),
        "zones": copy.deepcopy(data["zones"]),
    }
    assert_integrity(doc)
    return doc


def dumps(doc: dict[str, Any]) -> str:
    """Deterministic JSON text for storage and hashing."""
    return json.dumps(serialize(doc), sort_keys=True, ensure_ascii=False, separators=(",", ":"))


def loads(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse page document: {e}") from e
    return deserialize(data)


# ---------------------------------------------------------------------------
# Legacy format (v1)
# ---------------------------------------------------------------------------


def _upgrade_v1(data: dict[str, Any]) -> dict[str, Any]:
    """
    v1 pages kept the root outside the component map and used camelCase:
      {version: "1.0", root: {id, type, props, children}, components: {...}, zones: {...}}
    Top-level components had no parentId; zone members had zoneId only.
    """
    root = data.get("root")
    legacy_components = data.get("components")
    if not isinstance(root, dict) or not isinstance(legacy_components, dict):
        raise ParseError("v1 page document missing 'root' or 'components'")

    root_id = root.get("id", "root")
    components: dict[str, Any] = {
        root_id: {
            "id": root_id,
            "type": ROOT_TYPE,
            "properties": dict(root.get("props") or {}),
            "children": list(root.get("children") or []),
            "parent_id": None,
            "zone_id": None,
            "locked": False,
            "hidden": False,
        }
    }

    for cid, old in legacy_components.items():
        if not isinstance(old, dict):
            raise ParseError(f"v1 component '{cid}' is not an object")
        zone_id = old.get("zoneId") or None
        parent_id = None if zone_id else (old.get("parentId") or root_id)
        record: dict[str, Any] = {
            "id": old.get("id", cid),
            "type": old.get("type", ""),
            "properties": dict(old.get("props") or {}),
            "parent_id": parent_id,
            "zone_id": zone_id,
            "locked": bool(old.get("locked", False)),
            "hidden": bool(old.get("hidden", False)),
        }
        if "children" in old:
            record["children"] = list(old.get("children") or [])
        states = {s: dict(v) for s, v in (old.get("states") or {}).items() if v}
        if states:
            record["state_overrides"] = states
        transition = old.get("transition")
        if transition:
            record["transition"] = {
                "properties": transition.get("property", "all"),
                "duration_ms": transition.get("duration", 200),
                "easing": transition.get("easing", "ease-out"),
                "delay_ms": transition.get("delay", 0) or 0,
            }
        components[cid] = record

    # v1 gave every component an empty children array; keep it only where used
    # so that leaf records look like freshly added ones.
    for cid, record in components.items():
        if cid != root_id and record.get("children") == []:
            del record["children"]

    return {
        "root_id": root_id,
        "components": components,
        "zones": {k: list(v) for k, v in (data.get("zones") or {}).items()},
    }
