"""
Studio Kernel — Component Registry

Static catalog: component type name → schema.
Populated from the block library at process start, then frozen so that
render output stays deterministic for the whole editing session.

lookup() never raises. Documents may reference types from a block library
version this process does not have; callers get UNKNOWN_SCHEMA instead.
"""

from __future__ import annotations

from typing import Any, Iterable

from studio.kernel.errors import (
    DuplicateTypeError,
    InvalidSchemaError,
    RegistryFrozenError,
)
from studio.kernel.types import (
    CONTAINER_MODES,
    CONTAINER_ZONES,
    STATE_EDITABLE_PROPERTIES,
    UNKNOWN_SCHEMA,
    ComponentSchema,
)


class ComponentRegistry:
    def __init__(self, schemas: Iterable[ComponentSchema] = ()) -> None:
        self._schemas: dict[str, ComponentSchema] = {}
        self._frozen = False
        for schema in schemas:
            self.register(schema.type, schema)

    # -- registration --

    def register(self, type: str, schema: ComponentSchema) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register '{type}' after editing has begun")
        if type in self._schemas:
            raise DuplicateTypeError(type)
        _validate_schema(type, schema)
        self._schemas[type] = schema

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # -- queries --

    def lookup(self, type: str) -> ComponentSchema:
        return self._schemas.get(type, UNKNOWN_SCHEMA)

    def defaults(self, type: str) -> dict[str, Any]:
        return self.lookup(type).defaults()

    def types(self) -> list[str]:
        return sorted(self._schemas)

    def __contains__(self, type: object) -> bool:
        return type in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


def _validate_schema(type: str, schema: ComponentSchema) -> None:
    if schema.type != type:
        raise InvalidSchemaError(f"Schema type '{schema.type}' registered as '{type}'")
    if schema.container not in CONTAINER_MODES:
        raise InvalidSchemaError(f"{type}: unknown container mode '{schema.container}'")
    if schema.container == CONTAINER_ZONES and not schema.zones:
        raise InvalidSchemaError(f"{type}: zones container declares no zones")
    if schema.container != CONTAINER_ZONES and schema.zones:
        raise InvalidSchemaError(f"{type}: zones declared on a '{schema.container}' container")
    if len(set(schema.zones)) != len(schema.zones):
        raise InvalidSchemaError(f"{type}: duplicate zone names")
    for zone_name in schema.zones:
        if not zone_name or ":" in zone_name:
            raise InvalidSchemaError(f"{type}: invalid zone name '{zone_name}'")
    for zone_name in schema.zone_rules:
        if zone_name not in schema.zones:
            raise InvalidSchemaError(f"{type}: rule for undeclared zone '{zone_name}'")

    names = schema.property_names()
    if len(names) != len(schema.properties):
        raise InvalidSchemaError(f"{type}: duplicate property definitions")

    not_visual = schema.state_editable - STATE_EDITABLE_PROPERTIES
    if not_visual:
        raise InvalidSchemaError(f"{type}: not state-editable: {sorted(not_visual)}")
