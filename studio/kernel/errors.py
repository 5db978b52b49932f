"""
Studio Kernel — Errors

Four families:
  StructuralError   — the tree itself would break (cycle, dangling id, root removal)
  SchemaError       — the request does not fit the registry (unknown type, bad zone, ...)
  PersistenceError  — load/save I/O and format problems
  DragError         — misuse of the drag gesture API

Mutations raise before anything is committed, so every rejection leaves the
document exactly as it was.
"""

from __future__ import annotations


class StudioError(Exception):
    """Base class for every error raised by the kernel."""

    pass


# ---------------------------------------------------------------------------
# Structural
# ---------------------------------------------------------------------------


class StructuralError(StudioError):
    """The requested change would violate tree integrity."""

    pass


class CycleError(StructuralError):
    """A component cannot be placed inside itself or its own subtree."""

    pass


class RootRemovalError(StructuralError):
    """The root component cannot be removed."""

    pass


class RootMoveError(RootRemovalError):
    """The root component cannot be moved."""

    pass


class ComponentNotFoundError(StructuralError):
    """Referenced component id does not exist."""

    pass


class IntegrityError(StructuralError):
    """Document violates the single-owner invariant."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "integrity check failed")


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class SchemaError(StudioError):
    """The request does not fit the component registry."""

    pass


class UnknownTypeError(SchemaError):
    """Component type is not registered."""

    pass


class InvalidContainerError(SchemaError):
    """Parent does not accept children in the requested mode or zone."""

    pass


class NonOverridablePropertyError(SchemaError):
    """Property is not in the type's state-editable set."""

    pass


class InvalidStateError(SchemaError):
    """Interaction state is not one of the known states."""

    pass


class InvalidBreakpointError(SchemaError):
    """Breakpoint is not one of mobile, tablet, desktop."""

    pass


class InvalidTransitionError(SchemaError):
    """Transition settings are malformed."""

    pass


class InvalidSchemaError(SchemaError):
    """A component schema is malformed."""

    pass


class DuplicateTypeError(SchemaError):
    """Component type is already registered."""

    pass


class RegistryFrozenError(SchemaError):
    """Registry no longer accepts registrations."""

    pass


class LockedComponentError(SchemaError):
    """Locked components cannot be moved or removed."""

    pass


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class PersistenceError(StudioError):
    """Load or save failed."""

    pass


class PageNotFound(PersistenceError):
    """Page does not exist in storage."""

    pass


class ParseError(PersistenceError):
    """Stored payload exists but is not a readable page document."""

    pass


class VersionNotSupported(PersistenceError):
    """Document version is from a future format."""

    pass


class SaveFailed(PersistenceError):
    """Save still failing after retries. The in-memory page is untouched."""

    retryable = True


# ---------------------------------------------------------------------------
# Drag
# ---------------------------------------------------------------------------


class DragError(StudioError):
    """Drag gesture API misuse."""

    pass


class NotDraggableError(DragError):
    """Root and locked components cannot be dragged."""

    pass


class NoActiveDragError(DragError):
    """No drag gesture is in progress."""

    pass
