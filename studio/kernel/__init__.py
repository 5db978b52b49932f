"""
Studio Kernel — the page composition engine.

Pure components:
  registry    — component type → schema, frozen once editing begins
  document    — flat page document, invariant checker, serialization
  mutations   — the only writer; all-or-nothing operations with undo/redo
  resolver    — responsive + state-aware effective properties
  renderer    — document → HTML (editor canvas and published output)
  stylesheet  — state overrides → ordered CSS rules
  dragdrop    — pointer samples → drop targets → one mutation

IO:
  assembly    — storage, debounced single-flight saves, sessions, publish
"""

from studio.kernel.assembly import MemoryStorage, PageAssembly, PageSession, SaveCoordinator
from studio.kernel.blocks import load_block_library
from studio.kernel.document import deserialize, empty_document, serialize
from studio.kernel.dragdrop import DragController, StaticLayout, resolve_drop_target
from studio.kernel.mutations import MutationEngine
from studio.kernel.registry import ComponentRegistry
from studio.kernel.renderer import render, render_page
from studio.kernel.resolver import resolve
from studio.kernel.stylesheet import generate, to_css

__all__ = [
    "ComponentRegistry",
    "load_block_library",
    "empty_document",
    "serialize",
    "deserialize",
    "MutationEngine",
    "resolve",
    "render",
    "render_page",
    "generate",
    "to_css",
    "resolve_drop_target",
    "DragController",
    "StaticLayout",
    "MemoryStorage",
    "PageAssembly",
    "PageSession",
    "SaveCoordinator",
]
