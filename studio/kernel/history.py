"""
Studio Kernel — Undo/Redo History

Each entry holds the document snapshot before and after one committed
mutation. Snapshots are never mutated after commit (the mutation engine
works on deep copies), so entries can share them safely.

Owned by the MutationEngine. Nothing else reads the stacks.
"""

from __future__ import annotations

from collections import deque

from studio.kernel.types import HISTORY_LIMIT, HistoryEntry


class History:
    def __init__(self, limit: int = HISTORY_LIMIT) -> None:
        if limit < 1:
            raise ValueError("history limit must be at least 1")
        self._undo: deque[HistoryEntry] = deque(maxlen=limit)
        self._redo: list[HistoryEntry] = []

    def push(self, entry: HistoryEntry) -> None:
        """Record a new mutation. Any redo branch is discarded."""
        self._undo.append(entry)
        self._redo.clear()

    def pop_undo(self) -> HistoryEntry | None:
        if not self._undo:
            return None
        entry = self._undo.pop()
        self._redo.append(entry)
        return entry

    def pop_redo(self) -> HistoryEntry | None:
        if not self._redo:
            return None
        entry = self._redo.pop()
        self._undo.append(entry)
        return entry

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()
