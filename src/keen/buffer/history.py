"""Edit deltas and the undo/redo timeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .state import Position


@dataclass(frozen=True, slots=True)
class BufferDelta:
    """One contiguous replacement, positioned against the text before it.

    ``start`` and ``end`` are ``(line, character)`` pairs counted in code
    points; the ``utf16_`` pair counts the same columns in UTF-16 code units.
    """

    start: Position
    end: Position
    utf16_start: Position
    utf16_end: Position
    text: str
    version: int
    label: str

    def positions(self, encoding: str = "utf-32") -> Tuple[Position, Position]:
        if encoding == "utf-16":
            return self.utf16_start, self.utf16_end
        return self.start, self.end


@dataclass(frozen=True, slots=True)
class Edit:
    """``removed`` was replaced by ``inserted`` at ``offset``."""

    offset: int
    removed: str
    inserted: str


@dataclass(frozen=True, slots=True)
class UndoEntry:
    label: str
    edits: Tuple[Edit, ...]
    caret_before: int
    anchor_before: int
    caret_after: int


class UndoTimeline:
    """Linear undo/redo history; pushing after an undo drops the redo tail."""

    def __init__(self, *, limit: int = 1000) -> None:
        self._entries: List[UndoEntry] = []
        self._index: int = -1
        self._limit = limit

    def __len__(self) -> int:
        return len(self._entries)

    def push(self, entry: UndoEntry) -> None:
        if self._index < len(self._entries) - 1:
            self._entries = self._entries[: self._index + 1]
        self._entries.append(entry)
        if len(self._entries) > self._limit:
            del self._entries[0]
        self._index = len(self._entries) - 1

    def can_undo(self) -> bool:
        return self._index >= 0

    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    def undo(self) -> Optional[UndoEntry]:
        if not self.can_undo():
            return None
        entry = self._entries[self._index]
        self._index -= 1
        return entry

    def redo(self) -> Optional[UndoEntry]:
        if not self.can_redo():
            return None
        self._index += 1
        return self._entries[self._index]

    def clear(self) -> None:
        self._entries.clear()
        self._index = -1


__all__ = ["BufferDelta", "Edit", "UndoEntry", "UndoTimeline"]
