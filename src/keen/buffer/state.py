"""Caret, selection, and viewport state owned by a text buffer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

Position = Tuple[int, int]  # (line, character), both 0-indexed
Selection = Tuple[int, int]  # (start, end) absolute offsets, start <= end


@dataclass(slots=True)
class CaretState:
    """Anchor/caret pair plus the trailing-edge flag and sticky column.

    ``trailing`` is 1 when the caret sits after the character at
    ``position``; the logical caret offset is ``position + trailing``.
    """

    anchor: int = 0
    position: int = 0
    trailing: int = 0
    desired_column: int = 0

    @property
    def absolute(self) -> int:
        return self.position + self.trailing

    def has_selection(self) -> bool:
        return self.anchor != self.absolute

    def selection(self) -> Optional[Selection]:
        if not self.has_selection():
            return None
        caret = self.absolute
        return (min(self.anchor, caret), max(self.anchor, caret))

    def place(self, offset: int, *, trailing: int = 0, extend: bool = False) -> None:
        self.position = offset
        self.trailing = trailing
        if not extend:
            self.anchor = self.absolute

    def collapse(self, offset: int) -> None:
        self.position = offset
        self.trailing = 0
        self.anchor = offset


@dataclass(slots=True)
class Viewport:
    """Scroll position and the absolute character bounds of the visible lines."""

    max_rows: int
    max_columns: int
    line_offset: int = 0
    column_offset: int = 0
    view_start: int = 0
    view_end: int = 0
    margin_width: int = 2

    @property
    def last_line(self) -> int:
        """Index of the bottom-most row, visible or not."""

        return self.line_offset + self.max_rows - 1

    def contains_line(self, line: int) -> bool:
        return self.line_offset <= line <= self.last_line

    def contains_offset(self, offset: int) -> bool:
        return self.view_start <= offset <= self.view_end


__all__ = ["CaretState", "Position", "Selection", "Viewport"]
