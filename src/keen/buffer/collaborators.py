"""Host collaborator protocols and the snapshot handed to renderers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Protocol, Tuple

from .sequence import SequenceStore

if TYPE_CHECKING:  # pragma: no cover
    from keen.language.highlighter import HighlightSpan


@dataclass(frozen=True, slots=True)
class Rect:
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True, slots=True)
class HitTestResult:
    """Character under a point; ``trailing`` is 1 past the character midpoint."""

    offset: int
    trailing: int = 0


class Clipboard(Protocol):
    """System clipboard as the host exposes it."""

    def get_text(self) -> Optional[bytes]:
        """Return UTF-8 bytes, or ``None`` when the clipboard has no text."""
        ...

    def set_text(self, data: bytes) -> bool:
        """Store UTF-8 bytes; return ``False`` when the host refused."""
        ...


class HitTester(Protocol):
    """Layout services supplied by the rendering host.

    Every method works on view-relative offsets into ``text`` (the visible
    slice) and receives the current horizontal scroll in columns.
    """

    def hit_test_point(
        self, text: str, x: float, y: float, column_offset: int
    ) -> HitTestResult:
        ...

    def caret_rect(
        self, text: str, offset: int, trailing: int, column_offset: int
    ) -> Optional[Rect]:
        ...

    def range_rects(
        self, text: str, start: int, length: int, column_offset: int
    ) -> List[Rect]:
        ...


class MemoryClipboard:
    """In-process clipboard used by tests and headless hosts."""

    def __init__(self, initial: Optional[bytes] = None) -> None:
        self._data = initial

    def get_text(self) -> Optional[bytes]:
        return self._data

    def set_text(self, data: bytes) -> bool:
        self._data = bytes(data)
        return True


class CellHitTester:
    """Hit testing for a monospace grid where each character is one cell."""

    def __init__(self, cell_width: float = 1.0, cell_height: float = 1.0) -> None:
        if cell_width <= 0 or cell_height <= 0:
            raise ValueError("cell dimensions must be positive")
        self.cell_width = cell_width
        self.cell_height = cell_height

    def hit_test_point(
        self, text: str, x: float, y: float, column_offset: int
    ) -> HitTestResult:
        lines = SequenceStore.from_text(text)
        row = min(max(int(y // self.cell_height), 0), lines.len_lines() - 1)
        start = lines.line_to_char(row)
        length = lines.line_content_length(row)
        column = max(x / self.cell_width, 0.0) + column_offset
        index = int(column)
        if index >= length:
            return HitTestResult(start + length, 0)
        trailing = 1 if column - index >= 0.5 else 0
        return HitTestResult(start + index, trailing)

    def caret_rect(
        self, text: str, offset: int, trailing: int, column_offset: int
    ) -> Optional[Rect]:
        if offset < 0 or offset > len(text):
            return None
        lines = SequenceStore.from_text(text)
        absolute = min(offset + trailing, len(text))
        row = lines.char_to_line(absolute)
        column = absolute - lines.line_to_char(row) - column_offset
        if column < 0:
            return None
        return Rect(
            column * self.cell_width, row * self.cell_height, 0.0, self.cell_height
        )

    def range_rects(
        self, text: str, start: int, length: int, column_offset: int
    ) -> List[Rect]:
        lines = SequenceStore.from_text(text)
        end = min(start + length, len(text))
        rects: List[Rect] = []
        if start >= end:
            return rects
        for row in range(lines.char_to_line(start), lines.char_to_line(end) + 1):
            line_start = lines.line_to_char(row)
            first = max(start, line_start) - line_start
            last = min(end, line_start + lines.line_content_length(row)) - line_start
            first = max(first - column_offset, 0)
            last = last - column_offset
            if last <= first:
                continue
            rects.append(
                Rect(
                    first * self.cell_width,
                    row * self.cell_height,
                    (last - first) * self.cell_width,
                    self.cell_height,
                )
            )
        return rects


@dataclass(frozen=True, slots=True)
class RenderSnapshot:
    """Owned, immutable view of a buffer for a single frame.

    Offsets (``caret``, ``selection`` as ``(start, length)``, ``spans`` and
    ``brackets``) are relative to ``text``, the visible slice.
    """

    text: str
    view_start: int
    line_offset: int
    column_offset: int
    line_numbers: Tuple[int, ...]
    margin_width: int
    caret: int
    caret_trailing: int
    selection: Optional[Tuple[int, int]]
    spans: Tuple["HighlightSpan", ...] = ()
    brackets: Optional[Tuple[int, int]] = None
    caret_visible: bool = True


__all__ = [
    "CellHitTester",
    "Clipboard",
    "HitTestResult",
    "HitTester",
    "MemoryClipboard",
    "Rect",
    "RenderSnapshot",
]
