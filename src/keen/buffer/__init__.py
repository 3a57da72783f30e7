"""Sequence storage and the text buffer editing engine."""

from .buffer import SelectionMode, TextBuffer, Transaction
from .collaborators import (
    CellHitTester,
    Clipboard,
    HitTestResult,
    HitTester,
    MemoryClipboard,
    Rect,
    RenderSnapshot,
)
from .history import BufferDelta, Edit, UndoEntry, UndoTimeline
from .sequence import SequenceStore
from .state import CaretState, Viewport

__all__ = [
    "BufferDelta",
    "CaretState",
    "CellHitTester",
    "Clipboard",
    "Edit",
    "HitTestResult",
    "HitTester",
    "MemoryClipboard",
    "Rect",
    "RenderSnapshot",
    "SelectionMode",
    "SequenceStore",
    "TextBuffer",
    "Transaction",
    "UndoEntry",
    "UndoTimeline",
    "Viewport",
]
