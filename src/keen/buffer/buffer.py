"""Text buffer: caret/selection state machine over a ``SequenceStore``."""

from __future__ import annotations

import os
from contextlib import AbstractContextManager
from enum import Enum
from itertools import takewhile
from typing import ContextManager, List, Optional, Tuple

from keen.config import Settings
from keen.errors import DocumentLoadError
from keen.language.highlighter import LexicalHighlights, highlight_text
from keen.language.profiles import LanguageProfile, profile_for_path
from keen.runtime import telemetry
from keen.text_utils import (
    boundary_count,
    get_char_type,
    is_closing_bracket,
    is_opening_bracket,
    is_whitespace,
    leading_whitespace,
    utf16_length,
)

from .collaborators import (
    CellHitTester,
    Clipboard,
    HitTester,
    Rect,
    RenderSnapshot,
)
from .history import BufferDelta, Edit, UndoEntry, UndoTimeline
from .sequence import SequenceStore
from .state import CaretState, Position, Selection, Viewport

Point = Tuple[float, float]


class SelectionMode(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    LEFT_WORD = "left_word"
    RIGHT_WORD = "right_word"
    UP = "up"
    DOWN = "down"


class Transaction(AbstractContextManager["Transaction"]):
    """Group the edits of one user-level operation into a single undo step.

    Nested transactions join the outermost one, which owns the telemetry span
    and pushes the undo entry when it exits cleanly.
    """

    def __init__(self, buffer: "TextBuffer", label: str) -> None:
        self.buffer = buffer
        self.label = label
        self.edits: List[Edit] = []
        self._outer: Optional[Transaction] = None
        self._span_cm: Optional[ContextManager[object]] = None
        self._caret_before = 0
        self._anchor_before = 0

    def __enter__(self) -> "Transaction":
        self._outer = self.buffer._transaction
        if self._outer is not None:
            return self._outer
        self._caret_before = self.buffer.caret.absolute
        self._anchor_before = self.buffer.caret.anchor
        self._span_cm = telemetry.span(
            f"buffer::{self.label}",
            component=True,
            metadata={"buffer": self.buffer.name},
        )
        self._span_cm.__enter__()
        self.buffer._transaction = self
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._outer is not None:
            return False
        self.buffer._transaction = None
        if exc_type is None and self.edits:
            self.buffer.history.push(
                UndoEntry(
                    label=self.label,
                    edits=tuple(self.edits),
                    caret_before=self._caret_before,
                    anchor_before=self._anchor_before,
                    caret_after=self.buffer.caret.absolute,
                )
            )
        if self._span_cm is not None:
            self._span_cm.__exit__(exc_type, exc, tb)
        return False


class TextBuffer:
    """One open document with its caret, selection and viewport.

    Navigation and editing never raise: offsets saturate at the document
    bounds. Every mutating call ends in :meth:`on_change`, which keeps the
    viewport bounds, margin and caret visibility consistent.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        max_rows: int,
        max_columns: int,
        *,
        settings: Optional[Settings] = None,
        hit_tester: Optional[HitTester] = None,
        clipboard: Optional[Clipboard] = None,
        text: Optional[str] = None,
    ) -> None:
        self.path = os.fspath(path)
        self.name = os.path.basename(self.path) or self.path
        self.settings = settings or Settings()
        self.profile: LanguageProfile = profile_for_path(self.path)
        self.hit_tester: HitTester = hit_tester or CellHitTester()
        self.clipboard = clipboard
        if text is None:
            self.sequence = self._load(self.path)
        else:
            self.sequence = SequenceStore.from_text(text)
        self.caret = CaretState()
        self.viewport = Viewport(
            max_rows=max(1, max_rows), max_columns=max(1, max_columns)
        )
        self.history = UndoTimeline()
        self.dirty = True
        self.currently_selecting = False
        # Deltas are queued only while a consumer (the LSP coordinator) drains them.
        self.track_changes = False
        self._changes: List[BufferDelta] = []
        self._transaction: Optional[Transaction] = None
        self.on_change()

    @classmethod
    def from_text(
        cls,
        text: str,
        max_rows: int = 24,
        max_columns: int = 80,
        *,
        path: str = "untitled.txt",
        settings: Optional[Settings] = None,
        hit_tester: Optional[HitTester] = None,
        clipboard: Optional[Clipboard] = None,
    ) -> "TextBuffer":
        return cls(
            path,
            max_rows,
            max_columns,
            settings=settings,
            hit_tester=hit_tester,
            clipboard=clipboard,
            text=text,
        )

    @staticmethod
    def _load(path: str) -> SequenceStore:
        try:
            with open(path, encoding="utf-8", newline="") as stream:
                return SequenceStore.from_reader(stream)
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentLoadError(f"cannot load {path!r}: {exc}", path=path) from exc

    # ------------------------------------------------------------------
    # Queries

    @property
    def language(self) -> str:
        return self.profile.identifier

    @property
    def text(self) -> str:
        return self.sequence.text()

    @property
    def caret_absolute(self) -> int:
        return self.caret.absolute

    @property
    def line_ending(self) -> str:
        return self.sequence.detect_line_ending() or self.settings.default_line_ending

    def position_of(self, offset: int) -> Position:
        line = self.sequence.char_to_line(offset)
        return (line, offset - self.sequence.line_to_char(line))

    def utf16_position_of(self, offset: int) -> Position:
        line, column = self.position_of(offset)
        return (line, utf16_length(self.sequence.slice(offset - column, offset)))

    def caret_position(self) -> Position:
        return self.position_of(self.caret.absolute)

    def view_text(self) -> str:
        return self.sequence.slice(self.viewport.view_start, self.viewport.view_end)

    def selection_range(self) -> Optional[Tuple[int, int]]:
        """Selection as ``(start, length)`` relative to the view, clipped to it."""

        selection = self.caret.selection()
        if selection is None:
            return None
        start = max(selection[0], self.viewport.view_start)
        end = min(selection[1], self.viewport.view_end)
        if start >= end:
            return None
        return (start - self.viewport.view_start, end - start)

    def caret_rect(self) -> Optional[Rect]:
        viewport = self.viewport
        if not viewport.contains_offset(self.caret.absolute):
            return None
        return self.hit_tester.caret_rect(
            self.view_text(),
            self.caret.position - viewport.view_start,
            self.caret.trailing,
            viewport.column_offset,
        )

    def selection_rects(self) -> List[Rect]:
        selected = self.selection_range()
        if selected is None:
            return []
        return self.hit_tester.range_rects(
            self.view_text(), selected[0], selected[1], self.viewport.column_offset
        )

    def lexical_highlights(self) -> LexicalHighlights:
        return highlight_text(
            self.view_text(),
            self.viewport.view_start,
            self.caret.absolute,
            self.profile,
            self.sequence.chars_before(self.viewport.view_start),
            brackets=self.settings.brackets,
        )

    def snapshot(self) -> RenderSnapshot:
        viewport = self.viewport
        highlights = self.lexical_highlights()
        last = min(viewport.line_offset + viewport.max_rows, self.sequence.len_lines())
        return RenderSnapshot(
            text=self.view_text(),
            view_start=viewport.view_start,
            line_offset=viewport.line_offset,
            column_offset=viewport.column_offset,
            line_numbers=tuple(range(viewport.line_offset + 1, last + 1)),
            margin_width=viewport.margin_width,
            caret=self.caret.position - viewport.view_start,
            caret_trailing=self.caret.trailing,
            selection=self.selection_range(),
            spans=highlights.spans,
            brackets=highlights.enclosing_brackets,
        )

    def drain_changes(self) -> List[BufferDelta]:
        """Return and forget the edits made since the previous drain."""

        changes, self._changes = self._changes, []
        return changes

    # ------------------------------------------------------------------
    # Primitive edits

    def _splice(self, start: int, end: int, text: str, label: str) -> str:
        positions = None
        if self.track_changes:
            positions = (
                self.position_of(start),
                self.position_of(end),
                self.utf16_position_of(start),
                self.utf16_position_of(end),
            )
        removed = self.sequence.remove(start, end)
        self.sequence.insert(start, text)
        if positions is not None:
            self._changes.append(
                BufferDelta(*positions, text, self.sequence.version, label)
            )
        self.dirty = True
        return removed

    def _replace(self, start: int, end: int, text: str, *, label: str) -> None:
        length = self.sequence.len_chars()
        start, end = sorted((max(0, min(start, length)), max(0, min(end, length))))
        if start == end and not text:
            return
        with Transaction(self, label) as tx:
            removed = self._splice(start, end, text, label)
            tx.edits.append(Edit(start, removed, text))

    def transaction(self, label: str) -> Transaction:
        return Transaction(self, label)

    def undo(self) -> bool:
        entry = self.history.undo()
        if entry is None:
            return False
        with telemetry.span(
            "buffer::undo", component=True, metadata={"label": entry.label}
        ):
            for edit in reversed(entry.edits):
                end = edit.offset + len(edit.inserted)
                self._splice(edit.offset, end, edit.removed, "undo")
            self.caret.collapse(entry.caret_before)
            self.caret.anchor = entry.anchor_before
        self.on_change()
        return True

    def redo(self) -> bool:
        entry = self.history.redo()
        if entry is None:
            return False
        with telemetry.span(
            "buffer::redo", component=True, metadata={"label": entry.label}
        ):
            for edit in entry.edits:
                end = edit.offset + len(edit.removed)
                self._splice(edit.offset, end, edit.inserted, "redo")
            self.caret.collapse(entry.caret_after)
        self.on_change()
        return True

    # ------------------------------------------------------------------
    # Navigation

    def _step_left(self, offset: int) -> int:
        if offset <= 0:
            return 0
        if self.sequence.slice(offset - 2, offset) == "\r\n":
            return offset - 2
        return offset - 1

    def _step_right(self, offset: int) -> int:
        length = self.sequence.len_chars()
        if offset >= length:
            return length
        if self.sequence.slice(offset, offset + 2) == "\r\n":
            return offset + 2
        return offset + 1

    def _word_right(self, offset: int) -> int:
        return offset + boundary_count(self.sequence.chars_at(offset))

    def _word_left(self, offset: int) -> int:
        start = self._step_left(offset)
        if start == offset:
            return offset
        kind = get_char_type(self.sequence.char(start))
        run = takewhile(
            lambda char: get_char_type(char) is kind, self.sequence.chars_before(start)
        )
        return start - sum(1 for _ in run)

    def _settle(self, offset: int) -> int:
        """Clamp ``offset`` and keep it off the middle of a CRLF pair."""

        offset = max(0, min(offset, self.sequence.len_chars()))
        if self.sequence.slice(offset - 1, offset + 1) == "\r\n":
            return offset - 1
        return offset

    def set_selection(
        self, mode: SelectionMode, count: int = 1, extend: bool = False
    ) -> None:
        """Move the caret; ``extend`` keeps the anchor to grow the selection."""

        mode = SelectionMode(mode)
        count = max(0, count)
        if mode in (SelectionMode.UP, SelectionMode.DOWN):
            self._move_vertical(-count if mode is SelectionMode.UP else count, extend)
            self.on_change()
            return

        steps = {
            SelectionMode.LEFT: self._step_left,
            SelectionMode.RIGHT: self._step_right,
            SelectionMode.LEFT_WORD: self._word_left,
            SelectionMode.RIGHT_WORD: self._word_right,
        }
        step = steps[mode]
        target = self.caret.absolute
        for _ in range(count):
            target = step(target)
        self.caret.place(self._settle(target), extend=extend)
        self.caret.desired_column = 0
        self.on_change()

    def _move_vertical(self, delta: int, extend: bool) -> None:
        sequence = self.sequence
        caret = self.caret
        offset = caret.absolute
        line = sequence.char_to_line(offset)
        target = max(0, min(line + delta, sequence.len_lines() - 1))
        if target == line:
            return
        column = max(caret.desired_column, offset - sequence.line_to_char(line))
        caret.desired_column = column
        column = min(column, sequence.line_content_length(target))
        caret.place(sequence.line_to_char(target) + column, extend=extend)

        viewport = self.viewport
        if target < viewport.line_offset:
            viewport.line_offset = target
        elif target > viewport.last_line:
            viewport.line_offset = target - viewport.max_rows + 1

    def move_left(self, count: int = 1, extend: bool = False) -> None:
        self.set_selection(SelectionMode.LEFT, count, extend)

    def move_right(self, count: int = 1, extend: bool = False) -> None:
        self.set_selection(SelectionMode.RIGHT, count, extend)

    def move_up(self, count: int = 1, extend: bool = False) -> None:
        self.set_selection(SelectionMode.UP, count, extend)

    def move_down(self, count: int = 1, extend: bool = False) -> None:
        self.set_selection(SelectionMode.DOWN, count, extend)

    def move_left_by_word(self, extend: bool = False) -> None:
        self.set_selection(SelectionMode.LEFT_WORD, 1, extend)

    def move_right_by_word(self, extend: bool = False) -> None:
        self.set_selection(SelectionMode.RIGHT_WORD, 1, extend)

    # ------------------------------------------------------------------
    # Editing

    def _remove_selection(self) -> bool:
        selection = self.caret.selection()
        if selection is None:
            return False
        self._replace(selection[0], selection[1], "", label="delete_selection")
        self.caret.collapse(selection[0])
        return True

    def insert_chars(self, text: str) -> None:
        if not text:
            return
        with Transaction(self, "insert_chars"):
            self._remove_selection()
            offset = self.caret.absolute
            self._replace(offset, offset, text, label="insert_chars")
            self.caret.collapse(offset + len(text))
        self.caret.desired_column = 0
        self.on_change()

    def insert_char(self, char: str) -> None:
        """Insert one typed character with bracket pairing and de-indent."""

        if not char:
            return
        if char == "\t":
            self.insert_chars(self.settings.indent_unit)
            return
        if char in ("\r", "\n"):
            self.insert_newline()
            return

        caret = self.caret
        brackets = self.settings.brackets
        offset = caret.absolute
        if not caret.has_selection() and is_closing_bracket(char, brackets):
            if self.sequence.char(offset) == char:
                self.set_selection(SelectionMode.RIGHT, 1)
                return
            with Transaction(self, "insert_char"):
                self._dedent_before(offset)
                self.insert_chars(char)
            return

        opening = is_opening_bracket(char, brackets)
        with Transaction(self, "insert_char"):
            if opening is None:
                self.insert_chars(char)
            else:
                self.insert_chars(opening[0] + opening[1])
                caret.collapse(caret.absolute - len(opening[1]))
        self.on_change()

    def _dedent_before(self, offset: int) -> None:
        sequence = self.sequence
        line_start = sequence.line_to_char(sequence.char_to_line(offset))
        before = sequence.slice(line_start, offset)
        unit = self.settings.indent_unit
        # Only a run of spaces counts as an indent unit; tabs are left alone.
        if before.strip(" \t") or not before.endswith(unit):
            return
        if is_whitespace(sequence.char(offset)):
            return
        self._replace(offset - len(unit), offset, "", label="dedent")
        self.caret.collapse(offset - len(unit))

    def _opener_before(self, offset: int) -> Optional[Tuple[int, Tuple[str, str]]]:
        position = offset
        for char in self.sequence.chars_before(offset):
            position -= 1
            if is_whitespace(char):
                continue
            pair = is_opening_bracket(char, self.settings.brackets)
            return (position, pair) if pair else None
        return None

    def _closer_after(self, offset: int, closer: str) -> Optional[int]:
        position = offset
        for char in self.sequence.chars_at(offset):
            if is_whitespace(char):
                position += 1
                continue
            return position if char == closer else None
        return None

    def insert_newline(self) -> None:
        """Break the line, carrying indentation and expanding ``{|}`` scopes."""

        sequence = self.sequence
        unit = self.settings.indent_unit
        with Transaction(self, "insert_newline"):
            self._remove_selection()
            offset = self.caret.absolute
            line_start = sequence.line_to_char(sequence.char_to_line(offset))
            indent = leading_whitespace(sequence.slice(line_start, offset))
            ending = self.line_ending
            found = self._opener_before(offset)
            if found is None:
                text = ending + indent
                self._replace(offset, offset, text, label="insert_newline")
                self.caret.collapse(offset + len(text))
            else:
                opener, pair = found
                closer = self._closer_after(offset, pair[1])
                middle = ending + indent + unit
                if closer is None:
                    self._replace(offset, offset, middle, label="insert_newline")
                    self.caret.collapse(offset + len(middle))
                else:
                    expansion = middle + ending + indent
                    self._replace(
                        opener + 1, closer, expansion, label="insert_newline"
                    )
                    self.caret.collapse(opener + 1 + len(middle))
        self.caret.desired_column = 0
        self.on_change()

    def _unit_before(self, offset: int) -> int:
        if self.sequence.slice(offset - 2, offset) == "\r\n":
            return 2
        unit = self.settings.indent_unit
        if self.sequence.slice(offset - len(unit), offset) == unit:
            return len(unit)
        return 1

    def _unit_after(self, offset: int) -> int:
        if self.sequence.slice(offset, offset + 2) == "\r\n":
            return 2
        unit = self.settings.indent_unit
        if self.sequence.slice(offset, offset + len(unit)) == unit:
            return len(unit)
        return 1

    def delete_left(self) -> None:
        if self.caret.has_selection():
            self.delete_selection()
            return
        offset = self.caret.absolute
        if offset > 0:
            width = min(self._unit_before(offset), offset)
            self._replace(offset - width, offset, "", label="delete_left")
            self.caret.collapse(offset - width)
        self.caret.desired_column = 0
        self.on_change()

    def delete_right(self) -> None:
        if self.caret.has_selection():
            self.delete_selection()
            return
        offset = self.caret.absolute
        if offset < self.sequence.len_chars():
            end = offset + self._unit_after(offset)
            self._replace(offset, end, "", label="delete_right")
            self.caret.collapse(offset)
        self.caret.desired_column = 0
        self.on_change()

    def delete_left_by_word(self) -> None:
        with Transaction(self, "delete_left_by_word"):
            self.set_selection(SelectionMode.LEFT_WORD, 1, extend=True)
            self.delete_selection()

    def delete_right_by_word(self) -> None:
        with Transaction(self, "delete_right_by_word"):
            self.set_selection(SelectionMode.RIGHT_WORD, 1, extend=True)
            self.delete_selection()

    def delete_selection(self) -> None:
        self._remove_selection()
        self.caret.desired_column = 0
        self.on_change()

    def _current_line_bounds(self) -> Tuple[int, int]:
        line = self.sequence.char_to_line(self.caret.absolute)
        return (self.sequence.line_to_char(line), self.sequence.line_to_char(line + 1))

    def copy_selection(self) -> str:
        """Copy the selection, or the current line when nothing is selected.

        Returns the copied text; the clipboard receives its UTF-8 encoding.
        """

        selection: Selection = self.caret.selection() or self._current_line_bounds()
        text = self.sequence.slice(*selection)
        if text and self.clipboard is not None:
            if not self.clipboard.set_text(text.encode("utf-8")):
                telemetry.record_event(
                    "clipboard.write_rejected",
                    level="warning",
                    data={"buffer": self.name, "length": len(text)},
                )
        return text

    def cut_selection(self) -> str:
        text = self.copy_selection()
        with Transaction(self, "cut"):
            if not self._remove_selection():
                start, end = self._current_line_bounds()
                self._replace(start, end, "", label="cut")
                self.caret.collapse(start)
        self.caret.desired_column = 0
        self.on_change()
        return text

    def paste(self) -> None:
        data = self.clipboard.get_text() if self.clipboard is not None else None
        if not data:
            return
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            telemetry.record_event(
                "clipboard.decode_failed",
                level="warning",
                data={"buffer": self.name, "reason": str(exc)},
            )
            return
        with Transaction(self, "paste"):
            self.insert_chars(text)

    # ------------------------------------------------------------------
    # Mouse

    def _hit(self, point: Point) -> Tuple[int, int]:
        viewport = self.viewport
        result = self.hit_tester.hit_test_point(
            self.view_text(), point[0], point[1], viewport.column_offset
        )
        length = self.sequence.len_chars()
        offset = max(0, min(viewport.view_start + result.offset, length))
        trailing = result.trailing if offset < length else 0
        settled = self._settle(offset + trailing)
        if settled != offset + trailing:
            return settled, 0
        return offset, trailing

    def left_click(self, point: Point, extend: bool = False) -> None:
        offset, trailing = self._hit(point)
        self.caret.place(offset, trailing=trailing, extend=extend)
        self.caret.desired_column = 0
        self.currently_selecting = True
        line = self.sequence.char_to_line(self.caret.absolute)
        if line == self.viewport.last_line and line < self.sequence.len_lines() - 1:
            self.scroll_down(1)
        self.on_change()

    def left_release(self) -> None:
        self.currently_selecting = False

    def mouse_move(self, point: Point) -> None:
        if not self.currently_selecting:
            return
        offset, trailing = self._hit(point)
        self.caret.place(offset, trailing=trailing, extend=True)
        self.on_change()

    def left_double_click(self, point: Point) -> None:
        """Select the word (or punctuation run) under ``point``."""

        offset, _ = self._hit(point)
        sequence = self.sequence
        char = sequence.char(offset)
        if not char:
            self.caret.collapse(offset)
        else:
            kind = get_char_type(char)
            run = takewhile(
                lambda c: get_char_type(c) is kind, sequence.chars_before(offset)
            )
            start = offset - sum(1 for _ in run)
            end = offset + boundary_count(sequence.chars_at(offset))
            self.caret.anchor = start
            self.caret.place(end, extend=True)
        self.caret.desired_column = 0
        self.currently_selecting = False
        self.on_change()

    # ------------------------------------------------------------------
    # Scrolling and layout

    def scroll_up(self, lines: int = 1) -> None:
        self.viewport.line_offset = max(0, self.viewport.line_offset - max(0, lines))
        self._refresh_view()

    def scroll_down(self, lines: int = 1) -> None:
        last = self.sequence.len_lines() - 1
        self.viewport.line_offset = min(last, self.viewport.line_offset + max(0, lines))
        self._refresh_view()

    def scroll_left(self, columns: int = 1) -> None:
        offset = self.viewport.column_offset - max(0, columns)
        self.viewport.column_offset = max(0, offset)
        self._refresh_view()

    def scroll_right(self, columns: int = 1) -> None:
        line = self.sequence.char_to_line(self.caret.absolute)
        limit = self.sequence.line_content_length(line)
        self.viewport.column_offset = max(
            0, min(self.viewport.column_offset + max(0, columns), limit)
        )
        self._refresh_view()

    def resize(self, max_rows: int, max_columns: int) -> None:
        self.viewport.max_rows = max(1, max_rows)
        self.viewport.max_columns = max(1, max_columns)
        self.on_change()

    def _refresh_view(self) -> None:
        self._update_bounds()
        self.dirty = True

    def _update_bounds(self) -> None:
        viewport = self.viewport
        sequence = self.sequence
        last_line = sequence.len_lines() - 1
        viewport.line_offset = max(0, min(viewport.line_offset, last_line))
        last = min(viewport.line_offset + viewport.max_rows, sequence.len_lines())
        viewport.view_start = sequence.line_to_char(viewport.line_offset)
        viewport.view_end = sequence.line_to_char(last)
        viewport.margin_width = len(str(last)) + 1

    def _follow_caret(self) -> None:
        viewport = self.viewport
        sequence = self.sequence
        offset = self.caret.absolute
        line = sequence.char_to_line(offset)
        if line < viewport.line_offset:
            viewport.line_offset = line
        elif line > viewport.last_line:
            viewport.line_offset = line - viewport.max_rows + 1

        column = offset - sequence.line_to_char(line)
        width = max(1, viewport.max_columns - viewport.margin_width)
        if column < viewport.column_offset:
            viewport.column_offset = column
        elif column >= viewport.column_offset + width:
            viewport.column_offset = column - width + 1

    def on_change(self) -> None:
        """Re-establish caret, viewport and margin invariants after a change."""

        caret = self.caret
        length = self.sequence.len_chars()
        caret.anchor = max(0, min(caret.anchor, length))
        caret.position = max(0, min(caret.position, length))
        if caret.position + caret.trailing > length:
            caret.trailing = 0
        self._update_bounds()
        self._follow_caret()
        self._update_bounds()
        self.dirty = True


__all__ = [
    "Point",
    "SelectionMode",
    "TextBuffer",
    "Transaction",
]
