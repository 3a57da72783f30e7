"""Editor session: open buffers, input dispatch, caret blink and LSP upkeep."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional

from keen.buffer import (
    Clipboard,
    HitTester,
    MemoryClipboard,
    RenderSnapshot,
    TextBuffer,
)
from keen.buffer.buffer import Point
from keen.config import Settings
from keen.keymaps import KeymapRegistry, KeyStroke, load_default_keymaps
from keen.lsp import LSPCoordinator
from keen.runtime import telemetry


class EditorCommand(str, Enum):
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"
    LEFT_CLICK = "left_click"
    LEFT_RELEASE = "left_release"
    MOUSE_MOVE = "mouse_move"
    DOUBLE_CLICK = "double_click"
    CHAR_INSERT = "char_insert"
    KEY_PRESSED = "key_pressed"


@dataclass(frozen=True, slots=True)
class CommandData:
    """Arguments for :meth:`Editor.execute_command`; unused fields stay empty."""

    point: Optional[Point] = None
    extend: bool = False
    char: str = ""
    stroke: Optional[KeyStroke] = None


_CARET_COMMANDS = frozenset(
    {
        EditorCommand.LEFT_CLICK,
        EditorCommand.DOUBLE_CLICK,
        EditorCommand.CHAR_INSERT,
        EditorCommand.KEY_PRESSED,
    }
)


class Editor:
    """Owns the open buffers and everything whose lifetime is the session's.

    The caret blink phase and the language server coordinator are ordinary
    fields here; hosts drive time forward by calling :meth:`tick`.
    """

    def __init__(
        self,
        max_rows: int = 24,
        max_columns: int = 80,
        *,
        settings: Optional[Settings] = None,
        keymaps: Optional[KeymapRegistry] = None,
        coordinator: Optional[LSPCoordinator] = None,
        hit_tester: Optional[HitTester] = None,
        clipboard: Optional[Clipboard] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or Settings()
        self.max_rows = max(1, max_rows)
        self.max_columns = max(1, max_columns)
        self.buffers: List[TextBuffer] = []
        self.buffer_idx = 0
        self.hit_tester = hit_tester
        self.clipboard = clipboard if clipboard is not None else MemoryClipboard()
        self.caret_is_visible = True
        self.next_blink_deadline: Optional[float] = None
        self.status = ""
        self._clock = clock

        if keymaps is None:
            keymaps = KeymapRegistry()
            load_default_keymaps(keymaps)
        self.keymaps = keymaps
        self.coordinator = coordinator or LSPCoordinator(
            self.settings, root_path=os.getcwd(), on_crash=self._on_server_crash
        )
        if self.coordinator.on_crash is None:
            self.coordinator.on_crash = self._on_server_crash

    # ------------------------------------------------------------------
    # Buffers

    def open_file(self, path: str | os.PathLike[str]) -> TextBuffer:
        """Load ``path`` into a new active buffer.

        :class:`~keen.errors.DocumentLoadError` propagates; a language
        server that cannot start only costs semantic highlighting.
        """

        with telemetry.span(
            "editor::open_file",
            component="editor",
            metadata={"path": os.fspath(path)},
        ):
            buffer = TextBuffer(
                path,
                self.max_rows,
                self.max_columns,
                settings=self.settings,
                hit_tester=self.hit_tester,
                clipboard=self.clipboard,
            )
            return self.add_buffer(buffer)

    def add_buffer(self, buffer: TextBuffer) -> TextBuffer:
        buffer.resize(self.max_rows, self.max_columns)
        self.buffers.append(buffer)
        self.buffer_idx = len(self.buffers) - 1
        self.coordinator.open_document(buffer)
        self._reset_blink()
        return buffer

    def close_file(self, index: Optional[int] = None) -> Optional[TextBuffer]:
        if not self.buffers:
            return None
        if index is None:
            index = self.buffer_idx
        if not 0 <= index < len(self.buffers):
            return None
        buffer = self.buffers.pop(index)
        self.coordinator.close_document(buffer)
        if self.buffer_idx >= len(self.buffers):
            self.buffer_idx = max(0, len(self.buffers) - 1)
        elif index < self.buffer_idx:
            self.buffer_idx -= 1
        return buffer

    def active_buffer(self) -> Optional[TextBuffer]:
        if not self.buffers:
            return None
        return self.buffers[self.buffer_idx]

    def focus(self, index: int) -> Optional[TextBuffer]:
        if 0 <= index < len(self.buffers):
            self.buffer_idx = index
            self.buffers[index].dirty = True
        return self.active_buffer()

    def selection_active(self) -> bool:
        buffer = self.active_buffer()
        return buffer is not None and buffer.currently_selecting

    # ------------------------------------------------------------------
    # Input

    def execute_command(
        self, command: EditorCommand, data: Optional[CommandData] = None
    ) -> bool:
        """Apply one input event to the active buffer; ``True`` if consumed."""

        buffer = self.active_buffer()
        if buffer is None:
            return False
        data = data or CommandData()
        handled = True

        if command is EditorCommand.SCROLL_UP:
            buffer.scroll_up(self.settings.mousewheel_lines)
        elif command is EditorCommand.SCROLL_DOWN:
            buffer.scroll_down(self.settings.mousewheel_lines)
        elif command is EditorCommand.LEFT_CLICK and data.point is not None:
            buffer.left_click(data.point, data.extend)
        elif command is EditorCommand.LEFT_RELEASE:
            buffer.left_release()
        elif command is EditorCommand.MOUSE_MOVE and data.point is not None:
            buffer.mouse_move(data.point)
        elif command is EditorCommand.DOUBLE_CLICK and data.point is not None:
            buffer.left_double_click(data.point)
        elif command is EditorCommand.CHAR_INSERT:
            handled = self._insert_char(buffer, data.char)
        elif command is EditorCommand.KEY_PRESSED and data.stroke is not None:
            handled = self.handle_key(data.stroke)
        else:
            handled = False

        if handled and command in _CARET_COMMANDS:
            self._reset_blink()
        return handled

    @staticmethod
    def _insert_char(buffer: TextBuffer, char: str) -> bool:
        if len(char) != 1 or (char < " " and char != "\t"):
            return False
        buffer.insert_char(char)
        return True

    def handle_key(self, stroke: KeyStroke) -> bool:
        """Run the action bound to ``stroke``, else insert its printable text."""

        action = self.keymaps.resolve(stroke.token)
        if action is not None:
            with telemetry.span(
                f"keymaps::{action.telemetry_name}",
                component="keymaps",
                metadata={"token": stroke.token},
            ):
                action(self)
            self._reset_blink()
            return True
        buffer = self.active_buffer()
        if buffer is not None and stroke.is_printable and stroke.text:
            for char in stroke.text:
                self._insert_char(buffer, char)
            self._reset_blink()
            return True
        return False

    def resize(self, max_rows: int, max_columns: int) -> None:
        self.max_rows = max(1, max_rows)
        self.max_columns = max(1, max_columns)
        for buffer in self.buffers:
            buffer.resize(self.max_rows, self.max_columns)

    # ------------------------------------------------------------------
    # Time and language servers

    def _reset_blink(self) -> None:
        self.caret_is_visible = True
        self.next_blink_deadline = None

    def tick(self, now: Optional[float] = None) -> bool:
        """Advance the caret blink and service language servers.

        Returns ``True`` when the active buffer needs repainting.
        """

        now = self._clock() if now is None else now
        interval = self.settings.caret_blink_ms / 1000.0
        repaint = False
        if self.next_blink_deadline is None:
            self.next_blink_deadline = now + interval
        elif now >= self.next_blink_deadline:
            self.caret_is_visible = not self.caret_is_visible
            self.next_blink_deadline = now + interval
            repaint = True

        self.coordinator.drain()
        self.coordinator.sync_changes()

        buffer = self.active_buffer()
        return repaint or (buffer is not None and buffer.dirty)

    def restart_language_server(self, language: Optional[str] = None) -> bool:
        if language is None:
            buffer = self.active_buffer()
            if buffer is None:
                return False
            language = buffer.language
        return self.coordinator.restart(language)

    def _on_server_crash(self, client_name: str, reason: str) -> None:
        self.status = f"{client_name} stopped: {reason}"

    def render_snapshot(self) -> Optional[RenderSnapshot]:
        """Snapshot of the active buffer; lexical spans follow semantic ones."""

        buffer = self.active_buffer()
        if buffer is None:
            return None
        snapshot = buffer.snapshot()
        semantic = self.coordinator.semantic_spans_for(buffer)
        buffer.dirty = False
        return replace(
            snapshot,
            spans=semantic + snapshot.spans,
            caret_visible=self.caret_is_visible,
        )

    def shutdown(self) -> None:
        self.coordinator.shutdown()


__all__ = ["CommandData", "Editor", "EditorCommand"]
