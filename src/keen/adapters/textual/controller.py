"""Textual-facing adapter that turns terminal input into editor commands.

Nothing here imports Textual; the app feeds plain key names, cell
coordinates and scroll directions in, and receives render snapshots back
through :class:`TextualUIHooks`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional

from keen.buffer import RenderSnapshot
from keen.editor import CommandData, Editor, EditorCommand
from keen.keymaps import KeyStroke


def _noop(*_args, **_kwargs) -> None:
    return None


@dataclass(slots=True)
class TextualUIHooks:
    """Callbacks invoked by the adapter to update Textual widgets."""

    update_view: Callable[[Optional[RenderSnapshot]], None]
    update_status: Callable[[str], None] = _noop
    log: Callable[[str], None] = _noop


class TextualEditorAdapter:
    """Bridges an :class:`Editor` to a cell-addressed terminal surface."""

    def __init__(self, editor: Editor, hooks: TextualUIHooks) -> None:
        self.editor = editor
        self.hooks = hooks
        self.refresh()

    # ------------------------------------------------------------------
    # Keyboard

    def handle_textual_key(
        self,
        key: str,
        *,
        text: Optional[str] = None,
        modifiers: Iterable[str] = (),
    ) -> bool:
        """Translate a Textual key event into a stroke and dispatch it."""

        stroke = KeyStroke(key, tuple(modifiers), text)
        handled = self.editor.execute_command(
            EditorCommand.KEY_PRESSED, CommandData(stroke=stroke)
        )
        self._log_state("key ->", token=stroke.token, handled=handled)
        if handled:
            self.refresh()
        return handled

    # ------------------------------------------------------------------
    # Mouse

    def _text_point(self, x: float, y: float) -> Optional[tuple[float, float]]:
        buffer = self.editor.active_buffer()
        if buffer is None:
            return None
        return (x - buffer.viewport.margin_width, y)

    def handle_mouse_down(
        self, x: float, y: float, *, shift: bool = False, chain: int = 1
    ) -> bool:
        point = self._text_point(x, y)
        if point is None:
            return False
        if chain >= 2:
            command = EditorCommand.DOUBLE_CLICK
        else:
            command = EditorCommand.LEFT_CLICK
        handled = self.editor.execute_command(
            command, CommandData(point=point, extend=shift)
        )
        if handled:
            self.refresh()
        return handled

    def handle_mouse_up(self) -> bool:
        handled = self.editor.execute_command(EditorCommand.LEFT_RELEASE)
        if handled:
            self.refresh()
        return handled

    def handle_mouse_move(self, x: float, y: float) -> bool:
        if not self.editor.selection_active():
            return False
        point = self._text_point(x, y)
        handled = self.editor.execute_command(
            EditorCommand.MOUSE_MOVE, CommandData(point=point)
        )
        if handled:
            self.refresh()
        return handled

    def handle_scroll(self, direction: int) -> bool:
        if direction < 0:
            command = EditorCommand.SCROLL_UP
        else:
            command = EditorCommand.SCROLL_DOWN
        handled = self.editor.execute_command(command)
        if handled:
            self.refresh()
        return handled

    # ------------------------------------------------------------------
    # Layout and time

    def resize(self, rows: int, columns: int) -> None:
        self.editor.resize(rows, columns)
        self.refresh()

    def tick(self, now: Optional[float] = None) -> bool:
        repaint = self.editor.tick(now)
        if repaint:
            self.refresh()
        return repaint

    def refresh(self) -> None:
        self.hooks.update_view(self.editor.render_snapshot())
        self.hooks.update_status(self.status_text())

    def status_text(self) -> str:
        buffer = self.editor.active_buffer()
        if buffer is None:
            return self.editor.status or "no file"
        line, column = buffer.caret_position()
        parts = [
            buffer.name,
            f"Ln {line + 1}, Col {column + 1}",
            buffer.language,
        ]
        if self.editor.status:
            parts.append(self.editor.status)
        return "  ".join(parts)

    def _log_state(self, prefix: str, **fields: object) -> None:
        snapshot = self._state_metadata()
        snapshot.update({k: v for k, v in fields.items() if v is not None})
        parts = [prefix]
        for key, value in snapshot.items():
            parts.append(f"{key}={value!r}")
        self.hooks.log(" ".join(parts))

    def _state_metadata(self) -> Dict[str, object]:
        buffer = self.editor.active_buffer()
        if buffer is None:
            return {"buffer": None}
        return {
            "buffer": buffer.name,
            "caret": buffer.caret.absolute,
            "selection": buffer.caret.selection(),
            "lines": buffer.sequence.len_lines(),
        }


__all__ = ["TextualEditorAdapter", "TextualUIHooks"]
