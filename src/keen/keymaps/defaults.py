"""Built-in actions and the key strokes bound to them.

Every handler takes the :class:`~keen.editor.Editor` and acts on its active
buffer; with no buffer open the handlers do nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Iterable, Sequence

from .models import ActionRef, Binding, KeyStroke
from .registry import KeymapRegistry

if TYPE_CHECKING:
    from keen.buffer import TextBuffer
    from keen.editor import Editor


def _on_buffer(
    operation: Callable[["TextBuffer"], object]
) -> Callable[["Editor"], None]:
    def handler(editor: "Editor") -> None:
        buffer = editor.active_buffer()
        if buffer is not None:
            operation(buffer)

    handler.__name__ = getattr(operation, "__name__", "handler")
    return handler


def _page(buffer: "TextBuffer", direction: int, extend: bool = False) -> None:
    rows = max(1, buffer.viewport.max_rows)
    if direction < 0:
        buffer.move_up(rows, extend)
    else:
        buffer.move_down(rows, extend)


def _movement_actions() -> list[ActionRef]:
    actions = []
    moves = {
        "left": lambda buffer, extend: buffer.move_left(1, extend),
        "right": lambda buffer, extend: buffer.move_right(1, extend),
        "up": lambda buffer, extend: buffer.move_up(1, extend),
        "down": lambda buffer, extend: buffer.move_down(1, extend),
        "word_left": lambda buffer, extend: buffer.move_left_by_word(extend),
        "word_right": lambda buffer, extend: buffer.move_right_by_word(extend),
        "page_up": lambda buffer, extend: _page(buffer, -1, extend),
        "page_down": lambda buffer, extend: _page(buffer, 1, extend),
    }
    for name, move in moves.items():
        label = name.replace("_", " ")
        actions.append(
            ActionRef(
                id=f"cursor.{name}",
                handler=_on_buffer(lambda buffer, move=move: move(buffer, False)),
                description=f"Move caret {label}",
            )
        )
        actions.append(
            ActionRef(
                id=f"cursor.{name}_select",
                handler=_on_buffer(lambda buffer, move=move: move(buffer, True)),
                description=f"Extend selection {label}",
            )
        )
    return actions


DEFAULT_ACTIONS: tuple[ActionRef, ...] = (
    *_movement_actions(),
    ActionRef(
        id="edit.delete_left",
        handler=_on_buffer(lambda buffer: buffer.delete_left()),
        description="Delete before the caret",
    ),
    ActionRef(
        id="edit.delete_right",
        handler=_on_buffer(lambda buffer: buffer.delete_right()),
        description="Delete after the caret",
    ),
    ActionRef(
        id="edit.delete_word_left",
        handler=_on_buffer(lambda buffer: buffer.delete_left_by_word()),
        description="Delete the word before the caret",
    ),
    ActionRef(
        id="edit.delete_word_right",
        handler=_on_buffer(lambda buffer: buffer.delete_right_by_word()),
        description="Delete the word after the caret",
    ),
    ActionRef(
        id="edit.newline",
        handler=_on_buffer(lambda buffer: buffer.insert_newline()),
        description="Insert a line break with indentation",
    ),
    ActionRef(
        id="edit.indent",
        handler=_on_buffer(lambda buffer: buffer.insert_char("\t")),
        description="Insert one indent unit",
    ),
    ActionRef(
        id="clipboard.copy",
        handler=_on_buffer(lambda buffer: buffer.copy_selection()),
        description="Copy the selection",
    ),
    ActionRef(
        id="clipboard.cut",
        handler=_on_buffer(lambda buffer: buffer.cut_selection()),
        description="Cut the selection or the current line",
    ),
    ActionRef(
        id="clipboard.paste",
        handler=_on_buffer(lambda buffer: buffer.paste()),
        description="Paste clipboard text",
    ),
    ActionRef(
        id="history.undo",
        handler=_on_buffer(lambda buffer: buffer.undo()),
        description="Undo the last edit",
    ),
    ActionRef(
        id="history.redo",
        handler=_on_buffer(lambda buffer: buffer.redo()),
        description="Redo the last undone edit",
    ),
)


def _bind(token: str, action_id: str, description: str = "") -> Binding:
    return Binding(
        id=f"default.{token}",
        stroke=KeyStroke.parse(token),
        action_id=action_id,
        description=description,
        source="defaults",
    )


DEFAULT_BINDINGS: tuple[Binding, ...] = (
    _bind("left", "cursor.left"),
    _bind("right", "cursor.right"),
    _bind("up", "cursor.up"),
    _bind("down", "cursor.down"),
    _bind("shift+left", "cursor.left_select"),
    _bind("shift+right", "cursor.right_select"),
    _bind("shift+up", "cursor.up_select"),
    _bind("shift+down", "cursor.down_select"),
    _bind("ctrl+left", "cursor.word_left"),
    _bind("ctrl+right", "cursor.word_right"),
    _bind("ctrl+shift+left", "cursor.word_left_select"),
    _bind("ctrl+shift+right", "cursor.word_right_select"),
    _bind("pageup", "cursor.page_up"),
    _bind("pagedown", "cursor.page_down"),
    _bind("shift+pageup", "cursor.page_up_select"),
    _bind("shift+pagedown", "cursor.page_down_select"),
    _bind("backspace", "edit.delete_left"),
    _bind("delete", "edit.delete_right"),
    _bind("ctrl+backspace", "edit.delete_word_left"),
    _bind("ctrl+delete", "edit.delete_word_right"),
    _bind("enter", "edit.newline"),
    _bind("tab", "edit.indent"),
    _bind("ctrl+c", "clipboard.copy"),
    _bind("ctrl+x", "clipboard.cut"),
    _bind("ctrl+v", "clipboard.paste"),
    _bind("ctrl+z", "history.undo"),
    _bind("ctrl+y", "history.redo"),
)


def load_default_keymaps(
    registry: KeymapRegistry,
    *,
    replace: bool = False,
    extra_bindings: Iterable[Binding] | None = None,
    include_bindings: Sequence[str] | None = None,
    exclude_bindings: Sequence[str] | None = None,
) -> None:
    """Register built-in actions and bindings."""

    for action in DEFAULT_ACTIONS:
        registry.register_action(action, replace=replace)

    allowed = _build_filters(include_bindings, exclude_bindings)
    for binding in DEFAULT_BINDINGS:
        if _selected(binding.id, allowed):
            registry.register_binding(binding, replace=replace)

    if extra_bindings:
        for binding in extra_bindings:
            registry.register_binding(binding, replace=replace)


def _build_filters(
    include: Sequence[str] | None, exclude: Sequence[str] | None
) -> tuple[set[str] | None, set[str]]:
    include_set = set(include) if include else None
    exclude_set = set(exclude or ())
    return include_set, exclude_set


def _selected(item_id: str, filters: tuple[set[str] | None, set[str]]) -> bool:
    include, exclude = filters
    if include is not None and item_id not in include:
        return False
    return item_id not in exclude


__all__ = ["DEFAULT_ACTIONS", "DEFAULT_BINDINGS", "load_default_keymaps"]
