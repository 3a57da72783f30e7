import json

import pytest

from keen.buffer import TextBuffer
from keen.config import Settings
from keen.editor import CommandData, Editor, EditorCommand
from keen.errors import DocumentLoadError
from keen.keymaps import KeyStroke
from keen.language import HighlightCategory
from keen.lsp import LSPCoordinator, LSPCrash, LSPResponse

OFFLINE = Settings(lsp_enabled=False)


def make_editor(text: str = "", **kwargs) -> Editor:
    editor = Editor(5, 40, settings=kwargs.pop("settings", OFFLINE), **kwargs)
    editor.add_buffer(TextBuffer.from_text(text))
    return editor


def insert(editor: Editor, char: str) -> bool:
    return editor.execute_command(EditorCommand.CHAR_INSERT, CommandData(char=char))


def test_open_file_makes_it_active(tmp_path) -> None:
    first = tmp_path / "a.rs"
    second = tmp_path / "b.txt"
    first.write_text("fn a() {}\n", encoding="utf-8")
    second.write_text("notes\n", encoding="utf-8")
    editor = Editor(5, 40, settings=OFFLINE)

    editor.open_file(first)
    buffer = editor.open_file(second)

    assert editor.active_buffer() is buffer
    assert editor.buffer_idx == 1
    assert buffer.viewport.max_rows == 5
    assert editor.focus(0).language == "rust"


def test_open_missing_file_raises(tmp_path) -> None:
    editor = Editor(settings=OFFLINE)

    with pytest.raises(DocumentLoadError):
        editor.open_file(tmp_path / "missing.cpp")

    assert editor.buffers == []
    assert editor.active_buffer() is None
    assert not insert(editor, "a")


def test_close_file_keeps_focus_valid() -> None:
    editor = make_editor("one")
    editor.add_buffer(TextBuffer.from_text("two"))
    editor.add_buffer(TextBuffer.from_text("three"))
    editor.focus(2)

    editor.close_file(0)
    assert editor.active_buffer().text == "three"

    editor.close_file()
    assert editor.active_buffer().text == "two"
    assert editor.close_file(5) is None


def test_char_insert_filters_control_characters() -> None:
    editor = make_editor()

    assert insert(editor, "a")
    assert insert(editor, "\t")
    assert not insert(editor, "\x01")
    assert not insert(editor, "ab")

    assert editor.active_buffer().text == "a    "


def test_bound_keys_run_actions() -> None:
    editor = make_editor("word")
    buffer = editor.active_buffer()
    buffer.caret.collapse(4)

    assert editor.handle_key(KeyStroke("backspace"))
    assert buffer.text == "wor"

    assert editor.handle_key(KeyStroke("z", ("ctrl",)))
    assert buffer.text == "word"

    assert editor.handle_key(KeyStroke("left", ("ctrl", "shift")))
    assert buffer.caret.selection() == (0, 4)


def test_printable_keys_insert_text() -> None:
    editor = make_editor()

    assert editor.execute_command(
        EditorCommand.KEY_PRESSED,
        CommandData(stroke=KeyStroke("a", ("shift",), text="A")),
    )
    assert not editor.handle_key(KeyStroke("f5"))
    assert not editor.handle_key(KeyStroke("q", ("ctrl",), text="q"))

    assert editor.active_buffer().text == "A"


def test_scroll_uses_mousewheel_lines() -> None:
    editor = make_editor("\n".join(str(n) for n in range(20)))

    editor.execute_command(EditorCommand.SCROLL_DOWN)
    assert editor.active_buffer().viewport.line_offset == 3

    editor.execute_command(EditorCommand.SCROLL_UP)
    assert editor.active_buffer().viewport.line_offset == 0
    assert editor.active_buffer().caret.absolute == 0


def test_mouse_drag_selects() -> None:
    editor = make_editor("hello world")

    editor.execute_command(EditorCommand.LEFT_CLICK, CommandData(point=(0.0, 0.0)))
    assert editor.selection_active()
    editor.execute_command(EditorCommand.MOUSE_MOVE, CommandData(point=(5.0, 0.0)))
    editor.execute_command(EditorCommand.LEFT_RELEASE)

    assert not editor.selection_active()
    assert editor.active_buffer().caret.selection() == (0, 5)
    assert not editor.execute_command(EditorCommand.LEFT_CLICK)


def test_caret_blinks_on_tick() -> None:
    editor = make_editor("x")

    assert editor.tick(0.0)
    assert editor.render_snapshot().caret_visible
    assert not editor.tick(0.4)

    assert editor.tick(0.5)
    assert not editor.caret_is_visible
    assert not editor.render_snapshot().caret_visible

    assert editor.tick(1.0)
    assert editor.caret_is_visible


def test_typing_resets_blink() -> None:
    editor = make_editor()
    editor.tick(0.0)
    editor.tick(0.5)
    assert not editor.caret_is_visible

    insert(editor, "a")

    assert editor.caret_is_visible
    assert editor.next_blink_deadline is None


def test_render_snapshot_clears_dirty() -> None:
    editor = make_editor("int x;")

    snapshot = editor.render_snapshot()

    assert snapshot.text == "int x;"
    assert not editor.active_buffer().dirty
    assert Editor(settings=OFFLINE).render_snapshot() is None


@pytest.fixture
def lsp_editor(fake_popen, tmp_path):
    path = tmp_path / "main.cpp"
    path.write_text("int main() {}", encoding="utf-8")
    editor = Editor(
        5,
        40,
        coordinator=LSPCoordinator(popen=fake_popen, root_path=str(tmp_path)),
    )
    editor.open_file(path)
    yield editor
    editor.shutdown()


def test_semantic_spans_come_before_lexical(lsp_editor) -> None:
    coordinator = lsp_editor.coordinator
    legend = {"tokenTypes": ["variable", "function"]}
    for payload in (
        {
            "id": 0,
            "result": {"capabilities": {"semanticTokensProvider": {"legend": legend}}},
        },
        {"id": 1, "result": {"data": [0, 4, 4, 1, 0]}},
    ):
        payload["jsonrpc"] = "2.0"
        coordinator.events.put(LSPResponse("clangd", json.dumps(payload).encode()))

    assert lsp_editor.tick(0.0)
    spans = lsp_editor.render_snapshot().spans

    assert [span.category for span in spans] == [
        HighlightCategory.FUNCTION,
        HighlightCategory.KEYWORD,
    ]


def test_server_crash_shows_in_status(lsp_editor) -> None:
    lsp_editor.coordinator.events.put(LSPCrash("clangd", "pipe closed"))

    lsp_editor.tick(0.0)

    assert lsp_editor.status == "clangd stopped: pipe closed"


def test_restart_language_server(lsp_editor, fake_popen) -> None:
    assert lsp_editor.restart_language_server()

    assert len(fake_popen.processes) == 2
    assert not Editor(settings=OFFLINE).restart_language_server()


def test_untracked_buffers_do_not_queue_deltas(tmp_path) -> None:
    path = tmp_path / "notes.txt"
    path.write_text("", encoding="utf-8")
    editor = Editor(5, 40, settings=OFFLINE)
    buffer = editor.open_file(path)

    for step in range(500):
        insert(editor, "x")
        editor.tick(step / 10)

    assert len(buffer.text) == 500
    assert buffer.drain_changes() == []
