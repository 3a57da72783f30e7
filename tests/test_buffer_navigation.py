import pytest

from keen.buffer import SelectionMode, TextBuffer
from keen.errors import DocumentLoadError


def make_buffer(text: str, rows: int = 10, columns: int = 40) -> TextBuffer:
    return TextBuffer.from_text(text, rows, columns)


def test_construction_starts_at_origin(tmp_path) -> None:
    path = tmp_path / "main.rs"
    path.write_bytes(b"fn main() {}\r\n")

    buffer = TextBuffer(path, 5, 20)

    assert buffer.text == "fn main() {}\r\n"
    assert buffer.caret.absolute == 0
    assert buffer.caret.anchor == 0
    assert buffer.language == "rust"
    assert buffer.viewport.view_end == len(buffer.text)


def test_missing_file_raises_document_load_error(tmp_path) -> None:
    with pytest.raises(DocumentLoadError) as info:
        TextBuffer(tmp_path / "absent.cpp", 5, 20)

    assert isinstance(info.value, OSError)
    assert info.value.path.endswith("absent.cpp")


def test_undecodable_file_raises_document_load_error(tmp_path) -> None:
    path = tmp_path / "binary.txt"
    path.write_bytes(b"\xff\xfe\xfa")

    with pytest.raises(DocumentLoadError):
        TextBuffer(path, 5, 20)


@pytest.mark.parametrize("start", range(0, 12))
def test_right_then_left_returns_to_start(start: int) -> None:
    buffer = make_buffer("ab\ncd ef\tgh")
    buffer.caret.collapse(start)

    buffer.move_right(3)
    buffer.move_left(3)

    assert buffer.caret.absolute == min(start, len(buffer.text) - 3)


def test_horizontal_moves_saturate() -> None:
    buffer = make_buffer("abc")

    buffer.move_left(5)
    assert buffer.caret.absolute == 0

    buffer.move_right(50)
    assert buffer.caret.absolute == 3


def test_crlf_pair_is_atomic_in_both_directions() -> None:
    buffer = make_buffer("ab\r\ncd")
    buffer.caret.collapse(2)

    buffer.move_right()
    assert buffer.caret.absolute == 4

    buffer.move_left()
    assert buffer.caret.absolute == 2


def test_extend_keeps_anchor() -> None:
    buffer = make_buffer("hello world")

    buffer.move_right(5, extend=True)

    assert buffer.caret.anchor == 0
    assert buffer.caret.selection() == (0, 5)

    buffer.move_left(2)
    assert not buffer.caret.has_selection()
    assert buffer.caret.anchor == 3


def test_word_right_boundaries() -> None:
    buffer = make_buffer("foo_bar 42+baz")

    buffer.move_right_by_word()
    assert buffer.caret.absolute == 7

    buffer.caret.collapse(8)
    buffer.move_right_by_word()
    assert buffer.caret.absolute == 10


def test_word_left_skips_the_boundary_it_stands_on() -> None:
    buffer = make_buffer("alpha beta")
    buffer.caret.collapse(6)

    buffer.move_left_by_word()
    assert buffer.caret.absolute == 5

    buffer.move_left_by_word()
    assert buffer.caret.absolute == 0


def test_vertical_sticky_column() -> None:
    buffer = make_buffer("abcdef\nab\nabcdefgh")
    buffer.caret.collapse(5)

    buffer.move_down()
    assert buffer.caret_position() == (1, 2)

    buffer.move_down()
    assert buffer.caret_position() == (2, 5)


def test_sticky_column_resets_after_horizontal_move() -> None:
    buffer = make_buffer("abcdef\nab\nabcdefgh")
    buffer.caret.collapse(5)
    buffer.move_down()

    buffer.move_left()
    buffer.move_down()

    assert buffer.caret_position() == (2, 1)


def test_vertical_move_at_edge_is_noop() -> None:
    buffer = make_buffer("one\ntwo")
    buffer.caret.collapse(2)

    buffer.move_up()

    assert buffer.caret.absolute == 2


def test_vertical_target_column_excludes_line_break() -> None:
    buffer = make_buffer("abcdef\r\nxy\r\nz")
    buffer.caret.collapse(6)

    buffer.move_down()

    assert buffer.caret_position() == (1, 2)
    assert buffer.caret.absolute == 10


def test_vertical_move_scrolls_viewport() -> None:
    buffer = make_buffer("\n".join(str(n) for n in range(10)), rows=3)
    buffer.caret.collapse(buffer.sequence.line_to_char(2))

    buffer.move_down()

    assert buffer.viewport.line_offset == 1
    assert buffer.viewport.contains_line(3)


def test_set_selection_accepts_mode_strings() -> None:
    buffer = make_buffer("abc def")

    buffer.set_selection("right_word", extend=True)

    assert buffer.caret.selection() == (0, 3)
    assert buffer.caret.anchor == 0
    assert buffer.caret.absolute == 3
    assert SelectionMode("left") is SelectionMode.LEFT
