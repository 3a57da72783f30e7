from keen.buffer import CellHitTester, Rect, TextBuffer


def numbered(lines: int) -> str:
    return "\n".join(f"line {n}" for n in range(lines))


def test_scroll_clamps_to_document() -> None:
    buffer = TextBuffer.from_text(numbered(10), 3, 40)

    buffer.scroll_down(3)
    assert buffer.viewport.line_offset == 3
    assert buffer.viewport.view_start == buffer.sequence.line_to_char(3)
    assert buffer.viewport.view_end == buffer.sequence.line_to_char(6)

    buffer.scroll_down(100)
    assert buffer.viewport.line_offset == 9

    buffer.scroll_up(100)
    assert buffer.viewport.line_offset == 0
    assert buffer.caret.absolute == 0


def test_margin_tracks_last_visible_line_number() -> None:
    buffer = TextBuffer.from_text(numbered(120), 3, 40)
    assert buffer.viewport.margin_width == 2

    buffer.scroll_down(98)

    assert buffer.viewport.margin_width == 4


def test_horizontal_scroll_is_bounded_by_caret_line() -> None:
    buffer = TextBuffer.from_text("hello\n" + "x" * 50, 3, 40)

    buffer.scroll_right(10)
    assert buffer.viewport.column_offset == 5

    buffer.scroll_left(2)
    assert buffer.viewport.column_offset == 3

    buffer.scroll_left(10)
    assert buffer.viewport.column_offset == 0


def test_caret_is_followed_horizontally() -> None:
    buffer = TextBuffer.from_text("abcdefghijklmnop", 3, 10)

    buffer.move_right(12)

    assert buffer.viewport.column_offset == 5
    buffer.move_left(12)
    assert buffer.viewport.column_offset == 0


def test_edit_brings_caret_back_into_view() -> None:
    buffer = TextBuffer.from_text(numbered(20), 3, 40)
    buffer.scroll_down(10)
    assert not buffer.viewport.contains_line(0)

    buffer.insert_chars("x")

    assert buffer.viewport.line_offset == 0
    assert buffer.dirty


def test_resize_recomputes_bounds() -> None:
    buffer = TextBuffer.from_text(numbered(10), 3, 40)

    buffer.resize(5, 20)

    assert buffer.viewport.max_rows == 5
    assert buffer.viewport.view_end == buffer.sequence.line_to_char(5)


def test_click_maps_point_to_offset() -> None:
    buffer = TextBuffer.from_text("hello\nworld", 10, 40)

    buffer.left_click((2.2, 1.0))
    assert buffer.caret.absolute == 8
    assert not buffer.caret.has_selection()

    buffer.left_click((2.7, 0.0))
    assert buffer.caret.position == 2
    assert buffer.caret.trailing == 1
    assert buffer.caret.absolute == 3

    buffer.left_click((50.0, 0.0))
    assert buffer.caret.absolute == 5


def test_click_past_last_line_lands_at_document_end() -> None:
    buffer = TextBuffer.from_text("ab\ncd", 10, 40)

    buffer.left_click((1.0, 9.0))

    assert buffer.caret.absolute == 4


def test_shift_click_extends_selection() -> None:
    buffer = TextBuffer.from_text("hello world", 10, 40)
    buffer.left_click((1.0, 0.0))
    buffer.left_release()

    buffer.left_click((4.0, 0.0), extend=True)

    assert buffer.caret.selection() == (1, 4)


def test_click_on_last_visible_line_scrolls_down() -> None:
    buffer = TextBuffer.from_text(numbered(10), 3, 40)

    buffer.left_click((0.0, 2.0))

    assert buffer.viewport.line_offset == 1
    assert buffer.caret_position() == (2, 0)


def test_drag_selects_until_release() -> None:
    buffer = TextBuffer.from_text("hello\nworld", 10, 40)
    buffer.left_click((1.0, 0.0))

    buffer.mouse_move((3.0, 1.0))
    assert buffer.caret.selection() == (1, 9)

    buffer.left_release()
    buffer.mouse_move((0.0, 0.0))
    assert buffer.caret.selection() == (1, 9)


def test_double_click_selects_word() -> None:
    buffer = TextBuffer.from_text("foo_bar baz", 10, 40)

    buffer.left_double_click((2.0, 0.0))

    assert buffer.caret.anchor == 0
    assert buffer.caret.absolute == 7


def test_caret_and_selection_rects() -> None:
    buffer = TextBuffer.from_text("hello\nworld", 10, 40)
    buffer.caret.collapse(3)
    buffer.move_right(5, extend=True)

    assert buffer.caret_rect() == Rect(2.0, 1.0, 0.0, 1.0)
    assert buffer.selection_rects() == [
        Rect(3.0, 0.0, 2.0, 1.0),
        Rect(0.0, 1.0, 2.0, 1.0),
    ]


def test_cell_hit_tester_scales_cells() -> None:
    tester = CellHitTester(cell_width=8.0, cell_height=16.0)

    hit = tester.hit_test_point("abc\ndef", 13.0, 20.0, 0)

    assert (hit.offset, hit.trailing) == (5, 1)


def test_snapshot_is_view_relative() -> None:
    buffer = TextBuffer.from_text(numbered(10), 3, 40)
    buffer.caret.collapse(buffer.sequence.line_to_char(4) + 2)
    buffer.on_change()

    snapshot = buffer.snapshot()

    assert snapshot.line_numbers == (3, 4, 5)
    assert snapshot.view_start == buffer.sequence.line_to_char(2)
    assert snapshot.text == "line 2\nline 3\nline 4\n"
    assert snapshot.text[snapshot.caret - 2 : snapshot.caret] == "li"
    assert snapshot.selection is None
