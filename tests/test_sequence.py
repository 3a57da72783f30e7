from keen.buffer import SequenceStore


def test_crlf_counts_as_single_break() -> None:
    store = SequenceStore.from_text("ab\r\ncd\nef")

    assert store.len_lines() == 3
    assert store.line_to_char(1) == 4
    assert store.line_break_width(0) == 2
    assert store.line_break_width(1) == 1
    assert store.line_content_length(0) == 2
    assert store.line(1) == "cd\n"


def test_trailing_break_opens_empty_last_line() -> None:
    store = SequenceStore.from_text("one\n")

    assert store.len_lines() == 2
    assert store.line_content_length(1) == 0
    assert store.char_to_line(4) == 1


def test_line_index_follows_edits() -> None:
    store = SequenceStore.from_text("a\rb")
    store.insert(2, "\n")

    assert store.text() == "a\r\nb"
    assert store.len_lines() == 2
    assert store.line_to_char(1) == 3

    removed = store.remove(1, 3)

    assert removed == "\r\n"
    assert store.len_lines() == 1
    assert store.version == 2


def test_out_of_range_queries_clamp() -> None:
    store = SequenceStore.from_text("abc")

    assert store.char(10) == ""
    assert store.slice(5, -3) == "abc"
    assert store.line_to_char(9) == 3
    assert store.char_to_line(-4) == 0


def test_directional_iterators() -> None:
    store = SequenceStore.from_text("hello")

    assert "".join(store.chars_at(3)) == "lo"
    assert "".join(store.chars_before(3)) == "leh"


def test_detect_line_ending() -> None:
    assert SequenceStore.from_text("x\ny").detect_line_ending() == "\n"
    assert SequenceStore.from_text("x\r\ny").detect_line_ending() == "\r\n"
    assert SequenceStore.from_text("xy").detect_line_ending() is None
