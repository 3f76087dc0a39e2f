"""Unit tests for TextBuffer line/character addressing."""

import pytest

from hum.buffer import CHUNK_SIZE, TextBuffer


def test_line_count_follows_newlines() -> None:
    assert TextBuffer("").line_count() == 1
    assert TextBuffer("abc").line_count() == 1
    assert TextBuffer("abc\n").line_count() == 2
    assert TextBuffer("a\nb\nc").line_count() == 3


def test_lines_keep_their_newline() -> None:
    buffer = TextBuffer("ab\ncd\n")
    assert buffer.line(0) == "ab\n"
    assert buffer.line(1) == "cd\n"
    assert buffer.line(2) == ""
    assert buffer.lines() == ["ab\n", "cd\n", ""]


def test_line_and_char_conversion() -> None:
    buffer = TextBuffer("ab\ncd\nef")
    assert buffer.line_to_char(1) == 3
    assert buffer.line_to_char(2) == 6
    assert buffer.char_to_line(0) == 0
    assert buffer.char_to_line(2) == 0  # the newline belongs to its line
    assert buffer.char_to_line(3) == 1
    assert buffer.char_to_line(8) == 2  # end of text


def test_char_to_line_out_of_range() -> None:
    with pytest.raises(IndexError):
        TextBuffer("abc").char_to_line(4)


def test_insert_and_remove_reindex_lines() -> None:
    buffer = TextBuffer("ab")
    buffer.insert(1, "\nx\n")
    assert str(buffer) == "a\nx\nb"
    assert buffer.line_count() == 3
    buffer.remove(1, 4)
    assert str(buffer) == "ab"
    assert buffer.line_count() == 1


def test_insert_out_of_range() -> None:
    with pytest.raises(IndexError):
        TextBuffer("ab").insert(3, "x")


def test_remove_out_of_range() -> None:
    with pytest.raises(IndexError):
        TextBuffer("ab").remove(1, 5)


def test_char_and_slice() -> None:
    buffer = TextBuffer("(Cn_4 1/4)")
    assert buffer.char(0) == "("
    assert buffer.slice(1, 5) == "Cn_4"
    assert buffer.slice(6) == "1/4)"
    assert len(buffer) == 10


def test_snapshot_is_unaffected_by_later_edits() -> None:
    buffer = TextBuffer("one")
    snapshot = buffer.snapshot()
    buffer.insert(3, " two")
    assert buffer.text == "one two"
    buffer.restore(snapshot)
    assert buffer.text == "one"


def test_snapshots_share_untouched_text() -> None:
    buffer = TextBuffer("a" * CHUNK_SIZE + "b" * CHUNK_SIZE + "c" * CHUNK_SIZE)
    before = buffer.snapshot()
    buffer.insert(CHUNK_SIZE + 5, "x")
    after = buffer.snapshot()

    assert after[0] is before[0]
    assert after[-1] is before[-1]
    assert "".join(before) == "a" * CHUNK_SIZE + "b" * CHUNK_SIZE + "c" * CHUNK_SIZE


def test_edits_across_chunk_boundaries() -> None:
    text = "".join(f"line {i}\n" for i in range(500))
    buffer = TextBuffer(text)

    buffer.remove(CHUNK_SIZE - 3, CHUNK_SIZE * 2 + 3)
    text = text[:CHUNK_SIZE - 3] + text[CHUNK_SIZE * 2 + 3:]
    assert buffer.text == text
    assert len(buffer) == len(text)

    buffer.insert(CHUNK_SIZE, "\nnew\n")
    text = text[:CHUNK_SIZE] + "\nnew\n" + text[CHUNK_SIZE:]
    assert buffer.text == text
    assert buffer.line_count() == text.count("\n") + 1
    assert buffer.char_to_line(len(text)) == text.count("\n")


def test_insert_into_empty_buffer_and_remove_everything() -> None:
    buffer = TextBuffer()
    buffer.insert(0, "abc\n")
    assert buffer.lines() == ["abc\n", ""]
    buffer.remove(0, len(buffer))
    assert buffer.text == ""
    assert buffer.line_count() == 1
