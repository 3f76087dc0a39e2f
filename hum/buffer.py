"""Line-addressable text buffer backing the editing session."""

from __future__ import annotations

from bisect import bisect_right
from itertools import accumulate

CHUNK_SIZE = 1024  # characters per stored piece of text

#: Opaque history entry: the buffer's chunk tuple at one point in time.
Snapshot = tuple[str, ...]


def _split_chunks(text: str) -> Snapshot:
    return tuple(text[i:i + CHUNK_SIZE] for i in range(0, len(text), CHUNK_SIZE))


class TextBuffer:
    """
    Chunked text buffer with line/character index conversion.

    The text is stored as a tuple of immutable string chunks. An edit
    rebuilds only the chunks it touches and reuses every other chunk object,
    so a snapshot is the current tuple: taking one copies nothing, and a long
    undo history shares all unchanged text between its entries.

    Lines follow the usual rope convention: a document of ``n`` newlines has
    ``n + 1`` lines, the last one possibly empty, and every line but the last
    includes its ``\\n``.
    """

    def __init__(self, text: str = "") -> None:
        self._set_chunks(_split_chunks(text))

    def _set_chunks(self, chunks: Snapshot) -> None:
        self._chunks = chunks
        self._chunk_starts = list(accumulate((len(chunk) for chunk in chunks), initial=0))
        self._joined: str | None = None
        self._line_starts: list[int] | None = None

    def _chunk_at(self, index: int) -> int:
        """Chunk holding character ``index``; the end of the text maps to the last chunk."""
        chunk_index = bisect_right(self._chunk_starts, index) - 1
        return min(chunk_index, len(self._chunks) - 1)

    def _lines_index(self) -> list[int]:
        if self._line_starts is None:
            text = self.text
            starts = [0]
            position = text.find("\n")
            while position != -1:
                starts.append(position + 1)
                position = text.find("\n", position + 1)
            self._line_starts = starts
        return self._line_starts

    def __len__(self) -> int:
        return self._chunk_starts[-1]

    def __str__(self) -> str:
        return self.text

    @property
    def text(self) -> str:
        if self._joined is None:
            self._joined = "".join(self._chunks)
        return self._joined

    # ------ Queries ------

    def char(self, index: int) -> str:
        return self.text[index]

    def slice(self, start: int, end: int | None = None) -> str:
        return self.text[start:end]

    def line_count(self) -> int:
        return len(self._lines_index())

    def line(self, line_index: int) -> str:
        """Text of one line, including its trailing newline if it has one."""
        line_starts = self._lines_index()
        start = line_starts[line_index]
        if line_index + 1 < len(line_starts):
            return self.text[start:line_starts[line_index + 1]]
        return self.text[start:]

    def line_to_char(self, line_index: int) -> int:
        return self._lines_index()[line_index]

    def char_to_line(self, index: int) -> int:
        """Line holding character ``index``; ``len(buffer)`` maps to the last line."""
        if not 0 <= index <= len(self):
            raise IndexError(f"Character index {index} out of range 0..{len(self)}")
        return bisect_right(self._lines_index(), index) - 1

    def lines(self) -> list[str]:
        return [self.line(i) for i in range(self.line_count())]

    # ------ Mutations ------

    def insert(self, index: int, text: str) -> None:
        if not 0 <= index <= len(self):
            raise IndexError(f"Insert position {index} out of range 0..{len(self)}")
        if not text:
            return
        if not self._chunks:
            self._set_chunks(_split_chunks(text))
            return

        chunk_index = self._chunk_at(index)
        chunk = self._chunks[chunk_index]
        offset = index - self._chunk_starts[chunk_index]
        merged = chunk[:offset] + text + chunk[offset:]
        self._set_chunks(
            self._chunks[:chunk_index] + _split_chunks(merged) + self._chunks[chunk_index + 1:]
        )

    def remove(self, start: int, end: int) -> None:
        if not 0 <= start <= end <= len(self):
            raise IndexError(f"Remove range {start}..{end} out of range 0..{len(self)}")
        if start == end:
            return

        first = self._chunk_at(start)
        last = self._chunk_at(end - 1)
        head = self._chunks[first][:start - self._chunk_starts[first]]
        tail = self._chunks[last][end - self._chunk_starts[last]:]
        merged = (head + tail,) if head or tail else ()
        self._set_chunks(self._chunks[:first] + merged + self._chunks[last + 1:])

    def set_text(self, text: str) -> None:
        self._set_chunks(_split_chunks(text))

    # ------ Snapshots ------

    def snapshot(self) -> Snapshot:
        return self._chunks

    def restore(self, snapshot: Snapshot) -> None:
        self._set_chunks(snapshot)
