"""Character sequence storage with a line-start index."""

from __future__ import annotations

import re
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Iterator, List, TextIO

LINE_BREAK = re.compile("\r\n|[\n\r\x0b\x0c\x85\u2028\u2029]")


def _line_starts(text: str) -> List[int]:
    return [0] + [match.end() for match in LINE_BREAK.finditer(text)]


@dataclass(slots=True)
class SequenceStore:
    """Mutable text with O(log n) line <-> character offset conversion.

    A ``\\r\\n`` pair counts as a single line break. The store always has at
    least one line; a trailing break opens an empty last line.
    """

    _text: str = ""
    _starts: List[int] = field(default_factory=lambda: [0])
    version: int = 0

    def __post_init__(self) -> None:
        self._starts = _line_starts(self._text)

    @classmethod
    def from_text(cls, text: str) -> "SequenceStore":
        return cls(_text=text)

    @classmethod
    def from_reader(
        cls, reader: TextIO, *, chunk_size: int = 1 << 16
    ) -> "SequenceStore":
        chunks: List[str] = []
        while True:
            chunk = reader.read(chunk_size)
            if not chunk:
                break
            chunks.append(chunk)
        return cls(_text="".join(chunks))

    def __len__(self) -> int:
        return len(self._text)

    def len_chars(self) -> int:
        return len(self._text)

    def len_lines(self) -> int:
        return len(self._starts)

    def text(self) -> str:
        return self._text

    def _clamp(self, offset: int) -> int:
        return max(0, min(offset, len(self._text)))

    def char(self, offset: int) -> str:
        """Return the character at ``offset`` or ``""`` when out of range."""

        if 0 <= offset < len(self._text):
            return self._text[offset]
        return ""

    def slice(self, start: int, end: int) -> str:
        start, end = self._clamp(start), self._clamp(end)
        if start > end:
            start, end = end, start
        return self._text[start:end]

    def insert(self, offset: int, text: str) -> None:
        if not text:
            return
        offset = self._clamp(offset)
        self._replace(offset, offset, text)

    def remove(self, start: int, end: int) -> str:
        """Remove ``[start, end)`` and return the removed text."""

        start, end = self._clamp(start), self._clamp(end)
        if start > end:
            start, end = end, start
        removed = self._text[start:end]
        if removed:
            self._replace(start, end, "")
        return removed

    def _replace(self, start: int, end: int, text: str) -> None:
        self._text = self._text[:start] + text + self._text[end:]
        # A break adjacent to the edit can merge into (or split from) a CRLF
        # pair, so the index is rebuilt from the line before the edit.
        line = max(0, self.char_to_line(start) - 1)
        resume = self._starts[line]
        self._starts = self._starts[: line + 1] + [
            match.end() for match in LINE_BREAK.finditer(self._text, resume)
        ]
        self.version += 1

    def line_to_char(self, line: int) -> int:
        """Offset of the first character of ``line``; past-the-end clamps."""

        if line <= 0:
            return 0
        if line >= len(self._starts):
            return len(self._text)
        return self._starts[line]

    def char_to_line(self, offset: int) -> int:
        offset = self._clamp(offset)
        return bisect_right(self._starts, offset) - 1

    def line(self, index: int) -> str:
        """Text of line ``index`` including its line break."""

        return self._text[self.line_to_char(index) : self.line_to_char(index + 1)]

    def line_break_width(self, index: int) -> int:
        if index < 0 or index >= len(self._starts) - 1:
            return 0
        end = self._starts[index + 1]
        if end >= 2 and self._text[end - 2 : end] == "\r\n":
            return 2
        return 1

    def line_content_length(self, index: int) -> int:
        if index < 0 or index >= len(self._starts):
            return 0
        span = self.line_to_char(index + 1) - self.line_to_char(index)
        return span - self.line_break_width(index)

    def chars_at(self, offset: int) -> Iterator[str]:
        """Iterate forward starting with the character at ``offset``."""

        text = self._text
        for index in range(self._clamp(offset), len(text)):
            yield text[index]

    def chars_before(self, offset: int) -> Iterator[str]:
        """Iterate backward starting with the character before ``offset``."""

        text = self._text
        for index in range(self._clamp(offset) - 1, -1, -1):
            yield text[index]

    def detect_line_ending(self) -> str | None:
        match = LINE_BREAK.search(self._text)
        return match.group(0) if match else None


__all__ = ["LINE_BREAK", "SequenceStore"]
