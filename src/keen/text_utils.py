"""Character classification helpers shared by navigation and highlighting."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Iterator, Optional

from keen.config import DEFAULT_BRACKETS, BracketPair

LINE_BREAK_CHARS = frozenset("\n\r\x0b\x0c\x85\u2028\u2029")


class CharType(str, Enum):
    """Classes used by word-boundary scans."""

    WORD = "word"
    PUNCTUATION = "punctuation"
    LINEBREAK = "linebreak"


def is_word(char: str) -> bool:
    # Underscore belongs to words so snake_case identifiers move as one unit.
    return char.isalnum() or char == "_"


def is_whitespace(char: str) -> bool:
    return char == " " or char == "\t"


def is_linebreak(char: str) -> bool:
    return char in LINE_BREAK_CHARS


def get_char_type(char: str) -> CharType:
    if is_word(char):
        return CharType.WORD
    if is_linebreak(char):
        return CharType.LINEBREAK
    return CharType.PUNCTUATION


def boundary_count(chars: Iterable[str]) -> int:
    """Count leading characters of ``chars`` that share the first one's class."""

    iterator: Iterator[str] = iter(chars)
    first = next(iterator, None)
    if first is None:
        return 0
    kind = get_char_type(first)
    count = 1
    for char in iterator:
        if get_char_type(char) is not kind:
            break
        count += 1
    return count


def is_opening_bracket(
    char: str, brackets: Iterable[BracketPair] = DEFAULT_BRACKETS
) -> Optional[BracketPair]:
    for pair in brackets:
        if char == pair[0]:
            return pair
    return None


def is_closing_bracket(
    char: str, brackets: Iterable[BracketPair] = DEFAULT_BRACKETS
) -> Optional[BracketPair]:
    for pair in brackets:
        if char == pair[1]:
            return pair
    return None


def leading_whitespace(line: str) -> str:
    stripped = line.lstrip(" \t")
    return line[: len(line) - len(stripped)]


def utf16_length(text: str) -> int:
    """Number of UTF-16 code units in ``text``."""

    return len(text) + sum(1 for char in text if ord(char) > 0xFFFF)


def utf16_to_index(text: str, units: int) -> int:
    """Index into ``text`` of the character starting at UTF-16 offset ``units``.

    An offset landing inside a surrogate pair resolves to the character after
    it; offsets past the end clamp to ``len(text)``.
    """

    count = 0
    for index, char in enumerate(text):
        if count >= units:
            return index
        count += 2 if ord(char) > 0xFFFF else 1
    return len(text)


__all__ = [
    "CharType",
    "LINE_BREAK_CHARS",
    "boundary_count",
    "get_char_type",
    "is_closing_bracket",
    "is_linebreak",
    "is_opening_bracket",
    "is_whitespace",
    "is_word",
    "leading_whitespace",
    "utf16_length",
    "utf16_to_index",
]
