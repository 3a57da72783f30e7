"""Single-pass lexical classification of the visible text window.

The highlighter only ever sees the slice of the document that is on screen,
plus a backward character iterator starting at the view. It runs in three
steps:

1. walk backward from the view start to learn whether the view opens inside
   a block comment (whichever of the reversed open/close delimiters matches
   first wins);
2. scan the view once, emitting Comment, Literal, Keyword and Preprocessor
   spans;
3. find the innermost bracket pair around the caret, skipping brackets that
   sit inside comments or string literals.

All offsets are string indices relative to the view text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from keen.config import DEFAULT_BRACKETS, BracketPair
from keen.runtime import telemetry
from keen.text_utils import is_closing_bracket, is_linebreak, is_opening_bracket

from .profiles import Language, LanguageProfile, profile_for


class HighlightCategory(str, Enum):
    NONE = "none"
    VARIABLE = "variable"
    FUNCTION = "function"
    METHOD = "method"
    CLASS = "class"
    ENUM = "enum"
    COMMENT = "comment"
    KEYWORD = "keyword"
    LITERAL = "literal"
    MACRO = "macro"
    PREPROCESSOR = "preprocessor"
    PRIMITIVE = "primitive"


@dataclass(frozen=True, slots=True)
class HighlightSpan:
    start: int
    length: int
    category: HighlightCategory

    @property
    def end(self) -> int:
        return self.start + self.length


@dataclass(frozen=True, slots=True)
class LexicalHighlights:
    spans: Tuple[HighlightSpan, ...] = field(default_factory=tuple)
    enclosing_brackets: Optional[Tuple[int, int]] = None


def starts_inside_block_comment(
    preceding: Iterable[str], block_comment: Optional[Tuple[str, str]]
) -> bool:
    """Return ``True`` when the nearest delimiter behind the view opens a comment.

    ``preceding`` yields characters walking backward from the view start.
    """

    if block_comment is None:
        return False
    opener = block_comment[0][::-1]
    closer = block_comment[1][::-1]
    open_index = close_index = 0
    for char in preceding:
        open_index = _advance(opener, open_index, char)
        if open_index == len(opener):
            return True
        close_index = _advance(closer, close_index, char)
        if close_index == len(closer):
            return False
    return False


def _advance(token: str, index: int, char: str) -> int:
    if char == token[index]:
        return index + 1
    # A mismatch may still begin a fresh match, e.g. "**/" against "/*".
    return 1 if char == token[0] else 0


class _Scanner:
    def __init__(
        self, text: str, profile: LanguageProfile, inside_comment: bool
    ) -> None:
        self.text = text
        self.profile = profile
        self.inside_comment = inside_comment
        self.spans: List[HighlightSpan] = []
        self._identifier_start: Optional[int] = None

    def add(self, start: int, length: int, category: HighlightCategory) -> None:
        if length > 0:
            self.spans.append(HighlightSpan(start, length, category))

    def flush(self, offset: int) -> None:
        start = self._identifier_start
        self._identifier_start = None
        if start is None:
            return
        word = self.text[start:offset]
        prefix = self.profile.preprocessor_prefix
        if self.profile.is_keyword(word):
            self.add(start, offset - start, HighlightCategory.KEYWORD)
        elif prefix and word.startswith(prefix):
            self.add(start, offset - start, HighlightCategory.PREPROCESSOR)

    def run(self) -> None:
        text = self.text
        profile = self.profile
        block = profile.block_comment
        line_comment = profile.line_comment
        quote = profile.string_quote
        end = len(text)
        offset = 0
        while offset < end:
            if self.inside_comment and block and text.startswith(block[1], offset):
                close = offset + len(block[1])
                self.add(0, close, HighlightCategory.COMMENT)
                self.inside_comment = False
                offset = close
                continue
            if self.inside_comment:
                offset += 1
                continue
            if block is not None and text.startswith(block[0], offset):
                self.flush(offset)
                close = text.find(block[1], offset + len(block[0]))
                stop = end if close < 0 else close + len(block[1])
                self.add(offset, stop - offset, HighlightCategory.COMMENT)
                offset = stop
                continue
            if text.startswith(quote, offset):
                self.flush(offset)
                stop = self._string_end(offset + len(quote))
                self.add(offset, stop - offset, HighlightCategory.LITERAL)
                offset = stop
                continue
            if line_comment is not None and text.startswith(line_comment, offset):
                self.flush(offset)
                stop = offset
                while stop < end and not is_linebreak(text[stop]):
                    stop += 1
                self.add(offset, stop - offset, HighlightCategory.COMMENT)
                offset = stop
                continue
            char = text[offset]
            if char.isalnum() or char == "_" or char == "#":
                if self._identifier_start is None:
                    self._identifier_start = offset
            else:
                self.flush(offset)
            offset += 1
        self.flush(end)

    def _string_end(self, offset: int) -> int:
        """Offset just past the closing quote, or of the line break/view end."""

        text = self.text
        quote = self.profile.string_quote
        escape = self.profile.escape_char
        while offset < len(text):
            char = text[offset]
            escaped = offset + 1 < len(text) and not is_linebreak(text[offset + 1])
            if char == escape and escaped:
                offset += 2
                continue
            if text.startswith(quote, offset):
                return offset + len(quote)
            if is_linebreak(char):
                return offset
            offset += 1
        return len(text)


def _masked(spans: Sequence[HighlightSpan], length: int) -> List[bool]:
    mask = [False] * length
    for span in spans:
        if span.category in (HighlightCategory.COMMENT, HighlightCategory.LITERAL):
            for index in range(span.start, min(span.end, length)):
                mask[index] = True
    return mask


def find_enclosing_brackets(
    text: str,
    caret: int,
    spans: Sequence[HighlightSpan] = (),
    brackets: Sequence[BracketPair] = DEFAULT_BRACKETS,
) -> Optional[Tuple[int, int]]:
    """Innermost same-kind bracket pair around view-relative ``caret``.

    Walks backward counting unmatched closers per kind until an opener with
    no pending closer of its kind turns up, then walks forward from that
    opener tracking nesting of the same kind only.
    """

    if caret < 0 or caret > len(text):
        return None
    mask = _masked(spans, len(text))
    closed: Dict[str, int] = {}
    opener: Optional[int] = None
    pair: Optional[BracketPair] = None
    for index in range(caret - 1, -1, -1):
        if mask[index]:
            continue
        char = text[index]
        found = is_opening_bracket(char, brackets)
        if found is not None:
            if closed.get(found[1], 0) > 0:
                closed[found[1]] -= 1
                continue
            opener, pair = index, found
            break
        found = is_closing_bracket(char, brackets)
        if found is not None:
            closed[found[1]] = closed.get(found[1], 0) + 1
    if opener is None or pair is None:
        return None

    depth = 0
    for index in range(opener + 1, len(text)):
        if mask[index]:
            continue
        char = text[index]
        if char == pair[1]:
            if depth == 0:
                return (opener, index)
            depth -= 1
        elif char == pair[0]:
            depth += 1
    return None


def highlight_text(
    text: str,
    view_start: int,
    caret: int,
    language: Language | str | LanguageProfile,
    preceding: Iterable[str] = (),
    *,
    brackets: Sequence[BracketPair] = DEFAULT_BRACKETS,
) -> LexicalHighlights:
    """Classify ``text`` (the view) and locate the brackets around ``caret``.

    ``caret`` is an absolute document offset; ``preceding`` walks backward
    from ``view_start``.
    """

    profile = profile_for(language)
    with telemetry.span(
        "highlight::lexical",
        component="highlighter",
        metadata={"language": profile.identifier, "view_length": len(text)},
    ):
        inside = starts_inside_block_comment(preceding, profile.block_comment)
        scanner = _Scanner(text, profile, inside)
        scanner.run()
        if scanner.inside_comment:
            whole = (
                (HighlightSpan(0, len(text), HighlightCategory.COMMENT),)
                if text
                else ()
            )
            return LexicalHighlights(spans=whole, enclosing_brackets=None)

        spans = tuple(scanner.spans)
        pair = find_enclosing_brackets(text, caret - view_start, spans, brackets)
        return LexicalHighlights(spans=spans, enclosing_brackets=pair)


__all__ = [
    "HighlightCategory",
    "HighlightSpan",
    "LexicalHighlights",
    "find_enclosing_brackets",
    "highlight_text",
    "starts_inside_block_comment",
]
