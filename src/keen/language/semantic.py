"""Decoding of server semantic tokens into view-relative highlight spans."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Iterable, List, Mapping, Sequence, Tuple

from keen.text_utils import utf16_to_index

if TYPE_CHECKING:  # pragma: no cover
    from keen.buffer.sequence import SequenceStore

from .highlighter import HighlightCategory, HighlightSpan

# Keys are lower-cased token type names; anything missing renders unstyled.
TOKEN_CATEGORIES: Mapping[str, HighlightCategory] = MappingProxyType(
    {
        "variable": HighlightCategory.VARIABLE,
        "localvariable": HighlightCategory.VARIABLE,
        "enummember": HighlightCategory.VARIABLE,
        "function": HighlightCategory.FUNCTION,
        "method": HighlightCategory.METHOD,
        "staticmethod": HighlightCategory.METHOD,
        "class": HighlightCategory.CLASS,
        "struct": HighlightCategory.CLASS,
        "enum": HighlightCategory.ENUM,
        "macro": HighlightCategory.MACRO,
        "comment": HighlightCategory.COMMENT,
        "keyword": HighlightCategory.KEYWORD,
        "string": HighlightCategory.LITERAL,
        "number": HighlightCategory.LITERAL,
        "primitive": HighlightCategory.PRIMITIVE,
    }
)


@dataclass(frozen=True, slots=True)
class SemanticToken:
    line: int
    start: int
    length: int
    token_type: str
    category: HighlightCategory


def category_for(token_type: str) -> HighlightCategory:
    return TOKEN_CATEGORIES.get(token_type.lower(), HighlightCategory.NONE)


def decode_semantic_tokens(
    data: Sequence[int], legend: Sequence[str]
) -> Tuple[SemanticToken, ...]:
    """Expand the relative five-integer encoding into absolute tokens.

    Each group is ``(delta_line, delta_start, length, type, modifiers)``;
    ``delta_start`` is relative to the previous token only on the same line.
    A trailing partial group is ignored.
    """

    tokens: List[SemanticToken] = []
    line = start = 0
    usable = len(data) - len(data) % 5
    for index in range(0, usable, 5):
        delta_line, delta_start, length, type_index = data[index : index + 4]
        if delta_line:
            line += delta_line
            start = delta_start
        else:
            start += delta_start
        name = legend[type_index] if 0 <= type_index < len(legend) else ""
        tokens.append(SemanticToken(line, start, length, name, category_for(name)))
    return tuple(tokens)


def semantic_spans(
    tokens: Iterable[SemanticToken],
    sequence: SequenceStore,
    view_start: int,
    view_end: int,
    encoding: str = "utf-32",
) -> Tuple[HighlightSpan, ...]:
    """Project document tokens onto the view ``[view_start, view_end)``.

    With ``encoding="utf-16"`` token columns count UTF-16 code units and are
    mapped back to character offsets within their line.
    """

    spans: List[HighlightSpan] = []
    line_count = sequence.len_lines()
    for token in tokens:
        if token.category is HighlightCategory.NONE or token.line >= line_count:
            continue
        line_start = sequence.line_to_char(token.line)
        line_end = line_start + sequence.line_content_length(token.line)
        if encoding == "utf-16":
            line_text = sequence.slice(line_start, line_end)
            start = line_start + utf16_to_index(line_text, token.start)
            end = line_start + utf16_to_index(line_text, token.start + token.length)
        else:
            start = min(line_start + token.start, line_end)
            end = min(start + token.length, line_end)
        start, end = max(start, view_start), min(end, view_end)
        if start < end:
            spans.append(HighlightSpan(start - view_start, end - start, token.category))
    return tuple(spans)


__all__ = [
    "SemanticToken",
    "TOKEN_CATEGORIES",
    "category_for",
    "decode_semantic_tokens",
    "semantic_spans",
]
