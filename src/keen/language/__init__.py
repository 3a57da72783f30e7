"""Language profiles, lexical highlighting and semantic token decoding."""

from .highlighter import (
    HighlightCategory,
    HighlightSpan,
    LexicalHighlights,
    find_enclosing_brackets,
    highlight_text,
)
from .profiles import Language, LanguageProfile, profile_for, profile_for_path
from .semantic import SemanticToken, decode_semantic_tokens, semantic_spans

__all__ = [
    "HighlightCategory",
    "HighlightSpan",
    "Language",
    "LanguageProfile",
    "LexicalHighlights",
    "SemanticToken",
    "decode_semantic_tokens",
    "find_enclosing_brackets",
    "highlight_text",
    "profile_for",
    "profile_for_path",
    "semantic_spans",
]
