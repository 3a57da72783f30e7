"""Per-language lexical tables, selected once when a document is opened."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Tuple

CPP_KEYWORDS = frozenset(
    {
        "alignas", "alignof", "and", "and_eq", "asm", "auto", "bitand", "bitor",
        "bool", "break", "case", "catch", "char", "char8_t", "char16_t",
        "char32_t", "class", "compl", "concept", "const", "consteval",
        "constexpr", "constinit", "const_cast", "continue", "co_await",
        "co_return", "co_yield", "decltype", "default", "delete", "do",
        "double", "dynamic_cast", "else", "enum", "explicit", "export",
        "extern", "false", "float", "for", "friend", "goto", "if", "inline",
        "int", "long", "mutable", "namespace", "new", "noexcept", "not",
        "not_eq", "nullptr", "operator", "or", "or_eq", "private", "protected",
        "public", "register", "reinterpret_cast", "requires", "return", "short",
        "signed", "sizeof", "static", "static_assert", "static_cast", "struct",
        "switch", "template", "this", "thread_local", "throw", "true", "try",
        "typedef", "typeid", "typename", "union", "unsigned", "using",
        "virtual", "void", "volatile", "wchar_t", "while", "xor", "xor_eq",
    }
)

RUST_KEYWORDS = frozenset(
    {
        "as", "break", "const", "continue", "crate", "else", "enum", "extern",
        "false", "fn", "for", "if", "impl", "in", "let", "loop", "match", "mod",
        "move", "mut", "pub", "ref", "return", "self", "Self", "static",
        "struct", "super", "trait", "true", "type", "unsafe", "use", "where",
        "while", "async", "await", "dyn",
    }
)

# Token type legends as advertised by each server, in index order. Used until
# the initialize response supplies the real legend.
CLANGD_TOKEN_TYPES: Tuple[str, ...] = (
    "variable", "localVariable", "parameter", "function", "method",
    "staticMethod", "field", "staticField", "class", "enum", "enumConstant",
    "typedef", "dependentType", "dependentName", "namespace",
    "templateParameter", "concept", "primitive", "macro", "inactiveCode",
)

RUST_ANALYZER_TOKEN_TYPES: Tuple[str, ...] = (
    "comment", "keyword", "string", "number", "regexp", "operator", "namespace",
    "type", "struct", "class", "interface", "enum", "typeParameter", "function",
    "member", "property", "macro", "variable", "parameter", "label",
    "attribute", "builtinType", "enumMember", "lifetime", "typeAlias", "union",
    "unresolvedReference",
)


class Language(str, Enum):
    CPP = "cpp"
    RUST = "rust"
    PLAIN = "plain"


@dataclass(frozen=True, slots=True)
class LanguageProfile:
    """Keyword set, delimiters and language server for one language."""

    language: Language
    extensions: FrozenSet[str] = frozenset()
    keywords: FrozenSet[str] = frozenset()
    line_comment: Optional[str] = "//"
    block_comment: Optional[Tuple[str, str]] = ("/*", "*/")
    string_quote: str = '"'
    escape_char: str = "\\"
    preprocessor_prefix: Optional[str] = None
    server: Optional[str] = None
    default_legend: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def identifier(self) -> str:
        return self.language.value

    def is_keyword(self, word: str) -> bool:
        return word in self.keywords


CPP_PROFILE = LanguageProfile(
    language=Language.CPP,
    extensions=frozenset({"c", "h", "cpp", "hpp", "cxx"}),
    keywords=CPP_KEYWORDS,
    preprocessor_prefix="#",
    server="clangd",
    default_legend=CLANGD_TOKEN_TYPES,
)

RUST_PROFILE = LanguageProfile(
    language=Language.RUST,
    extensions=frozenset({"rs"}),
    keywords=RUST_KEYWORDS,
    server="rust-analyzer",
    default_legend=RUST_ANALYZER_TOKEN_TYPES,
)

PLAIN_PROFILE = LanguageProfile(
    language=Language.PLAIN,
    line_comment=None,
    block_comment=None,
)

PROFILES: Mapping[Language, LanguageProfile] = MappingProxyType(
    {
        Language.CPP: CPP_PROFILE,
        Language.RUST: RUST_PROFILE,
        Language.PLAIN: PLAIN_PROFILE,
    }
)


def profile_for(language: Language | str | LanguageProfile) -> LanguageProfile:
    if isinstance(language, LanguageProfile):
        return language
    try:
        return PROFILES[Language(language)]
    except ValueError:
        return PLAIN_PROFILE


def profile_for_path(path: str | os.PathLike[str]) -> LanguageProfile:
    """Pick a profile from the file extension; unknown extensions are plain text."""

    extension = os.path.splitext(os.fspath(path))[1].lstrip(".").lower()
    for profile in PROFILES.values():
        if extension in profile.extensions:
            return profile
    return PLAIN_PROFILE


__all__ = [
    "CLANGD_TOKEN_TYPES",
    "CPP_KEYWORDS",
    "CPP_PROFILE",
    "Language",
    "LanguageProfile",
    "PLAIN_PROFILE",
    "PROFILES",
    "RUST_ANALYZER_TOKEN_TYPES",
    "RUST_KEYWORDS",
    "RUST_PROFILE",
    "profile_for",
    "profile_for_path",
]
