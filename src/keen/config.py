"""Editor settings and their ``KEEN_*`` environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

ENV_PREFIX = "KEEN_"

BracketPair = tuple[str, str]

DEFAULT_BRACKETS: tuple[BracketPair, ...] = (("(", ")"), ("[", "]"), ("{", "}"))

DEFAULT_LSP_SERVERS: Mapping[str, str] = MappingProxyType(
    {"cpp": "clangd", "rust": "rust-analyzer"}
)

DEFAULT_LSP_MAX_MESSAGE_SIZE = 1024 * 1024


def _env(name: str) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}")


def _env_int(name: str, fallback: int, *, minimum: int = 0) -> int:
    raw = _env(name)
    if raw is None:
        return fallback
    try:
        value = int(raw)
    except ValueError:
        return fallback
    return value if value >= minimum else fallback


def _env_flag(name: str, fallback: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return fallback
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_line_ending(fallback: str) -> str:
    raw = (_env("LINE_ENDING") or "").lower()
    return {"crlf": "\r\n", "lf": "\n", "cr": "\r"}.get(raw, fallback)


@dataclass(frozen=True, slots=True)
class Settings:
    """Static editor configuration shared by every open document."""

    indent_width: int = 4
    brackets: tuple[BracketPair, ...] = DEFAULT_BRACKETS
    mousewheel_lines: int = 3
    caret_blink_ms: int = 500
    default_line_ending: str = "\r\n"
    lsp_enabled: bool = True
    lsp_queue_size: int = 256
    lsp_max_message_size: int = DEFAULT_LSP_MAX_MESSAGE_SIZE
    lsp_servers: Mapping[str, str] = field(default_factory=lambda: DEFAULT_LSP_SERVERS)

    def __post_init__(self) -> None:
        if self.indent_width <= 0:
            raise ValueError("indent_width must be positive")
        if self.lsp_queue_size <= 0:
            raise ValueError("lsp_queue_size must be positive")
        if self.lsp_max_message_size <= 0:
            raise ValueError("lsp_max_message_size must be positive")
        servers = MappingProxyType(dict(self.lsp_servers))
        object.__setattr__(self, "lsp_servers", servers)

    @property
    def indent_unit(self) -> str:
        return " " * self.indent_width

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        servers = dict(defaults.lsp_servers)
        for language in tuple(servers):
            override = _env(f"LSP_{language.upper()}")
            if override is not None:
                servers[language] = override
        return cls(
            indent_width=_env_int("INDENT_WIDTH", defaults.indent_width, minimum=1),
            mousewheel_lines=_env_int(
                "MOUSEWHEEL_LINES", defaults.mousewheel_lines, minimum=1
            ),
            caret_blink_ms=_env_int(
                "CARET_BLINK_MS", defaults.caret_blink_ms, minimum=1
            ),
            default_line_ending=_env_line_ending(defaults.default_line_ending),
            lsp_enabled=_env_flag("LSP_ENABLED", defaults.lsp_enabled),
            lsp_queue_size=_env_int(
                "LSP_QUEUE_SIZE", defaults.lsp_queue_size, minimum=1
            ),
            lsp_max_message_size=_env_int(
                "LSP_MAX_MESSAGE_SIZE", defaults.lsp_max_message_size, minimum=1
            ),
            lsp_servers=servers,
        )


__all__ = [
    "BracketPair",
    "DEFAULT_BRACKETS",
    "DEFAULT_LSP_MAX_MESSAGE_SIZE",
    "DEFAULT_LSP_SERVERS",
    "Settings",
]
