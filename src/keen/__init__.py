"""Text editing core with lexical highlighting and a language server client."""

__all__ = [
    "adapters",
    "buffer",
    "config",
    "editor",
    "errors",
    "keymaps",
    "language",
    "lsp",
    "runtime",
]

__version__ = "0.1.0"
