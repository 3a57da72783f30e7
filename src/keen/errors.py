"""Exception types surfaced by the editing core."""

from __future__ import annotations


class KeenError(Exception):
    """Base class for every error raised by keen."""


class DocumentLoadError(KeenError, OSError):
    """Raised when a document cannot be opened or decoded."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ProtocolFramingError(KeenError):
    """Raised when an inbound message is not ``Content-Length`` framed."""

    def __init__(self, message: str, *, header: bytes = b"") -> None:
        super().__init__(message)
        self.header = header


class SubprocessWriteError(KeenError):
    """Raised when a message cannot be written to a language server."""

    def __init__(
        self, message: str, *, client_name: str, method: str | None = None
    ) -> None:
        super().__init__(message)
        self.client_name = client_name
        self.method = method


__all__ = [
    "KeenError",
    "DocumentLoadError",
    "ProtocolFramingError",
    "SubprocessWriteError",
]
