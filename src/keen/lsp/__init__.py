"""Language server protocol client: framing, payloads, sessions."""

from .client import LSPClient, LSPCrash, LSPEvent, LSPResponse, SessionState
from .coordinator import LanguageSession, LSPCoordinator, TrackedDocument
from .framing import decode_message, encode_message, parse_header, read_message
from .messages import InitializationRequest, RequestKind, SemanticTokenRequest

__all__ = [
    "InitializationRequest",
    "LSPClient",
    "LSPCoordinator",
    "LSPCrash",
    "LSPEvent",
    "LSPResponse",
    "LanguageSession",
    "RequestKind",
    "SemanticTokenRequest",
    "SessionState",
    "TrackedDocument",
    "decode_message",
    "encode_message",
    "parse_header",
    "read_message",
]
