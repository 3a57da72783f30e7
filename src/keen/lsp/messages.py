"""JSON-RPC payload builders for the language server subset keen speaks."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

from keen.buffer.history import BufferDelta

JSONRPC_VERSION = "2.0"
CLIENT_NAME = "Keen"

INITIALIZE = "initialize"
INITIALIZED = "initialized"
DID_OPEN = "textDocument/didOpen"
DID_CHANGE = "textDocument/didChange"
SEMANTIC_TOKENS = "textDocument/semanticTokens/full"

# Per-server ``initializationOptions``; servers not listed get none.
INITIALIZATION_OPTIONS: Mapping[str, Mapping[str, Any]] = MappingProxyType(
    {"clangd": {"clangdFileStatus": True}}
)

# Columns are counted in code points when the server accepts ``utf-32``.
# Without a negotiated encoding the protocol default is ``utf-16``.
POSITION_ENCODINGS: Tuple[str, ...] = ("utf-32", "utf-16")
DEFAULT_POSITION_ENCODING = "utf-16"

# clangd predates ``positionEncodings`` and negotiates through its own field.
CAPABILITY_EXTENSIONS: Mapping[str, Mapping[str, Any]] = MappingProxyType(
    {"clangd": {"offsetEncoding": list(POSITION_ENCODINGS)}}
)


@dataclass(frozen=True, slots=True)
class InitializationRequest:
    path: str

    method = INITIALIZE


@dataclass(frozen=True, slots=True)
class SemanticTokenRequest:
    uri: str
    version: int = 0

    method = SEMANTIC_TOKENS


RequestKind = Union[InitializationRequest, SemanticTokenRequest]


def path_to_uri(path: str | os.PathLike[str]) -> str:
    return Path(os.fspath(path)).resolve().as_uri()


def request(
    request_id: int, method: str, params: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    message: Dict[str, Any] = {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
    }
    if params is not None:
        message["params"] = dict(params)
    return message


def notification(
    method: str, params: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    message: Dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = dict(params)
    return message


def response(request_id: Any, result: Any = None) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def initialize_params(
    server_name: str, root_path: Optional[str] = None
) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "processId": 0,
        "clientInfo": {"name": CLIENT_NAME},
        "rootUri": path_to_uri(root_path) if root_path else None,
        "capabilities": {
            "general": {"positionEncodings": list(POSITION_ENCODINGS)},
            "textDocument": {
                "synchronization": {"didSave": False, "dynamicRegistration": False},
                "semanticTokens": {
                    "requests": {"full": True},
                    "tokenTypes": [],
                    "tokenModifiers": [],
                    "formats": ["relative"],
                },
            },
        },
    }
    params["capabilities"].update(CAPABILITY_EXTENSIONS.get(server_name, {}))
    options = INITIALIZATION_OPTIONS.get(server_name)
    if options is not None:
        params["initializationOptions"] = dict(options)
    return params


def negotiated_position_encoding(result: Any) -> str:
    """Encoding chosen in an ``initialize`` result, defaulting to ``utf-16``."""

    if not isinstance(result, Mapping):
        return DEFAULT_POSITION_ENCODING
    capabilities = result.get("capabilities") or {}
    chosen = capabilities.get("positionEncoding") or result.get("offsetEncoding")
    if chosen in POSITION_ENCODINGS:
        return str(chosen)
    return DEFAULT_POSITION_ENCODING


def initialized_notification() -> Dict[str, Any]:
    return notification(INITIALIZED, {})


def did_open_notification(
    uri: str, language_id: str, text: str, version: int = 0
) -> Dict[str, Any]:
    return notification(
        DID_OPEN,
        {
            "textDocument": {
                "uri": uri,
                "languageId": language_id,
                "version": version,
                "text": text,
            }
        },
    )


def _position(position: Tuple[int, int]) -> Dict[str, int]:
    return {"line": position[0], "character": position[1]}


def full_change(text: str) -> Dict[str, Any]:
    return {"text": text}


def range_change(
    delta: BufferDelta, encoding: str = DEFAULT_POSITION_ENCODING
) -> Dict[str, Any]:
    start, end = delta.positions(encoding)
    return {
        "range": {"start": _position(start), "end": _position(end)},
        "text": delta.text,
    }


def did_change_notification(
    uri: str, version: int, changes: Sequence[Mapping[str, Any]]
) -> Dict[str, Any]:
    """Each entry of ``changes`` applies to the result of the previous one."""

    return notification(
        DID_CHANGE,
        {
            "textDocument": {"uri": uri, "version": version},
            "contentChanges": [dict(change) for change in changes],
        },
    )


def semantic_tokens_params(uri: str) -> Dict[str, Any]:
    return {"textDocument": {"uri": uri}}


def reply_to_server_request(message: Mapping[str, Any]) -> Dict[str, Any]:
    """Minimal answer for a server-initiated request so the server keeps going."""

    method = message.get("method")
    params = message.get("params") or {}
    if method == "workspace/configuration":
        items = params.get("items") or []
        return response(message.get("id"), [None] * len(items))
    return response(message.get("id"), None)


__all__ = [
    "CAPABILITY_EXTENSIONS",
    "CLIENT_NAME",
    "DEFAULT_POSITION_ENCODING",
    "DID_CHANGE",
    "DID_OPEN",
    "INITIALIZATION_OPTIONS",
    "INITIALIZE",
    "INITIALIZED",
    "InitializationRequest",
    "POSITION_ENCODINGS",
    "RequestKind",
    "SEMANTIC_TOKENS",
    "SemanticTokenRequest",
    "did_change_notification",
    "did_open_notification",
    "full_change",
    "initialize_params",
    "initialized_notification",
    "negotiated_position_encoding",
    "notification",
    "path_to_uri",
    "range_change",
    "reply_to_server_request",
    "request",
    "response",
    "semantic_tokens_params",
]
