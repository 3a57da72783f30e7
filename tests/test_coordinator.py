import json
from typing import Any, Dict, List, Tuple

import pytest

from keen.buffer import TextBuffer
from keen.config import Settings
from keen.language import HighlightCategory, HighlightSpan
from keen.lsp import LSPCoordinator, LSPCrash, LSPResponse, SemanticTokenRequest
from keen.lsp.messages import path_to_uri

LEGEND = ["variable", "function", "class"]


def respond(coordinator: LSPCoordinator, payload: Dict[str, Any]) -> int:
    coordinator.events.put(LSPResponse("clangd", json.dumps(payload).encode()))
    return coordinator.drain()


def tokens_response(request_id: int, data: List[int]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "result": {"data": data}}


def methods(process) -> List[str]:
    return [message.get("method", "<response>") for message in process.sent()]


@pytest.fixture
def crashes() -> List[Tuple[str, str]]:
    return []


@pytest.fixture
def coordinator(fake_popen, tmp_path, crashes):
    instance = LSPCoordinator(
        popen=fake_popen,
        root_path=str(tmp_path),
        on_crash=lambda client, reason: crashes.append((client, reason)),
    )
    yield instance
    instance.shutdown()


@pytest.fixture
def buffer(tmp_path) -> TextBuffer:
    return TextBuffer.from_text("int main() {}", 5, 40, path=str(tmp_path / "main.cpp"))


def initialize(coordinator: LSPCoordinator, **capabilities: Any) -> None:
    respond(
        coordinator,
        {
            "jsonrpc": "2.0",
            "id": 0,
            "result": {
                "capabilities": {
                    "semanticTokensProvider": {
                        "legend": {"tokenTypes": LEGEND, "tokenModifiers": []}
                    },
                    **capabilities,
                }
            },
        },
    )


def test_open_document_starts_server(coordinator, fake_popen, buffer) -> None:
    document = coordinator.open_document(buffer)

    assert document is not None
    assert document.uri == path_to_uri(buffer.path)
    assert not document.opened
    assert fake_popen.last.args == ["clangd"]
    assert methods(fake_popen.last) == ["initialize"]
    assert buffer.track_changes
    session = coordinator.sessions["cpp"]
    assert not session.ready
    assert session.legend[:3] == ("variable", "localVariable", "parameter")


def test_initialize_response_announces_documents(
    coordinator, fake_popen, buffer
) -> None:
    document = coordinator.open_document(buffer)

    initialize(coordinator)

    session = coordinator.sessions["cpp"]
    assert session.ready
    assert session.legend == tuple(LEGEND)
    assert document.opened
    assert methods(fake_popen.last) == [
        "initialize",
        "initialized",
        "textDocument/didOpen",
        "textDocument/semanticTokens/full",
    ]
    did_open = fake_popen.last.sent()[2]["params"]["textDocument"]
    assert did_open == {
        "uri": document.uri,
        "languageId": "cpp",
        "version": 0,
        "text": "int main() {}",
    }
    assert session.client.pending == {1: SemanticTokenRequest(document.uri, 0)}


def test_semantic_tokens_are_stored(coordinator, buffer) -> None:
    coordinator.open_document(buffer)
    initialize(coordinator)
    buffer.dirty = False

    respond(coordinator, tokens_response(1, [0, 4, 4, 1, 0]))

    document = coordinator.document_for(buffer)
    assert document.tokens_version == 0
    assert [token.token_type for token in document.tokens] == ["function"]
    assert buffer.dirty
    assert coordinator.semantic_spans_for(buffer) == (
        HighlightSpan(4, 4, HighlightCategory.FUNCTION),
    )


def test_edits_are_synced_and_stale_tokens_dropped(
    coordinator, fake_popen, buffer
) -> None:
    coordinator.open_document(buffer)
    initialize(coordinator)
    buffer.caret.collapse(0)
    buffer.insert_chars("x")

    assert coordinator.sync_changes() == 1
    assert coordinator.sync_changes() == 0

    document = coordinator.document_for(buffer)
    assert document.version == 1
    change = fake_popen.last.sent()[4]
    assert change["method"] == "textDocument/didChange"
    assert change["params"] == {
        "textDocument": {"uri": document.uri, "version": 1},
        "contentChanges": [
            {
                "range": {
                    "start": {"line": 0, "character": 0},
                    "end": {"line": 0, "character": 0},
                },
                "text": "x",
            }
        ],
    }

    respond(coordinator, tokens_response(1, [0, 4, 4, 1, 0]))
    assert document.tokens == ()

    respond(coordinator, tokens_response(2, [0, 5, 4, 1, 0]))
    assert document.tokens_version == 1
    assert document.tokens[0].start == 5


def test_changes_before_ready_are_covered_by_did_open(
    coordinator, fake_popen, buffer
) -> None:
    coordinator.open_document(buffer)
    buffer.insert_chars("// ")

    assert coordinator.sync_changes() == 0
    initialize(coordinator)

    sent = fake_popen.last.sent()
    assert sent[2]["params"]["textDocument"]["text"] == "// int main() {}"
    assert coordinator.sync_changes() == 0


def test_error_response_is_consumed(coordinator, buffer) -> None:
    coordinator.open_document(buffer)
    initialize(coordinator)

    handled = respond(
        coordinator,
        {"jsonrpc": "2.0", "id": 1, "error": {"code": -32601, "message": "nope"}},
    )

    assert handled == 1
    assert coordinator.sessions["cpp"].client.pending == {}
    assert coordinator.document_for(buffer).tokens == ()


def test_invalid_and_unknown_messages_are_ignored(coordinator, buffer) -> None:
    coordinator.open_document(buffer)
    coordinator.events.put(LSPResponse("clangd", b"{not json"))
    coordinator.events.put(LSPResponse("unknown-server", b"{}"))
    respond(coordinator, {"jsonrpc": "2.0", "id": 99, "result": None})

    assert not coordinator.sessions["cpp"].ready


def test_server_requests_get_an_answer(coordinator, fake_popen, buffer) -> None:
    coordinator.open_document(buffer)

    respond(
        coordinator,
        {
            "jsonrpc": "2.0",
            "id": 7,
            "method": "workspace/configuration",
            "params": {"items": [{}, {}]},
        },
    )

    assert fake_popen.last.sent()[-1] == {
        "jsonrpc": "2.0",
        "id": 7,
        "result": [None, None],
    }


def test_crash_is_reported(coordinator, crashes, buffer) -> None:
    coordinator.open_document(buffer)

    coordinator.events.put(LSPCrash("clangd", "clangd closed its output"))
    coordinator.drain()

    assert crashes == [("clangd", "clangd closed its output")]


def test_restart_replaces_session(coordinator, fake_popen, buffer) -> None:
    coordinator.open_document(buffer)
    initialize(coordinator)
    old_process = fake_popen.last

    assert coordinator.restart("cpp")

    assert old_process.returncode == -15
    assert len(fake_popen.processes) == 2
    document = coordinator.document_for(buffer)
    assert not document.opened
    assert document.tokens_version == -1
    assert not coordinator.sessions["cpp"].ready
    assert coordinator.restart("rust") is False


def test_reopen_after_crash_starts_new_server(
    coordinator, fake_popen, buffer, tmp_path
) -> None:
    coordinator.open_document(buffer)
    coordinator.sessions["cpp"].client.terminate()
    other = TextBuffer.from_text("int y;", path=str(tmp_path / "other.cpp"))

    coordinator.open_document(other)

    assert len(fake_popen.processes) == 2
    assert set(coordinator.sessions["cpp"].documents) == {
        path_to_uri(buffer.path),
        path_to_uri(other.path),
    }


def test_close_document_forgets_it(coordinator, buffer) -> None:
    coordinator.open_document(buffer)

    coordinator.close_document(buffer)

    assert coordinator.document_for(buffer) is None
    assert not buffer.track_changes
    assert coordinator.semantic_spans_for(buffer) == ()


def test_no_server_for_disabled_or_plain(fake_popen, tmp_path, buffer) -> None:
    disabled = LSPCoordinator(Settings(lsp_enabled=False), popen=fake_popen)
    plain = LSPCoordinator(popen=fake_popen)

    assert disabled.open_document(buffer) is None
    assert plain.open_document(TextBuffer.from_text("notes")) is None
    assert fake_popen.processes == []


def test_missing_server_binary_is_not_fatal(buffer) -> None:
    def missing(args, **kwargs):
        raise FileNotFoundError(args[0])

    coordinator = LSPCoordinator(popen=missing)

    assert coordinator.open_document(buffer) is None
    assert coordinator.sessions == {}


@pytest.fixture
def emoji_buffer(tmp_path) -> TextBuffer:
    buffer = TextBuffer.from_text(
        "\U0001F600 foo();\n", 5, 40, path=str(tmp_path / "emoji.cpp")
    )
    buffer.caret.collapse(2)
    return buffer


def sync_insert(coordinator: LSPCoordinator, buffer: TextBuffer, process) -> Dict:
    buffer.insert_chars("y")
    assert coordinator.sync_changes() == 1
    change = [m for m in process.sent() if m.get("method") == "textDocument/didChange"]
    return change[-1]["params"]["contentChanges"][0]["range"]["start"]


def test_changes_use_utf16_columns_by_default(
    coordinator, fake_popen, emoji_buffer
) -> None:
    coordinator.open_document(emoji_buffer)
    initialize(coordinator)

    assert coordinator.sessions["cpp"].position_encoding == "utf-16"
    start = sync_insert(coordinator, emoji_buffer, fake_popen.last)
    assert start == {"line": 0, "character": 3}


def test_changes_use_code_points_when_negotiated(
    coordinator, fake_popen, emoji_buffer
) -> None:
    coordinator.open_document(emoji_buffer)
    initialize(coordinator, positionEncoding="utf-32")

    assert coordinator.sessions["cpp"].position_encoding == "utf-32"
    start = sync_insert(coordinator, emoji_buffer, fake_popen.last)
    assert start == {"line": 0, "character": 2}


def test_clangd_offset_encoding_is_honoured(coordinator, emoji_buffer) -> None:
    coordinator.open_document(emoji_buffer)

    respond(
        coordinator,
        {
            "jsonrpc": "2.0",
            "id": 0,
            "result": {"capabilities": {}, "offsetEncoding": "utf-32"},
        },
    )

    assert coordinator.sessions["cpp"].position_encoding == "utf-32"


def test_utf16_token_columns_map_to_characters(coordinator, emoji_buffer) -> None:
    coordinator.open_document(emoji_buffer)
    initialize(coordinator)

    respond(coordinator, tokens_response(1, [0, 3, 3, 1, 0]))

    assert coordinator.semantic_spans_for(emoji_buffer) == (
        HighlightSpan(2, 3, HighlightCategory.FUNCTION),
    )


def test_crash_stops_change_tracking(coordinator, fake_popen, buffer) -> None:
    coordinator.open_document(buffer)
    initialize(coordinator)
    buffer.insert_chars("x")

    fake_popen.last.close_output()
    coordinator.events.put(coordinator.events.get(timeout=2))
    coordinator.drain()

    assert not buffer.track_changes
    buffer.insert_chars("y")
    assert buffer.drain_changes() == []


def test_failed_spawn_leaves_buffer_untracked(buffer) -> None:
    def missing(args, **kwargs):
        raise FileNotFoundError(args[0])

    LSPCoordinator(popen=missing).open_document(buffer)
    buffer.insert_chars("x")

    assert not buffer.track_changes
    assert buffer.drain_changes() == []


def test_message_size_limit_reaches_client(fake_popen, buffer) -> None:
    coordinator = LSPCoordinator(Settings(lsp_max_message_size=16), popen=fake_popen)

    coordinator.open_document(buffer)

    assert coordinator.sessions["cpp"].client.max_message_size == 16
    coordinator.shutdown()
