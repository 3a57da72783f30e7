"""Host-side pairing of language server responses with open documents."""

from __future__ import annotations

import json
import queue
import subprocess
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from keen.buffer import TextBuffer
from keen.config import Settings
from keen.errors import SubprocessWriteError
from keen.language.highlighter import HighlightSpan
from keen.language.semantic import (
    SemanticToken,
    decode_semantic_tokens,
    semantic_spans,
)
from keen.runtime import telemetry

from .client import (
    LSPClient,
    LSPCrash,
    LSPEvent,
    LSPResponse,
    PopenFactory,
    SessionState,
)
from .messages import (
    DEFAULT_POSITION_ENCODING,
    InitializationRequest,
    SemanticTokenRequest,
    negotiated_position_encoding,
    path_to_uri,
    range_change,
)

CrashCallback = Callable[[str, str], None]


@dataclass(slots=True)
class TrackedDocument:
    buffer: TextBuffer
    uri: str
    version: int = 0
    opened: bool = False
    tokens: Tuple[SemanticToken, ...] = ()
    tokens_version: int = -1


@dataclass(slots=True)
class LanguageSession:
    language: str
    client: LSPClient
    legend: Tuple[str, ...] = ()
    position_encoding: str = DEFAULT_POSITION_ENCODING
    documents: Dict[str, TrackedDocument] = field(default_factory=dict)

    @property
    def ready(self) -> bool:
        return self.client.state is SessionState.READY


def _legend_from(result: Any) -> Tuple[str, ...]:
    if not isinstance(result, Mapping):
        return ()
    provider = (result.get("capabilities") or {}).get("semanticTokensProvider") or {}
    legend = provider.get("legend") or {}
    return tuple(str(name) for name in legend.get("tokenTypes") or ())


def _release(buffer: TextBuffer) -> None:
    buffer.track_changes = False
    buffer.drain_changes()


class LSPCoordinator:
    """Owns one session per language and drains the shared event queue.

    Everything here runs on the host thread; the only object shared with the
    reader threads is ``events``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        events: Optional["queue.Queue[LSPEvent]"] = None,
        popen: PopenFactory = subprocess.Popen,
        root_path: Optional[str] = None,
        on_crash: Optional[CrashCallback] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.events: "queue.Queue[LSPEvent]" = events or queue.Queue(
            maxsize=self.settings.lsp_queue_size
        )
        self.root_path = root_path
        self.on_crash = on_crash
        self.sessions: Dict[str, LanguageSession] = {}
        self._popen = popen

    # ------------------------------------------------------------------
    # Sessions and documents

    def _session_for_client(self, client_name: str) -> Optional[LanguageSession]:
        for session in self.sessions.values():
            if session.client.client_name == client_name:
                return session
        return None

    def _start_session(
        self, language: str, document_path: str
    ) -> Optional[LanguageSession]:
        server = self.settings.lsp_servers.get(language)
        if not server:
            return None
        try:
            client = LSPClient(
                server,
                self.events,
                document_path=document_path,
                root_path=self.root_path,
                popen=self._popen,
                max_message_size=self.settings.lsp_max_message_size,
            )
        except (OSError, SubprocessWriteError) as exc:
            telemetry.record_event(
                "lsp.spawn_failed",
                level="warning",
                data={"language": language, "server": server, "reason": str(exc)},
            )
            return None
        session = LanguageSession(language=language, client=client)
        self.sessions[language] = session
        return session

    def open_document(self, buffer: TextBuffer) -> Optional[TrackedDocument]:
        """Track ``buffer``; starts its language's server on first use."""

        if not self.settings.lsp_enabled:
            return None
        language = buffer.language
        if language not in self.settings.lsp_servers:
            return None

        session = self.sessions.get(language)
        if session is None or not session.client.is_alive:
            previous = session.documents if session is not None else {}
            session = self._start_session(language, buffer.path)
            if session is None:
                return None
            session.documents.update(previous)
            session.legend = buffer.profile.default_legend

        document = TrackedDocument(buffer=buffer, uri=path_to_uri(buffer.path))
        session.documents[document.uri] = document
        buffer.track_changes = True
        buffer.drain_changes()
        if session.ready:
            self._announce(session, document)
        return document

    def close_document(self, buffer: TextBuffer) -> None:
        uri = path_to_uri(buffer.path)
        for session in self.sessions.values():
            session.documents.pop(uri, None)
        _release(buffer)

    def document_for(self, buffer: TextBuffer) -> Optional[TrackedDocument]:
        session = self.sessions.get(buffer.language)
        if session is None:
            return None
        return session.documents.get(path_to_uri(buffer.path))

    def restart(self, language: str) -> bool:
        """Replace a crashed or hung session, re-opening its documents."""

        old = self.sessions.pop(language, None)
        if old is None or not old.documents:
            return False
        old.client.terminate()
        first = next(iter(old.documents.values()))
        session = self._start_session(language, first.buffer.path)
        if session is None:
            for document in old.documents.values():
                _release(document.buffer)
            return False
        session.legend = first.buffer.profile.default_legend
        for document in old.documents.values():
            document.opened = False
            document.tokens = ()
            document.tokens_version = -1
            session.documents[document.uri] = document
        telemetry.record_event("lsp.restart", data={"language": language})
        return True

    def shutdown(self) -> None:
        for session in self.sessions.values():
            session.client.terminate()
            for document in session.documents.values():
                _release(document.buffer)
        self.sessions.clear()

    # ------------------------------------------------------------------
    # Outbound

    def _guarded(self, session: LanguageSession, action: Callable[[], Any]) -> bool:
        try:
            action()
        except SubprocessWriteError as exc:
            telemetry.record_event(
                "lsp.write_failed",
                level="error",
                data={
                    "language": session.language,
                    "client": exc.client_name,
                    "method": exc.method or "",
                    "reason": str(exc),
                },
            )
            return False
        return True

    def _announce(self, session: LanguageSession, document: TrackedDocument) -> None:
        client = session.client
        buffer = document.buffer
        buffer.track_changes = True
        buffer.drain_changes()
        opened = self._guarded(
            session,
            lambda: client.send_did_open(
                document.uri, buffer.language, buffer.text, document.version
            ),
        )
        if opened:
            document.opened = True
            self.request_tokens(session, document)

    def request_tokens(
        self, session: LanguageSession, document: TrackedDocument
    ) -> None:
        self._guarded(
            session,
            lambda: session.client.send_semantic_tokens_request(
                document.uri, document.version
            ),
        )

    def sync_changes(self) -> int:
        """Send pending buffer edits as incremental ``didChange`` notifications."""

        sent = 0
        for session in self.sessions.values():
            if not session.ready:
                continue
            for document in session.documents.values():
                changes = document.buffer.drain_changes()
                if not changes or not document.opened:
                    continue
                document.version += 1
                encoding = session.position_encoding
                payload = [range_change(delta, encoding) for delta in changes]
                if self._guarded(
                    session,
                    lambda: session.client.send_did_change(
                        document.uri, document.version, payload
                    ),
                ):
                    sent += 1
                    self.request_tokens(session, document)
        return sent

    # ------------------------------------------------------------------
    # Inbound

    def drain(self) -> int:
        """Process every queued event without blocking; returns how many."""

        handled = 0
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return handled
            handled += 1
            if isinstance(event, LSPCrash):
                self._handle_crash(event)
            elif isinstance(event, LSPResponse):
                self._handle_response(event)

    def _handle_crash(self, event: LSPCrash) -> None:
        session = self._session_for_client(event.client_name)
        language = session.language if session is not None else ""
        if session is not None and session.client.state is SessionState.CRASHED:
            for document in session.documents.values():
                _release(document.buffer)
        telemetry.record_event(
            "lsp.session_lost",
            level="error",
            data={
                "client": event.client_name,
                "language": language,
                "reason": event.reason,
            },
        )
        if self.on_crash is not None:
            self.on_crash(event.client_name, event.reason)

    def _handle_response(self, event: LSPResponse) -> None:
        session = self._session_for_client(event.client_name)
        if session is None:
            return
        try:
            message = json.loads(event.payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            telemetry.record_event(
                "lsp.invalid_json",
                level="warning",
                data={"client": event.client_name, "reason": str(exc)},
            )
            return
        if not isinstance(message, dict):
            return

        if "method" in message:
            if "id" in message:
                self._guarded(session, lambda: session.client.send_response(message))
            else:
                telemetry.record_event(
                    "lsp.notification_received",
                    level="debug",
                    data={"client": event.client_name, "method": message["method"]},
                )
            return

        request_id = message.get("id")
        if not isinstance(request_id, int):
            return
        kind = session.client.pop_request(request_id)
        if kind is None:
            return
        if "error" in message:
            error = message.get("error") or {}
            telemetry.record_event(
                "lsp.error",
                level="warning",
                data={
                    "client": event.client_name,
                    "id": request_id,
                    "code": error.get("code", ""),
                    "message": error.get("message", ""),
                },
            )
            return

        result = message.get("result")
        if isinstance(kind, InitializationRequest):
            self._on_initialized(session, result)
        elif isinstance(kind, SemanticTokenRequest):
            self._on_semantic_tokens(session, kind, result)

    def _on_initialized(self, session: LanguageSession, result: Any) -> None:
        legend = _legend_from(result)
        if legend:
            session.legend = legend
        session.position_encoding = negotiated_position_encoding(result)
        session.client.mark_ready()
        telemetry.record_event(
            "lsp.ready",
            data={
                "client": session.client.client_name,
                "legend": len(session.legend),
                "encoding": session.position_encoding,
            },
        )
        if not self._guarded(session, session.client.send_initialized):
            return
        for document in list(session.documents.values()):
            self._announce(session, document)

    def _on_semantic_tokens(
        self, session: LanguageSession, kind: SemanticTokenRequest, result: Any
    ) -> None:
        document = session.documents.get(kind.uri)
        if document is None or document.version != kind.version:
            telemetry.record_event(
                "lsp.stale_tokens",
                level="debug",
                data={"uri": kind.uri, "version": kind.version},
            )
            return
        data: List[int] = []
        if isinstance(result, Mapping):
            data = list(result.get("data") or [])
        document.tokens = decode_semantic_tokens(data, session.legend)
        document.tokens_version = document.version
        document.buffer.dirty = True

    # ------------------------------------------------------------------
    # Rendering support

    def semantic_spans_for(self, buffer: TextBuffer) -> Tuple[HighlightSpan, ...]:
        session = self.sessions.get(buffer.language)
        document = self.document_for(buffer)
        if session is None or document is None or not document.tokens:
            return ()
        viewport = buffer.viewport
        return semantic_spans(
            document.tokens,
            buffer.sequence,
            viewport.view_start,
            viewport.view_end,
            session.position_encoding,
        )


__all__ = [
    "CrashCallback",
    "LSPCoordinator",
    "LanguageSession",
    "TrackedDocument",
]
