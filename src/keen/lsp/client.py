"""Language server session: one subprocess, one background reader thread.

The reader never touches editor state. Every framed message it reads is
posted, in stdout order, to the host's bounded ``queue.Queue`` as an owned
:class:`LSPResponse`; a broken or closed stream posts a single
:class:`LSPCrash` and ends the thread.
"""

from __future__ import annotations

import queue
import subprocess
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union

from keen.config import DEFAULT_LSP_MAX_MESSAGE_SIZE
from keen.errors import ProtocolFramingError, SubprocessWriteError
from keen.runtime import telemetry

from . import messages
from .framing import encode_message, read_message
from .messages import InitializationRequest, RequestKind, SemanticTokenRequest


class SessionState(str, Enum):
    STARTING = "starting"
    READY = "ready"
    CRASHED = "crashed"
    TERMINATED = "terminated"


@dataclass(frozen=True, slots=True)
class LSPResponse:
    """One inbound message body, exactly as framed on the wire."""

    client_name: str
    payload: bytes

    @property
    def length(self) -> int:
        return len(self.payload)


@dataclass(frozen=True, slots=True)
class LSPCrash:
    client_name: str
    reason: str


LSPEvent = Union[LSPResponse, LSPCrash]
PopenFactory = Callable[..., Any]


class LSPClient:
    def __init__(
        self,
        server_name: str,
        events: "queue.Queue[LSPEvent]",
        *,
        document_path: str = "",
        root_path: Optional[str] = None,
        args: Sequence[str] = (),
        popen: PopenFactory = subprocess.Popen,
        max_message_size: int = DEFAULT_LSP_MAX_MESSAGE_SIZE,
    ) -> None:
        self.client_name = server_name
        self.max_message_size = max_message_size
        self.events = events
        self.root_path = root_path
        self.state = SessionState.STARTING
        self.request_id = 0
        self.pending: Dict[int, RequestKind] = {}
        self._lock = threading.RLock()

        self.process = popen(
            [server_name, *args],
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=root_path,
        )
        self._reader = threading.Thread(
            target=self._read_loop, name=f"lsp-reader-{server_name}", daemon=True
        )
        self._stderr_reader = threading.Thread(
            target=self._drain_stderr, name=f"lsp-stderr-{server_name}", daemon=True
        )
        telemetry.record_event(
            "lsp.spawn", data={"client": server_name, "root": root_path or ""}
        )

        try:
            self.send_initialize(document_path)
        except SubprocessWriteError:
            self.terminate()
            raise
        self._reader.start()
        self._stderr_reader.start()

    # ------------------------------------------------------------------
    # Outbound

    def _write(self, data: bytes, method: str) -> None:
        stdin = self.process.stdin
        if stdin is None or not self.is_alive:
            raise SubprocessWriteError(
                f"{self.client_name} is not running ({self.state.value})",
                client_name=self.client_name,
                method=method,
            )
        try:
            stdin.write(data)
            stdin.flush()
        except (OSError, ValueError) as exc:
            raise SubprocessWriteError(
                f"write to {self.client_name} failed: {exc}",
                client_name=self.client_name,
                method=method,
            ) from exc

    def send_request(
        self,
        method: str,
        params: Optional[Mapping[str, Any]],
        kind: RequestKind,
    ) -> int:
        """Send a request and remember ``kind`` under its id; returns the id."""

        with self._lock:
            request_id = self.request_id
            body = encode_message(messages.request(request_id, method, params))
            self._write(body, method)
            self.pending[request_id] = kind
            self.request_id += 1
        telemetry.record_event(
            "lsp.request",
            level="debug",
            data={"client": self.client_name, "method": method, "id": request_id},
        )
        return request_id

    def send_notification(
        self, method: str, params: Optional[Mapping[str, Any]] = None
    ) -> None:
        with self._lock:
            self._write(encode_message(messages.notification(method, params)), method)
        telemetry.record_event(
            "lsp.notification",
            level="debug",
            data={"client": self.client_name, "method": method},
        )

    def send_response(self, message: Mapping[str, Any]) -> None:
        """Answer a server-initiated request with a minimal result."""

        with self._lock:
            self._write(
                encode_message(messages.reply_to_server_request(message)),
                str(message.get("method", "")),
            )

    def send_initialize(self, path: str) -> int:
        return self.send_request(
            messages.INITIALIZE,
            messages.initialize_params(self.client_name, self.root_path),
            InitializationRequest(path),
        )

    def send_initialized(self) -> None:
        self.send_notification(messages.INITIALIZED, {})

    def send_did_open(
        self, uri: str, language_id: str, text: str, version: int = 0
    ) -> None:
        payload = messages.did_open_notification(uri, language_id, text, version)
        self.send_notification(messages.DID_OPEN, payload["params"])

    def send_did_change(
        self, uri: str, version: int, changes: Sequence[Mapping[str, Any]]
    ) -> None:
        payload = messages.did_change_notification(uri, version, changes)
        self.send_notification(messages.DID_CHANGE, payload["params"])

    def send_semantic_tokens_request(self, uri: str, version: int = 0) -> int:
        return self.send_request(
            messages.SEMANTIC_TOKENS,
            messages.semantic_tokens_params(uri),
            SemanticTokenRequest(uri, version),
        )

    # ------------------------------------------------------------------
    # Bookkeeping

    def pop_request(self, request_id: int) -> Optional[RequestKind]:
        with self._lock:
            return self.pending.pop(request_id, None)

    def mark_ready(self) -> None:
        with self._lock:
            if self.state is SessionState.STARTING:
                self.state = SessionState.READY

    @property
    def is_alive(self) -> bool:
        return self.state in (SessionState.STARTING, SessionState.READY)

    def terminate(self, timeout: float = 1.0) -> None:
        """Stop the server without reporting a crash."""

        with self._lock:
            if self.state is SessionState.TERMINATED:
                return
            self.state = SessionState.TERMINATED
            self.pending.clear()
        if self.process.stdin is not None:
            try:
                self.process.stdin.close()
            except OSError:
                pass
        self.process.terminate()
        try:
            self.process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.process.kill()
        telemetry.record_event("lsp.terminate", data={"client": self.client_name})

    # ------------------------------------------------------------------
    # Background threads

    def _crash(self, reason: str) -> None:
        with self._lock:
            if self.state in (SessionState.TERMINATED, SessionState.CRASHED):
                return
            self.state = SessionState.CRASHED
            self.pending.clear()
        telemetry.record_event(
            "lsp.crash",
            level="error",
            data={"client": self.client_name, "reason": reason},
        )
        self.events.put(LSPCrash(self.client_name, reason))

    def _read_loop(self) -> None:
        stdout = self.process.stdout
        if stdout is None:
            self._crash("no stdout pipe")
            return
        try:
            while True:
                body = read_message(stdout, self.max_message_size)
                if body is None:
                    self._crash(f"{self.client_name} closed its output")
                    return
                self.events.put(LSPResponse(self.client_name, body))
        except ProtocolFramingError as exc:
            self._crash(str(exc))
        except (OSError, ValueError) as exc:
            self._crash(f"read from {self.client_name} failed: {exc}")
        except Exception as exc:
            self._crash(f"reader for {self.client_name} stopped: {exc!r}")

    def _drain_stderr(self) -> None:
        stderr = self.process.stderr
        if stderr is None:
            return
        try:
            for line in iter(stderr.readline, b""):
                telemetry.record_event(
                    "lsp.stderr",
                    level="debug",
                    data={
                        "client": self.client_name,
                        "line": line.decode("utf-8", errors="replace").rstrip(),
                    },
                )
        except (OSError, ValueError):
            return


__all__ = [
    "LSPClient",
    "LSPCrash",
    "LSPEvent",
    "LSPResponse",
    "SessionState",
]
