import io
import json
import os
import queue
from typing import Any, Dict, List, Optional

import pytest

from keen.lsp import decode_message, encode_message


class RecordingStdin(io.BytesIO):
    """Keeps its contents readable after the client closes it."""

    def __init__(self) -> None:
        super().__init__()
        self.closed_by_client = False

    def close(self) -> None:
        self.closed_by_client = True


class FakeProcess:
    """Stands in for a language server with a real pipe on stdout."""

    def __init__(self, args: List[str], **kwargs: Any) -> None:
        self.args = args
        self.kwargs = kwargs
        self.stdin = RecordingStdin()
        read_fd, self._write_fd = os.pipe()
        self.stdout = os.fdopen(read_fd, "rb")
        self.stderr = io.BytesIO(b"server starting\n")
        self.returncode: Optional[int] = None

    def feed(self, data: bytes) -> None:
        assert self._write_fd is not None
        os.write(self._write_fd, data)

    def reply(self, payload: Dict[str, Any]) -> None:
        self.feed(encode_message(payload))

    def close_output(self) -> None:
        if self._write_fd is not None:
            os.close(self._write_fd)
            self._write_fd = None

    def sent(self) -> List[Dict[str, Any]]:
        data = self.stdin.getvalue()
        messages = []
        while data:
            decoded = decode_message(data)
            assert decoded is not None
            body, data = decoded
            messages.append(json.loads(body))
        return messages

    def poll(self) -> Optional[int]:
        return self.returncode

    def terminate(self) -> None:
        self.returncode = -15
        self.close_output()

    def kill(self) -> None:
        self.terminate()

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        return self.returncode


class FakePopen:
    def __init__(self) -> None:
        self.processes: List[FakeProcess] = []

    def __call__(self, args: List[str], **kwargs: Any) -> FakeProcess:
        process = FakeProcess(args, **kwargs)
        self.processes.append(process)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


@pytest.fixture
def fake_popen():
    factory = FakePopen()
    yield factory
    for process in factory.processes:
        process.close_output()


@pytest.fixture
def events() -> "queue.Queue":
    return queue.Queue(maxsize=64)
