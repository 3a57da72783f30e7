"""``Content-Length`` framing for JSON-RPC over a byte stream."""

from __future__ import annotations

import json
from typing import Any, BinaryIO, Mapping, Optional, Tuple

from keen.errors import ProtocolFramingError

HEADER_PREFIX = b"Content-Length: "
LINE_END = b"\r\n"
HEADER_END = b"\r\n\r\n"


def dump_json(payload: Mapping[str, Any]) -> bytes:
    text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return text.encode("utf-8")


def encode_message(body: bytes | str | Mapping[str, Any]) -> bytes:
    """Prefix ``body`` with its byte length header.

    Mappings are serialized as compact UTF-8 JSON first.
    """

    if isinstance(body, Mapping):
        data = dump_json(body)
    elif isinstance(body, str):
        data = body.encode("utf-8")
    else:
        data = bytes(body)
    return HEADER_PREFIX + str(len(data)).encode("ascii") + HEADER_END + data


def _parse_length(digits: bytes, header: bytes) -> int:
    digits = digits.strip()
    if not digits.isdigit():
        raise ProtocolFramingError(
            f"invalid Content-Length value {digits!r}", header=header
        )
    return int(digits)


def parse_header(buffer: bytes) -> Optional[Tuple[int, int]]:
    """Return ``(content_length, header_length)`` from the start of ``buffer``.

    ``None`` means the header is not complete yet. Anything that cannot
    become a valid header raises :class:`ProtocolFramingError`.
    """

    prefix = buffer[: len(HEADER_PREFIX)]
    if not HEADER_PREFIX.startswith(prefix):
        raise ProtocolFramingError("missing Content-Length header", header=prefix)
    first_end = buffer.find(LINE_END)
    if first_end < 0:
        return None
    if first_end < len(HEADER_PREFIX):
        raise ProtocolFramingError(
            "missing Content-Length header", header=buffer[:first_end]
        )
    length = _parse_length(buffer[len(HEADER_PREFIX) : first_end], buffer[:first_end])
    terminator = buffer.find(HEADER_END, first_end)
    if terminator < 0:
        return None
    return length, terminator + len(HEADER_END)


def decode_message(data: bytes) -> Optional[Tuple[bytes, bytes]]:
    """Split one framed message off ``data`` as ``(body, rest)``.

    Returns ``None`` while ``data`` holds less than one full message.
    """

    parsed = parse_header(data)
    if parsed is None:
        return None
    length, header_length = parsed
    end = header_length + length
    if len(data) < end:
        return None
    return data[header_length:end], data[end:]


def _read_exact(stream: BinaryIO, count: int) -> bytes:
    chunks = []
    remaining = count
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_message(
    stream: BinaryIO, max_length: Optional[int] = None
) -> Optional[bytes]:
    """Read one message body from a blocking binary stream.

    Returns ``None`` on a clean end of stream before any header byte.
    Extra header fields (``Content-Type``) are skipped. A declared length
    above ``max_length`` is rejected before any body byte is read.
    """

    line = stream.readline()
    if not line:
        return None
    if not line.startswith(HEADER_PREFIX):
        raise ProtocolFramingError("missing Content-Length header", header=line)
    if not line.endswith(LINE_END):
        raise ProtocolFramingError("stream ended inside the header", header=line)
    length = _parse_length(line[len(HEADER_PREFIX) : -len(LINE_END)], line)
    if max_length is not None and length > max_length:
        raise ProtocolFramingError(
            f"message of {length} bytes exceeds the {max_length} byte limit",
            header=line,
        )

    while True:
        extra = stream.readline()
        if not extra:
            raise ProtocolFramingError("stream ended inside the header", header=line)
        if extra == LINE_END:
            break

    body = _read_exact(stream, length)
    if len(body) < length:
        raise ProtocolFramingError(
            f"expected {length} body bytes, got {len(body)}", header=line
        )
    return body


__all__ = [
    "HEADER_PREFIX",
    "decode_message",
    "dump_json",
    "encode_message",
    "parse_header",
    "read_message",
]
