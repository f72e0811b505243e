"""Native messaging framing: 4-byte little-endian length prefix + UTF-8 JSON body.

The codec works on any binary file-like object. Production uses the
process's stdin/stdout; tests use ``io.BytesIO``.
"""

from __future__ import annotations

import json
import struct
from typing import IO, Any

from dlphost.errors import (
    InvalidFrameLength,
    MalformedEventPayload,
    MessageTooLarge,
    TruncatedMessage,
)

# Browsers cap host-bound messages at 1 MiB as well.
MAX_MESSAGE_SIZE = 1024 * 1024

HEADER_SIZE = 4

# Signed, so a header >= 2**31 reads as negative and is rejected as L <= 0.
_HEADER = struct.Struct("<i")


def read_frame(stream: IO[bytes]) -> bytes | None:
    """Read one frame body. Returns None on a clean EOF.

    Raises InvalidFrameLength before reading any body bytes when the
    header is out of range, and TruncatedMessage when the stream closes
    mid-body.
    """
    header = _read_exact(stream, HEADER_SIZE)
    if len(header) < HEADER_SIZE:
        return None

    (length,) = _HEADER.unpack(header)
    if length <= 0 or length > MAX_MESSAGE_SIZE:
        raise InvalidFrameLength(length)

    body = _read_exact(stream, length)
    if len(body) < length:
        raise TruncatedMessage(expected=length, received=len(body))
    return body


def read_message(stream: IO[bytes]) -> dict[str, Any] | None:
    """Read one frame and decode it as a JSON object. None on clean EOF."""
    body = read_frame(stream)
    if body is None:
        return None
    return decode_body(body)


def decode_body(body: bytes) -> dict[str, Any]:
    try:
        message = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
        raise MalformedEventPayload(f"Frame body is not valid JSON: {exc}") from None
    if not isinstance(message, dict):
        raise MalformedEventPayload("Frame body must be a JSON object")
    return message


def encode_frame(payload: Any) -> bytes:
    """Serialise a payload into a complete frame (header + body).

    ``payload`` is either pre-encoded bytes or a JSON-serialisable object.
    Raises MessageTooLarge when the body exceeds MAX_MESSAGE_SIZE.
    """
    if isinstance(payload, (bytes, bytearray)):
        body = bytes(payload)
    else:
        # ASCII escapes keep lone surrogates from an untrusted peer encodable.
        body = json.dumps(payload, separators=(",", ":")).encode("ascii")
    if len(body) > MAX_MESSAGE_SIZE:
        raise MessageTooLarge(len(body))
    return _HEADER.pack(len(body)) + body


def write_frame(stream: IO[bytes], payload: Any) -> int:
    """Write one frame and flush. Returns the number of bytes written.

    Nothing is written when the payload is too large, so the stream stays
    frame-aligned for the next write.
    """
    frame = encode_frame(payload)
    stream.write(frame)
    stream.flush()
    return len(frame)


def _read_exact(stream: IO[bytes], size: int) -> bytes:
    """Read up to ``size`` bytes, looping over short reads until EOF."""
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
