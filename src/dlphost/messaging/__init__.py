"""Length-prefixed JSON framing for the native messaging transport."""

from dlphost.messaging.framing import (
    MAX_MESSAGE_SIZE,
    encode_frame,
    read_frame,
    read_message,
    write_frame,
)

__all__ = [
    "MAX_MESSAGE_SIZE",
    "encode_frame",
    "read_frame",
    "read_message",
    "write_frame",
]
