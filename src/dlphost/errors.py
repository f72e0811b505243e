"""Error taxonomy shared by the framing codec, policy loader, audit log and host loop."""

from __future__ import annotations

from pathlib import Path


class DlpHostError(Exception):
    """Base class for every error raised by dlphost."""


class FrameError(DlpHostError):
    """Base class for native messaging framing errors."""


class InvalidFrameLength(FrameError):
    """A frame header announced a length outside ``1..MAX_MESSAGE_SIZE``.

    Recoverable: the host logs it and reads the next header.
    """

    def __init__(self, length: int) -> None:
        self.length = length
        super().__init__(f"Invalid message length: {length}")


class TruncatedMessage(FrameError):
    """The stream closed part-way through a frame body. Fatal to the connection."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Unexpected EOF while reading message body "
            f"({received} of {expected} bytes)"
        )


class MessageTooLarge(FrameError):
    """An outbound message exceeds ``MAX_MESSAGE_SIZE``. Nothing was written."""

    def __init__(self, size: int) -> None:
        self.size = size
        super().__init__(f"Message too large: {size} bytes")


class PolicyLoadError(DlpHostError):
    """The policy file is missing, unreadable or has the wrong shape."""

    def __init__(self, path: str | Path | None, reason: str) -> None:
        self.path = str(path) if path is not None else None
        self.reason = reason
        where = f"{self.path}: " if self.path else ""
        super().__init__(f"{where}{reason}")


class MalformedEventPayload(DlpHostError):
    """An inbound message could not be parsed into a telemetry event."""


class AuditWriteError(DlpHostError):
    """Appending an audit entry failed (disk full, permission denied, ...)."""
