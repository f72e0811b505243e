"""Input stream wrapper whose blocking reads give way to a shutdown request."""

from __future__ import annotations

import logging
import os
import selectors
import threading
from typing import IO

logger = logging.getLogger(__name__)


class ShutdownRequested(Exception):
    """Raised from read() once the host's stop event is set."""


class CancellableReader:
    """File-like reader that polls for shutdown while waiting for input.

    When the stream has a selectable file descriptor (pipes on POSIX),
    reads wait on a selector in ``poll_interval`` slices and then use
    ``os.read`` on the descriptor, so the selector and the data stay in
    sync. Callers must not read the wrapped stream directly in that mode.

    Streams without one (``io.BytesIO``, Windows pipes) fall back to plain
    blocking reads, and shutdown is only noticed between reads.
    """

    def __init__(
        self,
        stream: IO[bytes],
        stop_event: threading.Event,
        poll_interval: float = 0.2,
    ) -> None:
        self._stream = stream
        self._stop_event = stop_event
        self._poll_interval = poll_interval
        self._selector: selectors.BaseSelector | None = None
        self._fd: int | None = None

        try:
            fd = stream.fileno()
            selector = selectors.DefaultSelector()
            try:
                selector.register(fd, selectors.EVENT_READ)
            except (OSError, ValueError):
                selector.close()
                raise
        except (AttributeError, OSError, ValueError):
            logger.debug("Input is not selectable; using blocking reads")
        else:
            self._selector = selector
            self._fd = fd

    @property
    def selectable(self) -> bool:
        return self._selector is not None

    def read(self, size: int) -> bytes:
        if self._selector is None or self._fd is None:
            if self._stop_event.is_set():
                raise ShutdownRequested()
            return self._stream.read(size)

        while True:
            if self._stop_event.is_set():
                raise ShutdownRequested()
            if self._selector.select(timeout=self._poll_interval):
                return os.read(self._fd, size)

    def close(self) -> None:
        if self._selector is not None:
            self._selector.close()
            self._selector = None
