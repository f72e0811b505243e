"""Append-only NDJSON audit log, one file per UTC day.

Entries carry signals and decisions only. The field set is a fixed
allowlist: adding a field means editing AUDIT_FIELDS.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Callable, Iterator
from datetime import date, datetime, timezone
from pathlib import Path
from types import TracebackType
from typing import IO, Any

from dlphost.errors import AuditWriteError
from dlphost.schema.models import PolicyDecision, TelemetryEvent

logger = logging.getLogger(__name__)

AUDIT_FIELDS: tuple[str, ...] = (
    "timestamp",
    "event_id",
    "event_type",
    "domain",
    "url",
    "tab_id",
    "correlation_id",
    "text_length",
    "sha256_prefix",
    "patterns",
    "file_name",
    "file_extension",
    "file_mime_type",
    "file_size_bytes",
    "decision",
    "policy_id",
    "policy_version",
    "decision_reason",
)

_FILE_PREFIX = "events-"
_FILE_SUFFIX = ".ndjson"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def audit_file_for(log_dir: str | Path, day: date) -> Path:
    return Path(log_dir) / f"{_FILE_PREFIX}{day:%Y%m%d}{_FILE_SUFFIX}"


def build_audit_entry(
    event: TelemetryEvent,
    decision: PolicyDecision,
    now: datetime,
) -> dict[str, Any]:
    """Project an (event, decision) pair onto the audit allowlist.

    Signal fields are omitted, not nulled, when the event has no signals.
    """
    entry: dict[str, Any] = {
        "timestamp": now.isoformat(),
        "event_id": event.event_id,
        "event_type": event.event_type.wire,
        "domain": event.domain,
        "url": event.url,
        "tab_id": event.tab_id,
        "correlation_id": event.correlation_id,
    }
    text = event.text_signals
    if text is not None:
        entry["text_length"] = text.length
        entry["sha256_prefix"] = text.sha256_prefix
        entry["patterns"] = sorted(text.patterns)
    file = event.file_signals
    if file is not None:
        entry["file_name"] = file.file_name
        entry["file_extension"] = file.extension
        entry["file_mime_type"] = file.mime_type
        entry["file_size_bytes"] = file.size_bytes
    entry["decision"] = decision.decision.wire
    entry["policy_id"] = decision.policy_id
    entry["policy_version"] = decision.policy_version
    entry["decision_reason"] = decision.decision_reason

    unexpected = set(entry) - set(AUDIT_FIELDS)
    if unexpected:
        raise AuditWriteError(f"Audit entry fields outside allowlist: {sorted(unexpected)}")
    return entry


class AuditLogger:
    """Thread-safe daily-rotating audit writer.

    The file handle is opened lazily on the first write, swapped when the
    UTC date of a write differs from the open file's date, and released by
    close(). Every line is flushed and fsynced before log_event returns.

    Usage::

        with AuditLogger(log_dir) as audit:
            audit.log_event(event, decision)
    """

    def __init__(
        self,
        log_dir: str | Path,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.log_dir = Path(log_dir)
        self._clock = clock
        self._lock = threading.Lock()
        self._file: IO[str] | None = None
        self._file_date: date | None = None

    @property
    def current_path(self) -> Path | None:
        """Path of the open log file, or None if nothing is open."""
        if self._file_date is None:
            return None
        return audit_file_for(self.log_dir, self._file_date)

    def __enter__(self) -> AuditLogger:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def log_event(self, event: TelemetryEvent, decision: PolicyDecision) -> dict[str, Any]:
        """Append one entry. Returns the entry written.

        Raises AuditWriteError if the entry could not be made durable.
        """
        with self._lock:
            now = self._clock().astimezone(timezone.utc)
            entry = build_audit_entry(event, decision, now)
            try:
                # ASCII escapes keep lone surrogates in peer-supplied strings writable.
                line = json.dumps(entry, separators=(",", ":"))
            except (TypeError, ValueError) as exc:
                raise AuditWriteError(f"Cannot serialise audit entry: {exc}") from exc
            try:
                handle = self._handle_for(now.date())
                handle.write(line + "\n")
                handle.flush()
                os.fsync(handle.fileno())
            except OSError as exc:
                # Drop the handle so the next write retries from a clean open.
                self._close_locked()
                raise AuditWriteError(f"Cannot write audit log: {exc}") from exc
        return entry

    def close(self) -> None:
        """Flush and release the open file. Safe to call repeatedly."""
        with self._lock:
            self._close_locked()

    def _handle_for(self, day: date) -> IO[str]:
        if self._file is not None and self._file_date == day:
            return self._file

        self._close_locked()
        self.log_dir.mkdir(parents=True, exist_ok=True)
        path = audit_file_for(self.log_dir, day)
        self._file = open(path, "a", encoding="utf-8")  # noqa: SIM115
        self._file_date = day
        logger.info("Audit log opened: %s", path)
        return self._file

    def _close_locked(self) -> None:
        if self._file is None:
            return
        handle, self._file, self._file_date = self._file, None, None
        try:
            # close() flushes first
            handle.close()
        except OSError as exc:
            logger.warning("Failed to close audit log cleanly: %s", exc)


def read_audit_entries(path: str | Path) -> Iterator[dict[str, Any]]:
    """Yield each entry of one audit file. Blank lines are skipped."""
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if line:
                yield json.loads(line)
