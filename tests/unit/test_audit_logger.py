"""Tests for the NDJSON audit logger."""

from __future__ import annotations

import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from dlphost.audit.logger import (
    AUDIT_FIELDS,
    AuditLogger,
    audit_file_for,
    build_audit_entry,
    read_audit_entries,
)
from dlphost.errors import AuditWriteError
from dlphost.schema.models import EventType

_RAW_CONTENT_KEYS = {"raw", "text", "content", "clipboard", "data", "bytes", "file_bytes"}


class _Clock:
    """Settable UTC clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8").splitlines()


def test_log_event_creates_ndjson_file(tmp_path: Path, make_event, warn_decision):
    log_dir = tmp_path / "logs"
    with AuditLogger(log_dir) as audit:
        audit.log_event(make_event(text_length=42, patterns=("CREDIT_CARD",)), warn_decision)

    files = list(log_dir.glob("*.ndjson"))
    assert len(files) == 1
    assert files[0].name.startswith("events-")

    lines = _lines(files[0])
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["event_id"] == "test-evt"
    assert entry["decision"] == "warn"
    assert entry["text_length"] == 42
    assert entry["patterns"] == ["CREDIT_CARD"]
    assert entry["decision_reason"] == "[rule-sensitive] Sensitive data detected"


def test_directory_is_created_lazily(tmp_path: Path, make_event, warn_decision):
    log_dir = tmp_path / "nested" / "logs"
    audit = AuditLogger(log_dir)
    assert not log_dir.exists()
    audit.log_event(make_event(), warn_decision)
    audit.close()
    assert log_dir.is_dir()


def test_n_events_append_to_one_file(tmp_path: Path, make_event, warn_decision):
    with AuditLogger(tmp_path) as audit:
        for i in range(5):
            audit.log_event(make_event(event_id=f"evt-{i}"), warn_decision)

    files = list(tmp_path.glob("*.ndjson"))
    assert len(files) == 1
    entries = list(read_audit_entries(files[0]))
    assert [e["event_id"] for e in entries] == [f"evt-{i}" for i in range(5)]


def test_file_named_for_utc_date(tmp_path: Path, make_event, warn_decision):
    # 23:30 at UTC-5 is already the next day in UTC.
    local = datetime(2025, 3, 9, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    with AuditLogger(tmp_path, clock=_Clock(local)) as audit:
        audit.log_event(make_event(), warn_decision)
        assert audit.current_path == tmp_path / "events-20250310.ndjson"

    entry = next(read_audit_entries(tmp_path / "events-20250310.ndjson"))
    assert entry["timestamp"] == "2025-03-10T04:30:00+00:00"


def test_rolls_over_at_utc_midnight(tmp_path: Path, make_event, warn_decision):
    clock = _Clock(datetime(2025, 1, 1, 23, 59, 59, tzinfo=timezone.utc))
    with AuditLogger(tmp_path, clock=clock) as audit:
        audit.log_event(make_event(event_id="before"), warn_decision)
        clock.now = datetime(2025, 1, 2, 0, 0, 1, tzinfo=timezone.utc)
        audit.log_event(make_event(event_id="after"), warn_decision)

    first = list(read_audit_entries(tmp_path / "events-20250101.ndjson"))
    second = list(read_audit_entries(tmp_path / "events-20250102.ndjson"))
    assert [e["event_id"] for e in first] == ["before"]
    assert [e["event_id"] for e in second] == ["after"]


def test_existing_file_is_appended(tmp_path: Path, make_event, warn_decision):
    clock = _Clock(datetime(2025, 1, 1, 12, tzinfo=timezone.utc))
    for i in range(2):
        with AuditLogger(tmp_path, clock=clock) as audit:
            audit.log_event(make_event(event_id=f"run-{i}"), warn_decision)

    entries = list(read_audit_entries(tmp_path / "events-20250101.ndjson"))
    assert [e["event_id"] for e in entries] == ["run-0", "run-1"]


def test_entry_fields_are_allowlisted(make_event, warn_decision):
    event = make_event(
        event_type=EventType.FILE_UPLOAD_ATTEMPT,
        patterns=("CREDIT_CARD",),
        file_extension=".pdf",
    )
    entry = build_audit_entry(event, warn_decision, datetime.now(timezone.utc))
    assert set(entry) <= set(AUDIT_FIELDS)
    # With both signal blocks present every allowlisted field is emitted.
    assert list(entry) == list(AUDIT_FIELDS)
    assert entry["file_extension"] == ".pdf"
    assert entry["file_size_bytes"] == 1024


def test_absent_signals_are_omitted(make_event, warn_decision):
    entry = build_audit_entry(
        make_event(text_length=None), warn_decision, datetime.now(timezone.utc)
    )
    assert "text_length" not in entry
    assert "file_name" not in entry
    assert None not in entry.values()


def test_audit_line_never_contains_raw_content_keys(tmp_path: Path, make_event, warn_decision):
    event = make_event(patterns=("CREDIT_CARD", "KR_RRN"), file_extension=".docx")
    with AuditLogger(tmp_path) as audit:
        audit.log_event(event, warn_decision)

    content = next(tmp_path.glob("*.ndjson")).read_text(encoding="utf-8")
    entry = json.loads(content)
    assert not _RAW_CONTENT_KEYS & set(entry)
    for key in ("raw", "text", "content", "clipboard"):
        assert f'"{key}":' not in content


def test_lines_are_compact_and_newline_terminated(tmp_path: Path, make_event, warn_decision):
    with AuditLogger(tmp_path) as audit:
        audit.log_event(make_event(), warn_decision)
    raw = next(tmp_path.glob("*.ndjson")).read_text(encoding="utf-8")
    assert raw.endswith("\n")
    assert raw.count("\n") == 1
    assert '", "' not in raw


def test_concurrent_writers_never_interleave(tmp_path: Path, make_event, warn_decision):
    audit = AuditLogger(tmp_path)
    per_thread = 50

    def worker(n: int) -> None:
        for i in range(per_thread):
            audit.log_event(make_event(event_id=f"t{n}-{i}"), warn_decision)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    audit.close()

    path = next(tmp_path.glob("*.ndjson"))
    entries = list(read_audit_entries(path))
    assert len(entries) == 4 * per_thread
    assert len({e["event_id"] for e in entries}) == 4 * per_thread
    # Per-thread order is preserved.
    t0 = [e["event_id"] for e in entries if e["event_id"].startswith("t0-")]
    assert t0 == [f"t0-{i}" for i in range(per_thread)]


def test_write_failure_raises_audit_write_error(tmp_path: Path, make_event, warn_decision):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    audit = AuditLogger(blocker / "logs")
    with pytest.raises(AuditWriteError):
        audit.log_event(make_event(), warn_decision)
    assert audit.current_path is None


def test_fsync_failure_raises_and_recovers(tmp_path: Path, make_event, warn_decision):
    audit = AuditLogger(tmp_path)
    with patch("dlphost.audit.logger.os.fsync", side_effect=OSError(28, "No space left")):
        with pytest.raises(AuditWriteError, match="No space left"):
            audit.log_event(make_event(event_id="lost"), warn_decision)

    audit.log_event(make_event(event_id="kept"), warn_decision)
    audit.close()
    ids = [e["event_id"] for e in read_audit_entries(next(tmp_path.glob("*.ndjson")))]
    assert "kept" in ids


def test_close_is_idempotent(tmp_path: Path, make_event, warn_decision):
    audit = AuditLogger(tmp_path)
    audit.close()
    audit.log_event(make_event(), warn_decision)
    audit.close()
    audit.close()
    assert audit.current_path is None


def test_write_after_close_reopens(tmp_path: Path, make_event, warn_decision):
    audit = AuditLogger(tmp_path)
    audit.log_event(make_event(event_id="a"), warn_decision)
    audit.close()
    audit.log_event(make_event(event_id="b"), warn_decision)
    audit.close()
    entries = list(read_audit_entries(next(tmp_path.glob("*.ndjson"))))
    assert [e["event_id"] for e in entries] == ["a", "b"]


def test_audit_file_for():
    day = datetime(2024, 12, 31, tzinfo=timezone.utc).date()
    assert audit_file_for("/var/log/dlp", day) == Path("/var/log/dlp/events-20241231.ndjson")


def test_lone_surrogates_are_written_escaped(tmp_path: Path, make_event, warn_decision):
    event = make_event(event_id="e\udc00", domain="\ud800x")
    with AuditLogger(tmp_path) as audit:
        audit.log_event(event, warn_decision)

    path = next(tmp_path.glob("*.ndjson"))
    assert path.read_bytes().isascii()
    entry = next(read_audit_entries(path))
    assert entry["event_id"] == "e\udc00"
    assert entry["domain"] == "\ud800x"


def test_entry_outside_allowlist_is_refused(monkeypatch, make_event, warn_decision):
    trimmed = tuple(f for f in AUDIT_FIELDS if f != "correlation_id")
    monkeypatch.setattr("dlphost.audit.logger.AUDIT_FIELDS", trimmed)
    with pytest.raises(AuditWriteError, match="correlation_id"):
        build_audit_entry(make_event(), warn_decision, datetime.now(timezone.utc))


def test_allowlist_violation_writes_nothing(tmp_path: Path, monkeypatch, make_event, warn_decision):
    monkeypatch.setattr("dlphost.audit.logger.AUDIT_FIELDS", ("event_id",))
    audit = AuditLogger(tmp_path)
    with pytest.raises(AuditWriteError):
        audit.log_event(make_event(), warn_decision)
    audit.close()
    assert list(tmp_path.glob("*.ndjson")) == []
