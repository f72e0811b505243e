"""Convert telemetry events and decisions to and from snake_case wire dicts."""

from __future__ import annotations

from typing import Any

from dlphost.errors import MalformedEventPayload
from dlphost.schema.models import (
    Decision,
    EventType,
    FileSignals,
    PolicyDecision,
    TelemetryEvent,
    TextSignals,
)


def event_from_dict(data: Any) -> TelemetryEvent:
    """Build a TelemetryEvent from a decoded ``payload`` object.

    Only the documented keys are read. Anything else the extension sends
    is dropped here and never reaches the evaluator or the audit log.
    """
    if not isinstance(data, dict):
        raise MalformedEventPayload("Event payload must be a JSON object")

    event_id = data.get("event_id")
    if not isinstance(event_id, str) or not event_id:
        raise MalformedEventPayload("Event payload is missing 'event_id'")

    raw_type = data.get("event_type")
    if raw_type is None:
        raise MalformedEventPayload(f"Event {event_id} is missing 'event_type'")
    try:
        event_type = EventType.from_wire(raw_type)
    except ValueError as exc:
        raise MalformedEventPayload(f"Event {event_id}: {exc}") from None

    return TelemetryEvent(
        event_id=event_id,
        event_type=event_type,
        timestamp=_str_field(data, "timestamp"),
        url=_str_field(data, "url"),
        domain=_str_field(data, "domain"),
        tab_id=_int_field(data, "tab_id"),
        correlation_id=_str_field(data, "correlation_id"),
        text_signals=_text_signals(data.get("text_signals")),
        file_signals=_file_signals(data.get("file_signals")),
    )


def event_to_dict(event: TelemetryEvent) -> dict[str, Any]:
    data: dict[str, Any] = {
        "event_id": event.event_id,
        "timestamp": event.timestamp,
        "event_type": event.event_type.wire,
        "url": event.url,
        "domain": event.domain,
        "tab_id": event.tab_id,
        "correlation_id": event.correlation_id,
    }
    if event.text_signals is not None:
        data["text_signals"] = {
            "length": event.text_signals.length,
            "sha256_prefix": event.text_signals.sha256_prefix,
            "patterns": sorted(event.text_signals.patterns),
        }
    if event.file_signals is not None:
        data["file_signals"] = {
            "file_name": event.file_signals.file_name,
            "extension": event.file_signals.extension,
            "mime_type": event.file_signals.mime_type,
            "size_bytes": event.file_signals.size_bytes,
        }
    return data


def decision_to_dict(decision: PolicyDecision) -> dict[str, str]:
    return {
        "event_id": decision.event_id,
        "decision": decision.decision.wire,
        "policy_id": decision.policy_id,
        "policy_version": decision.policy_version,
        "decision_reason": decision.decision_reason,
    }


def decision_from_dict(data: dict[str, Any]) -> PolicyDecision:
    return PolicyDecision(
        event_id=str(data.get("event_id", "")),
        decision=Decision.parse(data.get("decision")),
        policy_id=str(data.get("policy_id", "")),
        policy_version=str(data.get("policy_version", "")),
        decision_reason=str(data.get("decision_reason", "")),
    )


def _text_signals(raw: Any) -> TextSignals | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedEventPayload("'text_signals' must be an object")
    patterns = raw.get("patterns") or []
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        raise MalformedEventPayload("'text_signals.patterns' must be a list of strings")
    return TextSignals(
        length=_int_field(raw, "length", "text_signals.length"),
        sha256_prefix=_str_field(raw, "sha256_prefix", "text_signals.sha256_prefix"),
        patterns=frozenset(patterns),
    )


def _file_signals(raw: Any) -> FileSignals | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedEventPayload("'file_signals' must be an object")
    return FileSignals(
        file_name=_str_field(raw, "file_name", "file_signals.file_name"),
        extension=_str_field(raw, "extension", "file_signals.extension"),
        mime_type=_str_field(raw, "mime_type", "file_signals.mime_type"),
        size_bytes=_int_field(raw, "size_bytes", "file_signals.size_bytes"),
    )


def _str_field(data: dict, key: str, label: str | None = None) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedEventPayload(f"'{label or key}' must be a string")
    return value


def _int_field(data: dict, key: str, label: str | None = None) -> int:
    value = data.get(key)
    if value is None:
        return 0
    # bool is an int subclass; true/false is never a valid count or id
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedEventPayload(f"'{label or key}' must be an integer")
    return value
