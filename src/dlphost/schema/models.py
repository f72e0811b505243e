"""Telemetry and decision data models exchanged with the browser extension."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class EventType(enum.Enum):
    """Kind of user action observed by the extension."""

    CLIPBOARD_COPY = "CLIPBOARD_COPY"
    CLIPBOARD_PASTE = "CLIPBOARD_PASTE"
    FILE_UPLOAD_ATTEMPT = "FILE_UPLOAD_ATTEMPT"
    LLM_PROMPT_PASTE = "LLM_PROMPT_PASTE"

    @property
    def wire(self) -> str:
        return EVENT_TYPE_WIRE[self]

    @classmethod
    def from_wire(cls, value: str) -> EventType:
        """Look up an event type by its wire name (case-insensitive).

        Raises ValueError for unknown names.
        """
        try:
            return _EVENT_TYPE_BY_WIRE[value.strip().upper()]
        except (AttributeError, KeyError):
            raise ValueError(f"Unknown event type: {value!r}") from None


class Decision(enum.Enum):
    """Outcome of a policy evaluation."""

    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"

    @property
    def wire(self) -> str:
        return DECISION_WIRE[self]

    @classmethod
    def is_known(cls, value: object) -> bool:
        return isinstance(value, str) and value.strip().lower() in _DECISION_BY_WIRE

    @classmethod
    def parse(cls, value: object) -> Decision:
        """Normalise a configured decision string.

        Unknown or missing values become ALLOW; the policy loader reports
        them as configuration issues instead of failing evaluation.
        """
        if isinstance(value, Decision):
            return value
        if isinstance(value, str):
            return _DECISION_BY_WIRE.get(value.strip().lower(), Decision.ALLOW)
        return Decision.ALLOW


EVENT_TYPE_WIRE: dict[EventType, str] = {
    EventType.CLIPBOARD_COPY: "CLIPBOARD_COPY",
    EventType.CLIPBOARD_PASTE: "CLIPBOARD_PASTE",
    EventType.FILE_UPLOAD_ATTEMPT: "FILE_UPLOAD_ATTEMPT",
    EventType.LLM_PROMPT_PASTE: "LLM_PROMPT_PASTE",
}
_EVENT_TYPE_BY_WIRE = {wire: member for member, wire in EVENT_TYPE_WIRE.items()}

DECISION_WIRE: dict[Decision, str] = {
    Decision.ALLOW: "allow",
    Decision.WARN: "warn",
    Decision.BLOCK: "block",
}
_DECISION_BY_WIRE = {wire: member for member, wire in DECISION_WIRE.items()}


@dataclass(frozen=True)
class TextSignals:
    """Derived attributes of copied or pasted text. Never the text itself."""

    length: int = 0
    sha256_prefix: str = ""
    patterns: frozenset[str] = frozenset()


@dataclass(frozen=True)
class FileSignals:
    """Metadata of a file the user tried to upload. Never the file bytes."""

    file_name: str = ""
    extension: str = ""
    mime_type: str = ""
    size_bytes: int = 0


@dataclass(frozen=True)
class TelemetryEvent:
    """One observed user action, already sanitised by the extension."""

    event_id: str
    event_type: EventType
    timestamp: str = ""
    url: str = ""
    domain: str = ""
    tab_id: int = 0
    correlation_id: str = ""
    text_signals: TextSignals | None = None
    file_signals: FileSignals | None = None


@dataclass(frozen=True)
class PolicyDecision:
    """Result of evaluating one event, echoed back to the extension."""

    event_id: str
    decision: Decision
    policy_id: str
    policy_version: str
    decision_reason: str
