"""Wire schema shared with the browser extension."""

from dlphost.schema.models import (
    Decision,
    EventType,
    FileSignals,
    PolicyDecision,
    TelemetryEvent,
    TextSignals,
)
from dlphost.schema.wire import (
    decision_from_dict,
    decision_to_dict,
    event_from_dict,
    event_to_dict,
)

__all__ = [
    "Decision",
    "EventType",
    "FileSignals",
    "PolicyDecision",
    "TelemetryEvent",
    "TextSignals",
    "decision_from_dict",
    "decision_to_dict",
    "event_from_dict",
    "event_to_dict",
]
