"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from dlphost.policy.models import (
    PolicyConditions,
    PolicyConfig,
    PolicyException,
    PolicyRule,
)
from dlphost.schema.models import (
    Decision,
    EventType,
    FileSignals,
    PolicyDecision,
    TelemetryEvent,
    TextSignals,
)


@pytest.fixture
def fixtures_dir() -> Path:
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def policy_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "policy.json"


@pytest.fixture
def yaml_policy_path(fixtures_dir: Path) -> Path:
    return fixtures_dir / "policy.yaml"


@pytest.fixture
def sample_policy() -> PolicyConfig:
    return PolicyConfig(
        policy_id="test-policy",
        policy_version="1.0.0",
        default=Decision.ALLOW,
        exceptions=(
            PolicyException(
                id="exc-internal",
                description="Allow internal domains",
                conditions=PolicyConditions(domain_in=("internal.company.com",)),
                decision=Decision.ALLOW,
            ),
        ),
        rules=(
            PolicyRule(
                id="rule-sensitive",
                priority=100,
                description="Warn on sensitive patterns",
                conditions=PolicyConditions(
                    event_type_in=("CLIPBOARD_PASTE",),
                    patterns_any=("CREDIT_CARD", "KR_RRN"),
                ),
                decision=Decision.WARN,
                reason="Sensitive data detected",
            ),
            PolicyRule(
                id="rule-large-paste",
                priority=90,
                description="Warn on large paste",
                conditions=PolicyConditions(
                    event_type_in=("CLIPBOARD_PASTE",),
                    text_length_min=5000,
                ),
                decision=Decision.WARN,
                reason="Large paste detected",
            ),
            PolicyRule(
                id="rule-block-exe",
                priority=100,
                description="Block exe uploads",
                conditions=PolicyConditions(
                    event_type_in=("FILE_UPLOAD_ATTEMPT",),
                    file_extension_in=(".exe", ".bat"),
                ),
                decision=Decision.BLOCK,
                reason="Executable upload blocked",
            ),
        ),
    )


def _make_event(
    event_id: str = "test-evt",
    event_type: EventType = EventType.CLIPBOARD_PASTE,
    domain: str = "example.com",
    patterns: tuple[str, ...] = (),
    text_length: int | None = 100,
    file_extension: str | None = None,
) -> TelemetryEvent:
    text_signals = None
    if text_length is not None:
        text_signals = TextSignals(
            length=text_length,
            sha256_prefix="AAAAAAAAAAA=",
            patterns=frozenset(patterns),
        )
    file_signals = None
    if file_extension is not None:
        file_signals = FileSignals(
            file_name=f"file{file_extension}",
            extension=file_extension,
            mime_type="application/octet-stream",
            size_bytes=1024,
        )
    return TelemetryEvent(
        event_id=event_id,
        event_type=event_type,
        timestamp="2025-01-01T00:00:00Z",
        url=f"https://{domain}/page",
        domain=domain,
        tab_id=1,
        correlation_id="cor-test",
        text_signals=text_signals,
        file_signals=file_signals,
    )


@pytest.fixture
def make_event() -> Callable[..., TelemetryEvent]:
    return _make_event


@pytest.fixture
def warn_decision() -> PolicyDecision:
    return PolicyDecision(
        event_id="test-evt",
        decision=Decision.WARN,
        policy_id="test-policy",
        policy_version="1.0.0",
        decision_reason="[rule-sensitive] Sensitive data detected",
    )
