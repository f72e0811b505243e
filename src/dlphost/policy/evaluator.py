"""Policy decision point: matches telemetry events against compiled conditions."""

from __future__ import annotations

from dataclasses import dataclass

from dlphost.policy.models import (
    PolicyConditions,
    PolicyConfig,
    PolicyException,
    PolicyRule,
    allow_all_policy,
)
from dlphost.schema.models import Decision, PolicyDecision, TelemetryEvent

DEFAULT_REASON = "No matching rule — default policy applied"
NO_POLICY_REASON = "No policy loaded — default allow"


@dataclass(frozen=True)
class _CompiledConditions:
    """Conditions with lookup sets built once, so evaluation never allocates."""

    event_types: frozenset[str]
    domains_in: frozenset[str]
    domains_not_in: frozenset[str]
    patterns: frozenset[str]
    text_length_min: int | None
    extensions: frozenset[str]


class PolicyEvaluator:
    """Evaluates events against one immutable policy.

    Exceptions are checked in declared order, then rules by priority
    (highest first), then the policy default. Rules with equal priority
    keep their declaration order.
    """

    def __init__(self, config: PolicyConfig) -> None:
        self.config = config
        self._exceptions: list[tuple[PolicyException, _CompiledConditions]] = [
            (exc, _compile(exc.conditions)) for exc in config.exceptions
        ]
        # sorted() is stable, so ties stay in declaration order.
        ordered = sorted(config.rules, key=lambda r: r.priority, reverse=True)
        self._rules: list[tuple[PolicyRule, _CompiledConditions]] = [
            (rule, _compile(rule.conditions)) for rule in ordered
        ]

    @property
    def ordered_rules(self) -> tuple[PolicyRule, ...]:
        """Rules in the order they are evaluated."""
        return tuple(rule for rule, _ in self._rules)

    def evaluate(self, event: TelemetryEvent) -> PolicyDecision:
        for exc, cond in self._exceptions:
            if _matches(cond, event):
                return self._decide(event, exc.decision, exc.id, exc.description)

        for rule, cond in self._rules:
            if _matches(cond, event):
                return self._decide(event, rule.decision, rule.id, rule.reason)

        return self._decide(event, self.config.default, "default", DEFAULT_REASON)

    def _decide(
        self,
        event: TelemetryEvent,
        decision: Decision | str | None,
        source_id: str,
        reason: str,
    ) -> PolicyDecision:
        return PolicyDecision(
            event_id=event.event_id,
            decision=Decision.parse(decision),
            policy_id=self.config.policy_id,
            policy_version=self.config.policy_version,
            decision_reason=f"[{source_id}] {reason}",
        )


def evaluate(config: PolicyConfig, event: TelemetryEvent) -> PolicyDecision:
    """One-shot evaluation. Prefer a long-lived PolicyEvaluator on hot paths."""
    return PolicyEvaluator(config).evaluate(event)


def fallback_decision(event: TelemetryEvent) -> PolicyDecision:
    """Decision returned when the host is running without a policy."""
    policy = allow_all_policy()
    return PolicyDecision(
        event_id=event.event_id,
        decision=policy.default,
        policy_id=policy.policy_id,
        policy_version=policy.policy_version,
        decision_reason=f"[{policy.policy_id}] {NO_POLICY_REASON}",
    )


def _compile(conditions: PolicyConditions) -> _CompiledConditions:
    return _CompiledConditions(
        event_types=frozenset(t.upper() for t in conditions.event_type_in),
        domains_in=frozenset(d.lower() for d in conditions.domain_in),
        domains_not_in=frozenset(d.lower() for d in conditions.domain_not_in),
        patterns=frozenset(conditions.patterns_any),
        text_length_min=conditions.text_length_min,
        extensions=frozenset(e.lower() for e in conditions.file_extension_in),
    )


def _matches(cond: _CompiledConditions, event: TelemetryEvent) -> bool:
    if cond.event_types and event.event_type.wire not in cond.event_types:
        return False

    domain = event.domain.lower()
    if cond.domains_in and domain not in cond.domains_in:
        return False
    if cond.domains_not_in and domain in cond.domains_not_in:
        return False

    if cond.patterns:
        detected = event.text_signals.patterns if event.text_signals else frozenset()
        if cond.patterns.isdisjoint(detected):
            return False

    if cond.text_length_min is not None:
        length = event.text_signals.length if event.text_signals else 0
        if length < cond.text_length_min:
            return False

    if cond.extensions:
        ext = event.file_signals.extension.lower() if event.file_signals else ""
        if ext not in cond.extensions:
            return False

    return True
