"""Policy data models: immutable dataclasses loaded once at host startup."""

from __future__ import annotations

from dataclasses import dataclass, field

from dlphost.schema.models import Decision

ALLOW_ALL_POLICY_ID = "none"


@dataclass(frozen=True)
class PolicyConditions:
    """Predicates ANDed together. An empty field imposes no constraint."""

    event_type_in: tuple[str, ...] = ()
    domain_in: tuple[str, ...] = ()
    domain_not_in: tuple[str, ...] = ()
    patterns_any: tuple[str, ...] = ()
    text_length_min: int | None = None
    file_extension_in: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.event_type_in
            or self.domain_in
            or self.domain_not_in
            or self.patterns_any
            or self.text_length_min is not None
            or self.file_extension_in
        )


@dataclass(frozen=True)
class PolicyException:
    """An allowlisting entry checked before any rule. First match wins."""

    id: str
    decision: Decision = Decision.ALLOW
    description: str = ""
    conditions: PolicyConditions = field(default_factory=PolicyConditions)


@dataclass(frozen=True)
class PolicyRule:
    """A rule evaluated in descending priority order."""

    id: str
    decision: Decision = Decision.ALLOW
    priority: int = 0
    description: str = ""
    reason: str = ""
    conditions: PolicyConditions = field(default_factory=PolicyConditions)


@dataclass(frozen=True)
class PolicyConfig:
    """A complete policy document."""

    policy_id: str = ""
    policy_version: str = ""
    default: Decision = Decision.ALLOW
    exceptions: tuple[PolicyException, ...] = ()
    rules: tuple[PolicyRule, ...] = ()


def allow_all_policy() -> PolicyConfig:
    """Fallback used when no policy file could be loaded."""
    return PolicyConfig(
        policy_id=ALLOW_ALL_POLICY_ID,
        policy_version="0",
        default=Decision.ALLOW,
    )
