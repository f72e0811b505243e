"""Policy models, loading and evaluation."""

from dlphost.policy.evaluator import PolicyEvaluator, evaluate, fallback_decision
from dlphost.policy.loader import discover_policy_file, load_policy, load_policy_from_string
from dlphost.policy.models import (
    PolicyConditions,
    PolicyConfig,
    PolicyException,
    PolicyRule,
    allow_all_policy,
)

__all__ = [
    "PolicyConditions",
    "PolicyConfig",
    "PolicyEvaluator",
    "PolicyException",
    "PolicyRule",
    "allow_all_policy",
    "discover_policy_file",
    "evaluate",
    "fallback_decision",
    "load_policy",
    "load_policy_from_string",
]
