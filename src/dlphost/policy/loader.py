"""Load PolicyConfig objects from JSON or YAML policy files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from dlphost.errors import PolicyLoadError
from dlphost.policy.models import (
    PolicyConditions,
    PolicyConfig,
    PolicyException,
    PolicyRule,
)
from dlphost.schema.models import Decision, EventType

logger = logging.getLogger(__name__)

POLICY_FILENAME = "policy.json"

_YAML_SUFFIXES = {".yaml", ".yml"}

_CONDITION_KEYS = {
    "event_type_in",
    "domain_in",
    "domain_not_in",
    "patterns_any",
    "text_length_min",
    "file_extension_in",
}

# Relative locations checked in each directory while walking up from the
# program's directory.
_SEARCH_CANDIDATES = (
    Path("policy") / POLICY_FILENAME,
    Path("agent") / "policy" / POLICY_FILENAME,
)


def load_policy(path: str | Path) -> PolicyConfig:
    """Load a policy file. The format is picked from the file suffix."""
    path = Path(path)
    data = read_policy_data(path)
    try:
        return _policy_from_data(data)
    except PolicyLoadError as exc:
        raise PolicyLoadError(path, exc.reason) from None


def load_policy_from_string(text: str, fmt: str = "json") -> PolicyConfig:
    """Parse a policy document held in memory."""
    return _policy_from_data(_parse(text, fmt))


def read_policy_data(path: str | Path) -> dict[str, Any]:
    """Read and parse a policy file into its raw mapping, without validation."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise PolicyLoadError(path, "Policy file not found") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise PolicyLoadError(path, f"Cannot read policy file: {exc}") from None

    fmt = "yaml" if path.suffix.lower() in _YAML_SUFFIXES else "json"
    try:
        return _parse(text, fmt)
    except PolicyLoadError as exc:
        raise PolicyLoadError(path, exc.reason) from None


def _policy_from_data(data: dict[str, Any]) -> PolicyConfig:
    policy = build_policy(data)
    for issue in lint_policy_data(data):
        logger.warning("Policy issue: %s", issue)
    return policy


def lint_policy_data(data: dict[str, Any]) -> list[str]:
    """Report configuration-quality problems that do not block loading.

    Unknown decision strings are evaluated as ``allow``; this is where they
    get surfaced instead.
    """
    issues: list[str] = []

    if "default" in data and not Decision.is_known(data["default"]):
        issues.append(
            f"default decision {data['default']!r} is not allow/warn/block; "
            "treated as allow"
        )

    seen: set[str] = set()
    for kind in ("exceptions", "rules"):
        entries = data.get(kind) or []
        if not isinstance(entries, list):
            continue
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                continue
            entry_id = entry.get("id")
            label = f"{kind}[{index}]" + (f" ({entry_id})" if entry_id else "")
            if not entry_id:
                issues.append(f"{label} has no id")
            elif entry_id in seen:
                issues.append(f"{label} reuses id {entry_id!r}")
            else:
                seen.add(entry_id)

            if not Decision.is_known(entry.get("decision")):
                issues.append(
                    f"{label} decision {entry.get('decision')!r} is not "
                    "allow/warn/block; treated as allow"
                )

            conditions = entry.get("conditions") or {}
            if not isinstance(conditions, dict):
                continue
            for key in sorted(set(conditions) - _CONDITION_KEYS):
                issues.append(f"{label} has unknown condition {key!r}; ignored")
            event_types = conditions.get("event_type_in") or []
            if isinstance(event_types, str):
                event_types = [event_types]
            for name in event_types:
                try:
                    EventType.from_wire(name)
                except ValueError:
                    issues.append(f"{label} matches unknown event type {name!r}")

    return issues


def discover_policy_file(start: str | Path) -> Path | None:
    """Find a policy file for a program installed in ``start``.

    Checks ``policy.json`` next to the program, then walks up from ``start``
    looking for ``policy/policy.json`` or ``agent/policy/policy.json``.
    """
    start = Path(start).resolve()
    beside = start / POLICY_FILENAME
    if beside.is_file():
        return beside

    for directory in (start, *start.parents):
        for relative in _SEARCH_CANDIDATES:
            candidate = directory / relative
            if candidate.is_file():
                return candidate
    return None


def _parse(text: str, fmt: str) -> dict[str, Any]:
    try:
        if fmt == "yaml":
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise PolicyLoadError(None, f"Cannot parse policy ({fmt}): {exc}") from None
    if not isinstance(data, dict):
        raise PolicyLoadError(None, "Policy document must be a mapping")
    return data


def build_policy(data: dict[str, Any]) -> PolicyConfig:
    """Validate the shape of a raw policy mapping and build a PolicyConfig."""
    exceptions = tuple(
        PolicyException(
            id=_text(entry.get("id")),
            description=_text(entry.get("description")),
            conditions=_parse_conditions(entry.get("conditions"), where),
            decision=Decision.parse(entry.get("decision")),
        )
        for where, entry in _entries(data, "exceptions")
    )
    rules = tuple(
        PolicyRule(
            id=_text(entry.get("id")),
            priority=_int(entry.get("priority", 0), f"{where}.priority"),
            description=_text(entry.get("description")),
            conditions=_parse_conditions(entry.get("conditions"), where),
            decision=Decision.parse(entry.get("decision")),
            reason=_text(entry.get("reason")),
        )
        for where, entry in _entries(data, "rules")
    )
    return PolicyConfig(
        policy_id=_text(data.get("policy_id")),
        policy_version=_text(data.get("policy_version")),
        default=Decision.parse(data.get("default")),
        exceptions=exceptions,
        rules=rules,
    )


def _entries(data: dict[str, Any], key: str) -> list[tuple[str, dict[str, Any]]]:
    raw = data.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise PolicyLoadError(None, f"'{key}' must be a list")
    entries = []
    for index, entry in enumerate(raw):
        where = f"{key}[{index}]"
        if not isinstance(entry, dict):
            raise PolicyLoadError(None, f"{where} must be a mapping")
        entries.append((where, entry))
    return entries


def _parse_conditions(raw: Any, where: str) -> PolicyConditions:
    if raw is None:
        return PolicyConditions()
    if not isinstance(raw, dict):
        raise PolicyLoadError(None, f"{where}.conditions must be a mapping")

    text_length_min = raw.get("text_length_min")
    if text_length_min is not None:
        text_length_min = _int(text_length_min, f"{where}.conditions.text_length_min")

    return PolicyConditions(
        event_type_in=_str_list(raw, "event_type_in", where),
        domain_in=_str_list(raw, "domain_in", where),
        domain_not_in=_str_list(raw, "domain_not_in", where),
        patterns_any=_str_list(raw, "patterns_any", where),
        text_length_min=text_length_min,
        file_extension_in=_str_list(raw, "file_extension_in", where),
    )


def _str_list(raw: dict[str, Any], key: str, where: str) -> tuple[str, ...]:
    value = raw.get(key)
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise PolicyLoadError(None, f"{where}.conditions.{key} must be a list of strings")
    return tuple(value)


def _int(value: Any, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PolicyLoadError(None, f"{where} must be an integer")
    return value


def _text(value: Any) -> str:
    return "" if value is None else str(value)
