"""CLI command: dlphost check-policy, load, lint and list a policy."""

from __future__ import annotations

import sys

import click
from rich.console import Console
from rich.table import Table

from dlphost.config import HostConfig
from dlphost.errors import PolicyLoadError
from dlphost.policy.evaluator import PolicyEvaluator
from dlphost.policy.loader import build_policy, lint_policy_data, read_policy_data
from dlphost.policy.models import PolicyConditions

console = Console(stderr=True)

_DECISION_STYLE = {"allow": "green", "warn": "yellow", "block": "red"}


@click.command("check-policy")
@click.option("--strict", is_flag=True, help="Exit non-zero if any issue is found.")
@click.pass_context
def check_policy(ctx: click.Context, strict: bool) -> None:
    """Validate the policy file and show its evaluation order."""
    config = HostConfig.load(policy_path=ctx.obj.get("policy_path"))
    if config.policy_path is None:
        console.print("[red]No policy file found.[/red] Pass one with --policy.")
        sys.exit(1)

    try:
        data = read_policy_data(config.policy_path)
        policy = build_policy(data)
    except PolicyLoadError as exc:
        console.print(f"[red]Policy not loaded:[/red] {exc}")
        sys.exit(1)

    console.print(
        f"[bold]Policy[/bold] [cyan]{policy.policy_id or '(no id)'}[/cyan] "
        f"v{policy.policy_version or '?'} from {config.policy_path}"
    )
    console.print(f"  Default: {_styled(policy.default.wire)}\n")

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("#", style="dim")
    table.add_column("Kind")
    table.add_column("ID", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Decision")
    table.add_column("Conditions")

    step = 0
    for exc in policy.exceptions:
        step += 1
        table.add_row(
            str(step),
            "exception",
            exc.id,
            "",
            _styled(exc.decision.wire),
            _describe(exc.conditions),
        )
    for rule in PolicyEvaluator(policy).ordered_rules:
        step += 1
        table.add_row(
            str(step),
            "rule",
            rule.id,
            str(rule.priority),
            _styled(rule.decision.wire),
            _describe(rule.conditions),
        )
    console.print(table)

    issues = lint_policy_data(data)
    if not issues:
        console.print("\n[green]No issues found.[/green]")
        return

    console.print(f"\n[yellow]{len(issues)} issue(s):[/yellow]")
    for issue in issues:
        console.print(f"  - {issue}")
    if strict:
        sys.exit(1)


def _styled(decision: str) -> str:
    style = _DECISION_STYLE.get(decision, "white")
    return f"[{style}]{decision}[/{style}]"


def _describe(conditions: PolicyConditions) -> str:
    if conditions.is_empty:
        return "[dim]always[/dim]"
    parts = []
    if conditions.event_type_in:
        parts.append("type in " + ", ".join(conditions.event_type_in))
    if conditions.domain_in:
        parts.append("domain in " + ", ".join(conditions.domain_in))
    if conditions.domain_not_in:
        parts.append("domain not in " + ", ".join(conditions.domain_not_in))
    if conditions.patterns_any:
        parts.append("patterns any " + ", ".join(conditions.patterns_any))
    if conditions.text_length_min is not None:
        parts.append(f"length >= {conditions.text_length_min}")
    if conditions.file_extension_in:
        parts.append("extension in " + ", ".join(conditions.file_extension_in))
    return "; ".join(parts)
