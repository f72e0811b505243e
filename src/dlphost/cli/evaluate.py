"""CLI command: dlphost evaluate <event.json>, a dry run of one decision."""

from __future__ import annotations

import json
import sys
from typing import IO

import click
from rich.console import Console

from dlphost.config import HostConfig
from dlphost.errors import MalformedEventPayload, PolicyLoadError
from dlphost.policy.evaluator import PolicyEvaluator, fallback_decision
from dlphost.policy.loader import load_policy
from dlphost.schema.wire import decision_to_dict, event_from_dict

console = Console(stderr=True)


@click.command()
@click.argument("event_file", type=click.File("r", encoding="utf-8"))
@click.pass_context
def evaluate(ctx: click.Context, event_file: IO[str]) -> None:
    """Evaluate a telemetry event (JSON file or - for stdin) against the policy.

    Accepts either a bare event or a full {"type": "event", "payload": ...}
    envelope. Prints the decision JSON on stdout.
    """
    try:
        data = json.load(event_file)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Not valid JSON:[/red] {exc}")
        sys.exit(2)

    if isinstance(data, dict) and data.get("type") == "event":
        data = data.get("payload")

    try:
        event = event_from_dict(data)
    except MalformedEventPayload as exc:
        console.print(f"[red]Malformed event:[/red] {exc}")
        sys.exit(2)

    config = HostConfig.load(policy_path=ctx.obj.get("policy_path"))
    if config.policy_path is None:
        console.print("[yellow]No policy file found; using the allow fallback.[/yellow]")
        decision = fallback_decision(event)
    else:
        try:
            policy = load_policy(config.policy_path)
        except PolicyLoadError as exc:
            console.print(f"[red]Policy not loaded:[/red] {exc}")
            sys.exit(1)
        decision = PolicyEvaluator(policy).evaluate(event)

    click.echo(json.dumps(decision_to_dict(decision), indent=2))
