"""CLI command: dlphost audit, summarise one day of the audit log."""

from __future__ import annotations

import json
import sys
from collections import Counter
from datetime import datetime, timezone

import click
from rich.console import Console
from rich.table import Table

from dlphost.audit.logger import audit_file_for, read_audit_entries
from dlphost.config import HostConfig

console = Console(stderr=True)


@click.command()
@click.option(
    "--date",
    "day",
    type=click.DateTime(formats=["%Y%m%d", "%Y-%m-%d"]),
    default=None,
    help="UTC day to summarise (default: today).",
)
@click.pass_context
def audit(ctx: click.Context, day: datetime | None) -> None:
    """Summarise the decisions recorded for one UTC day."""
    config = HostConfig.load(log_dir=ctx.obj.get("log_dir"))
    target = day.date() if day is not None else datetime.now(timezone.utc).date()
    path = audit_file_for(config.log_dir, target)
    if not path.is_file():
        console.print(f"No audit log for {target:%Y-%m-%d} in {config.log_dir}")
        sys.exit(1)

    decisions: Counter[str] = Counter()
    event_types: Counter[str] = Counter()
    total = 0
    try:
        for entry in read_audit_entries(path):
            total += 1
            decisions[entry.get("decision", "?")] += 1
            event_types[entry.get("event_type", "?")] += 1
    except json.JSONDecodeError as exc:
        console.print(f"[red]Corrupt audit line after {total} entries:[/red] {exc}")
        sys.exit(1)

    console.print(f"[bold]Audit log[/bold] {path}")
    console.print(f"  Entries: {total}\n")

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("Decision")
    table.add_column("Count", justify="right")
    for decision in ("allow", "warn", "block"):
        table.add_row(decision, str(decisions.pop(decision, 0)))
    for decision, count in sorted(decisions.items()):
        table.add_row(decision, str(count))
    console.print(table)

    types = Table(show_header=True, box=None, padding=(0, 2))
    types.add_column("Event type")
    types.add_column("Count", justify="right")
    for event_type, count in event_types.most_common():
        types.add_row(event_type, str(count))
    console.print(types)
