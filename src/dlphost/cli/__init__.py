"""CLI entry point: Click group with global options."""

from __future__ import annotations

import logging
import sys

import click

from dlphost import __version__

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(verbose: bool, level: int = logging.WARNING) -> None:
    """Send diagnostics to stderr. stdout belongs to the framed protocol."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


@click.group()
@click.version_option(version=__version__, prog_name="dlphost")
@click.option(
    "--policy",
    "-p",
    type=click.Path(dir_okay=False),
    help="Path to a JSON or YAML policy file (default: discovered).",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False),
    help="Directory for audit logs (default: discovered).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.pass_context
def main(
    ctx: click.Context, policy: str | None, log_dir: str | None, verbose: bool
) -> None:
    """dlphost: browser DLP native messaging host."""
    ctx.ensure_object(dict)
    ctx.obj["policy_path"] = policy
    ctx.obj["log_dir"] = log_dir
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


def _register_commands() -> None:
    from dlphost.cli.audit import audit  # noqa: F811
    from dlphost.cli.check import check_policy  # noqa: F811
    from dlphost.cli.evaluate import evaluate  # noqa: F811
    from dlphost.cli.manifest import manifest  # noqa: F811
    from dlphost.cli.serve import serve  # noqa: F811

    main.add_command(serve)
    main.add_command(check_policy)
    main.add_command(evaluate)
    main.add_command(audit)
    main.add_command(manifest)


_register_commands()
