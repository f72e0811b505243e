"""CLI commands that run the host: ``dlphost serve`` and ``dlp-native-host``."""

from __future__ import annotations

import logging
import sys

import click

from dlphost.cli import setup_logging
from dlphost.config import HostConfig
from dlphost.host.loop import serve as run_host

logger = logging.getLogger(__name__)


@click.command()
@click.pass_context
def serve(ctx: click.Context) -> None:
    """Run the native messaging host on stdin/stdout."""
    # The host log is the operational channel; keep INFO unless -v asked for more.
    if not ctx.obj.get("verbose"):
        logging.getLogger().setLevel(logging.INFO)
    config = HostConfig.load(
        policy_path=ctx.obj.get("policy_path"),
        log_dir=ctx.obj.get("log_dir"),
    )
    sys.exit(run_host(config))


@click.command(
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
@click.argument("browser_args", nargs=-1, type=click.UNPROCESSED)
def native_host(browser_args: tuple[str, ...]) -> None:
    """Entry point launched by the browser.

    Browsers pass the calling extension's origin and, on some platforms,
    ``--parent-window``; neither changes how the host behaves.
    """
    setup_logging(verbose=False, level=logging.INFO)
    if browser_args:
        logger.debug("Launched with browser arguments: %s", " ".join(browser_args))
    sys.exit(run_host(HostConfig.load()))
