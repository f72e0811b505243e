"""CLI command: dlphost manifest, print the browser's native host manifest."""

from __future__ import annotations

import json
from pathlib import Path

import click

DEFAULT_HOST_NAME = "com.browser_telemetry.agent"


def build_manifest(
    host_path: str | Path,
    extension_ids: list[str] | tuple[str, ...],
    name: str = DEFAULT_HOST_NAME,
) -> dict:
    """Manifest the browser reads to find and launch the host over stdio."""
    return {
        "name": name,
        "description": "Browser DLP native messaging host",
        "path": str(Path(host_path).resolve()),
        "type": "stdio",
        "allowed_origins": [f"chrome-extension://{ext}/" for ext in extension_ids],
    }


@click.command()
@click.option(
    "--extension-id",
    "extension_ids",
    multiple=True,
    required=True,
    help="Extension allowed to connect (repeatable).",
)
@click.option(
    "--host-path",
    type=click.Path(dir_okay=False),
    required=True,
    help="Absolute path of the dlp-native-host executable.",
)
@click.option("--name", default=DEFAULT_HOST_NAME, show_default=True, help="Host name.")
def manifest(extension_ids: tuple[str, ...], host_path: str, name: str) -> None:
    """Print the native messaging host manifest JSON."""
    click.echo(json.dumps(build_manifest(host_path, extension_ids, name), indent=2))
