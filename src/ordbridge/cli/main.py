"""
Main CLI entry point for ordbridge.

Every command operates on a JSON state file so that a relayer script, an
operator shell and the HTTP server all see the same bridge.
"""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console

from ordbridge.cli.bridge_commands import BRIDGE_COMMANDS
from ordbridge.core.logging_config import setup_logging

logger = logging.getLogger(__name__)
console = Console()

DEFAULT_STATE_FILE = "ordbridge-state.json"


@click.group()
@click.option(
    "--state",
    "state_path",
    envvar="ORDBRIDGE_STATE_FILE",
    default=DEFAULT_STATE_FILE,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Bridge state file",
)
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option(
    "--log-level",
    envvar="ORDBRIDGE_LOG_LEVEL",
    default="WARNING",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
)
@click.option(
    "--log-file",
    envvar="ORDBRIDGE_LOG_FILE",
    type=click.Path(dir_okay=False),
    help="Also write JSON logs to this rotating file",
)
@click.pass_context
def cli(ctx: click.Context, state_path: str, json_output: bool, log_level: str, log_file: str | None):
    """
    ordbridge - Bitcoin SPV verification bridge

    Relay headers and inclusion proofs, inspect claims and serve the bridge
    API from a local state file.
    """
    ctx.ensure_object(dict)
    setup_logging(level=log_level, log_file=log_file, environment="cli")
    ctx.obj["state_path"] = state_path
    ctx.obj["json_output"] = json_output


for _command in BRIDGE_COMMANDS:
    cli.add_command(_command)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == "__main__":
    main()
