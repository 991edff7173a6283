from __future__ import annotations

from typing import Annotated

import typer

from rrfbridge.utils.logging import setup_logging

from . import config as config_cmd
from .bridge import register as register_bridge
from .info import register as register_info
from .mock import register as register_mock

app = typer.Typer(
    help="rrf-bridge - RepRapFirmware to Home Assistant MQTT bridge",
    no_args_is_help=True,
)

app.add_typer(config_cmd.app, name="config")

register_info(app)
register_mock(app)
register_bridge(app)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit"),
    ] = False,
    password: Annotated[
        str | None,
        typer.Option(
            "--password",
            "-p",
            envvar="RRF_PASSWORD",
            help="Password for the printer(s)",
        ),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", "-d", envvar="RRF_DEBUG", help="Enable debug logging"),
    ] = False,
) -> None:
    """rrf-bridge CLI."""
    setup_logging("DEBUG" if debug else None)
    ctx.obj = {"password": password}

    if version:
        from importlib.metadata import version as get_version

        typer.echo(f"rrf-bridge version {get_version('rrf-bridge')}")
        raise typer.Exit()
