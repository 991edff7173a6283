from __future__ import annotations

from typing import Annotated

import typer

from rrfbridge.config import Settings, render_settings_toml, write_settings
from rrfbridge.core import BrokerAddressError, parse_broker

from .common import (
    ENV_OVERRIDES,
    PASSWORD_ENV,
    apply_environment,
    environment_overrides,
    load_settings_or_exit,
    resolve_config_path_or_exit,
)

app = typer.Typer(
    no_args_is_help=True,
    help="Show, locate or create the bridge config file.",
)

REDACTED = "********"


def redact(settings: Settings) -> Settings:
    if not settings.device.password:
        return settings
    device = settings.device.model_copy(update={"password": REDACTED})
    return settings.model_copy(update={"device": device})


@app.command("show")
def show_config(
    effective: Annotated[
        bool,
        typer.Option(
            "--effective",
            "-e",
            help="Apply RRF_* environment overrides to the printed values",
        ),
    ] = False,
) -> None:
    """Print the settings and the RRF_* variables that override them."""
    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    source = str(path) if exists else "defaults"
    typer.echo(f"Config source: {source}")

    overrides = environment_overrides()
    if effective:
        settings = apply_environment(settings)
    typer.echo(render_settings_toml(redact(settings)))

    if not overrides:
        typer.echo("No RRF_* overrides set.")
        return

    typer.echo("Overridden by environment:")
    for section, pairs in ENV_OVERRIDES.items():
        for setting, name in pairs:
            value = overrides.get(section, {}).get(setting)
            if value is None:
                continue
            shown = REDACTED if name == PASSWORD_ENV else value
            typer.echo(f"  [{section}] {setting} <- {name}={shown}")


@app.command("path")
def config_path() -> None:
    """Print where the config file is read from."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)
    typer.echo(f"{path}{'' if exists else ' (missing)'}")


@app.command("init")
def init_config(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing config"),
    ] = False,
    broker: Annotated[
        str | None,
        typer.Option("--broker", help="MQTT broker URL to write"),
    ] = None,
) -> None:
    """Write a config file with default settings."""
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    if exists and not force:
        typer.echo(f"Config already exists at {path}")
        return

    settings = Settings()
    if broker is not None:
        try:
            parse_broker(broker)
        except BrokerAddressError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc
        mqtt = settings.mqtt.model_copy(update={"broker": broker})
        settings = settings.model_copy(update={"mqtt": mqtt})

    write_settings(settings, path)
    typer.echo(f"Wrote default config to {path}")
