from __future__ import annotations

import math
import os
import re
from pathlib import Path
from typing import Any, TypeVar

import typer
from pydantic import BaseModel, ValidationError

from rrfbridge.config import Settings, get_settings, resolve_config_path

_DURATION = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

PASSWORD_ENV = "RRF_PASSWORD"

# section -> (setting, environment variable)
ENV_OVERRIDES: dict[str, tuple[tuple[str, str], ...]] = {
    "device": (("password", PASSWORD_ENV),),
    "polling": (
        ("interval", "RRF_INTERVAL"),
        ("discovery_interval", "RRF_DISCOVERY_INTERVAL"),
    ),
    "mqtt": (
        ("broker", "RRF_BROKER"),
        ("client_id", "RRF_CLIENT_ID"),
        ("topic_prefix", "RRF_TOPIC_PREFIX"),
        ("discovery_prefix", "RRF_DISCOVERY_TOPIC_PREFIX"),
        ("keepalive", "RRF_KEEPALIVE"),
        ("connect_retry_delay", "RRF_CONNECT_RETRY_DELAY"),
    ),
}

ModelT = TypeVar("ModelT", bound=BaseModel)


def load_settings_or_exit() -> Settings:
    try:
        return get_settings()
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def resolve_config_path_or_exit(allow_missing: bool = False) -> tuple[Path, bool]:
    try:
        return resolve_config_path(allow_missing=allow_missing)
    except FileNotFoundError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


def parse_duration(value: str) -> float:
    """Seconds from ``90``, ``1.5``, ``500ms``, ``30s``, ``1h30m`` and the like.

    Only positive, finite durations are accepted.
    """
    text = value.strip()
    try:
        total = float(text)
    except ValueError:
        total = 0.0
        pos = 0
        for match in _DURATION.finditer(text):
            if match.start() != pos:
                break
            total += float(match.group(1)) * _UNITS[match.group(2)]
            pos = match.end()
        if pos == 0 or pos != len(text):
            raise typer.BadParameter(f"invalid duration: {value!r}") from None

    if not math.isfinite(total) or total <= 0:
        raise typer.BadParameter(f"duration must be positive: {value!r}")
    return total


def _override(model: ModelT, **values: Any) -> ModelT:
    changes = {key: value for key, value in values.items() if value is not None}
    if not changes:
        return model
    try:
        return type(model).model_validate({**model.model_dump(), **changes})
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise typer.BadParameter(problems) from exc


def apply_overrides(
    settings: Settings,
    *,
    broker: str | None = None,
    client_id: str | None = None,
    topic_prefix: str | None = None,
    discovery_prefix: str | None = None,
    keepalive: int | None = None,
    connect_retry_delay: str | None = None,
    interval: str | None = None,
    discovery_interval: str | None = None,
) -> Settings:
    """Layer command-line values over the config file.

    Every overridden section is validated again, so out-of-range values
    raise ``typer.BadParameter``.
    """
    mqtt = _override(
        settings.mqtt,
        broker=broker,
        client_id=client_id,
        topic_prefix=topic_prefix,
        discovery_prefix=discovery_prefix,
        keepalive=keepalive,
        connect_retry_delay=(
            parse_duration(connect_retry_delay) if connect_retry_delay else None
        ),
    )
    polling = _override(
        settings.polling,
        interval=parse_duration(interval) if interval else None,
        discovery_interval=(
            parse_duration(discovery_interval) if discovery_interval else None
        ),
    )
    return settings.model_copy(update={"mqtt": mqtt, "polling": polling})


def environment_overrides() -> dict[str, dict[str, str]]:
    """``RRF_*`` variables currently set, keyed by section and setting."""
    found: dict[str, dict[str, str]] = {}
    for section, pairs in ENV_OVERRIDES.items():
        for setting, name in pairs:
            value = os.environ.get(name)
            if value:
                found.setdefault(section, {})[setting] = value
    return found


def apply_environment(settings: Settings) -> Settings:
    """Settings as the ``bridge`` command would see them with no flags."""
    env = environment_overrides()
    mqtt = env.get("mqtt", {})
    keepalive = mqtt.get("keepalive")
    if keepalive is not None and not keepalive.isdigit():
        raise typer.BadParameter(f"RRF_KEEPALIVE must be an integer: {keepalive!r}")

    updated = apply_overrides(
        settings,
        keepalive=int(keepalive) if keepalive is not None else None,
        **{k: v for k, v in mqtt.items() if k != "keepalive"},
        **env.get("polling", {}),
    )
    password = env.get("device", {}).get("password")
    if password is None:
        return updated
    device = _override(updated.device, password=password)
    return updated.model_copy(update={"device": device})


def password_from_context(ctx: typer.Context, settings: Settings) -> str:
    password = (ctx.obj or {}).get("password")
    return settings.device.password if password is None else password
