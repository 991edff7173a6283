from __future__ import annotations

import json
import os
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .paths import APP_NAME, default_config_path, expand_path

CONFIG_ENV_VAR = "RRF_BRIDGE_CONFIG"


class DeviceConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    password: str = ""
    timeout: float = Field(default=30.0, gt=0)


class PollingConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    interval: float = Field(default=60.0, gt=0)
    discovery_interval: float = Field(default=3600.0, gt=0)
    queue_size: int = Field(default=300, ge=1)
    shutdown_grace: float = Field(default=5.0, ge=0)


class MqttConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    broker: str = "tcp://127.0.0.1:1883"
    client_id: str = APP_NAME
    topic_prefix: str = APP_NAME
    discovery_prefix: str = "homeassistant"
    keepalive: int = Field(default=30, ge=0, le=65535)
    connect_retry_delay: float = Field(default=10.0, gt=0)


class MockConfig(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    host: str = "127.0.0.1"
    port: int = Field(default=8888, ge=1, le=65535)


class Settings(BaseModel):
    model_config = {"frozen": True, "extra": "forbid"}

    device: DeviceConfig = Field(default_factory=DeviceConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    mqtt: MqttConfig = Field(default_factory=MqttConfig)
    mock: MockConfig = Field(default_factory=MockConfig)


def resolve_config_path(allow_missing: bool = False) -> tuple[Path, bool]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = expand_path(env_path)
        if not allow_missing and not path.exists():
            raise FileNotFoundError(f"{CONFIG_ENV_VAR} points to missing file: {path}")
        return path, path.exists()

    path = default_config_path()
    return path, path.exists()


def load_settings(path: Path) -> Settings:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Invalid TOML in config file: {path}\n{exc}") from exc

    try:
        return Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ValueError(f"Invalid config file: {path}\n{exc}") from exc


@lru_cache
def get_settings() -> Settings:
    path, exists = resolve_config_path(allow_missing=False)
    if exists:
        return load_settings(path)
    return Settings()


def _toml_string(value: str) -> str:
    return json.dumps(value)


def render_settings_toml(settings: Settings) -> str:
    lines = [
        "# rrf-bridge configuration",
        "",
        "[device]",
        f"password = {_toml_string(settings.device.password)}",
        f"timeout = {settings.device.timeout}",
        "",
        "[polling]",
        f"interval = {settings.polling.interval}",
        f"discovery_interval = {settings.polling.discovery_interval}",
        f"queue_size = {settings.polling.queue_size}",
        f"shutdown_grace = {settings.polling.shutdown_grace}",
        "",
        "[mqtt]",
        f"broker = {_toml_string(settings.mqtt.broker)}",
        f"client_id = {_toml_string(settings.mqtt.client_id)}",
        f"topic_prefix = {_toml_string(settings.mqtt.topic_prefix)}",
        f"discovery_prefix = {_toml_string(settings.mqtt.discovery_prefix)}",
        f"keepalive = {settings.mqtt.keepalive}",
        f"connect_retry_delay = {settings.mqtt.connect_retry_delay}",
        "",
        "[mock]",
        f"host = {_toml_string(settings.mock.host)}",
        f"port = {settings.mock.port}",
        "",
    ]
    return "\n".join(lines)


def write_settings(settings: Settings, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_settings_toml(settings))
