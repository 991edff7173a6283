from __future__ import annotations

import json

import pytest
import typer
from typer.testing import CliRunner

import rrfbridge.cli.info as info_cmd
from rrfbridge.cli.app import app
from rrfbridge.cli.common import apply_overrides, parse_duration
from rrfbridge.config import MqttConfig, Settings, get_settings, write_settings
from rrfbridge.core import DeviceReport, TransportError
from rrfbridge.core.mock_device import mock_config, mock_status

runner = CliRunner()


def _fake_collect(calls):
    async def _collect(hosts, password, timeout):
        calls.append((hosts, password, timeout))
        return [DeviceReport(host, mock_config(), mock_status(2, 0)) for host in hosts]

    return _collect


def test_info_text(monkeypatch):
    calls = []
    monkeypatch.setattr(info_cmd, "_collect", _fake_collect(calls))

    result = runner.invoke(app, ["-p", "reprap", "info", "printer.local"])

    assert result.exit_code == 0
    assert "printer.local:" in result.stdout
    assert "Name: MockRRF" in result.stdout
    assert "Geometry: delta" in result.stdout
    assert "Axis 0: 100.00  (min=-100.00 max=100.00)" in result.stdout
    assert calls == [(["printer.local"], "reprap", 30.0)]


def test_info_json(monkeypatch):
    monkeypatch.setattr(info_cmd, "_collect", _fake_collect([]))

    result = runner.invoke(app, ["info", "a", "b", "-o", "json"])

    assert result.exit_code == 0
    document = json.loads(result.stdout)
    assert list(document) == ["a", "b"]
    assert document["a"]["status2"]["name"] == "MockRRF"
    assert document["b"]["config"]["firmwareVersion"] == "2.05.1"


def test_info_password_from_env(monkeypatch):
    calls = []
    monkeypatch.setattr(info_cmd, "_collect", _fake_collect(calls))
    monkeypatch.setenv("RRF_PASSWORD", "passw0rd")

    result = runner.invoke(app, ["info", "printer"])

    assert result.exit_code == 0
    assert calls[0][1] == "passw0rd"


def test_info_device_error_exits(monkeypatch):
    async def _failing(hosts, password, timeout):
        raise TransportError(hosts[0], "authenticate", "HTTP 401", status=401)

    monkeypatch.setattr(info_cmd, "_collect", _failing)

    result = runner.invoke(app, ["info", "printer"])

    assert result.exit_code == 1
    assert "authenticate failed for host printer: HTTP 401" in result.output


def test_bridge_rejects_bad_broker():
    result = runner.invoke(app, ["bridge", "printer", "--broker", "bogus://x"])
    assert result.exit_code == 1
    assert "invalid broker url" in result.output


def test_config_init_and_show(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    monkeypatch.setenv("RRF_BRIDGE_CONFIG", str(config_path))

    result = runner.invoke(app, ["config", "init"])
    assert result.exit_code == 0
    assert config_path.exists()

    again = runner.invoke(app, ["config", "init"])
    assert "Config already exists" in again.stdout

    get_settings.cache_clear()
    shown = runner.invoke(app, ["config", "show"])
    assert shown.exit_code == 0
    assert f"Config source: {config_path}" in shown.stdout
    assert 'broker = "tcp://127.0.0.1:1883"' in shown.stdout


def test_config_show_defaults():
    result = runner.invoke(app, ["config", "show"])
    assert result.exit_code == 0
    assert "Config source: defaults" in result.stdout


def test_missing_config_file_exits(tmp_path, monkeypatch):
    monkeypatch.setenv("RRF_BRIDGE_CONFIG", str(tmp_path / "missing.toml"))
    result = runner.invoke(app, ["info", "printer"])
    assert result.exit_code == 1
    assert "points to missing file" in result.output


def test_settings_file_feeds_info(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    write_settings(
        Settings.model_validate({"device": {"password": "fromfile", "timeout": 5}}),
        config_path,
    )
    monkeypatch.setenv("RRF_BRIDGE_CONFIG", str(config_path))
    calls = []
    monkeypatch.setattr(info_cmd, "_collect", _fake_collect(calls))

    result = runner.invoke(app, ["info", "printer"])

    assert result.exit_code == 0
    assert calls == [(["printer"], "fromfile", 5.0)]


@pytest.mark.parametrize(
    ("text", "seconds"),
    [
        ("60", 60.0),
        ("1.5", 1.5),
        ("500ms", 0.5),
        ("30s", 30.0),
        ("2m", 120.0),
        ("1h30m", 5400.0),
    ],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == seconds


@pytest.mark.parametrize("text", ["", "abc", "10x", "s10", "1h 30m"])
def test_parse_duration_rejects(text):
    with pytest.raises(typer.BadParameter):
        parse_duration(text)


def test_apply_overrides():
    settings = Settings(mqtt=MqttConfig(client_id="from-file"))

    updated = apply_overrides(
        settings,
        broker="tcp://broker.lan:1884",
        interval="10s",
        discovery_interval="1h",
    )

    assert updated.mqtt.broker == "tcp://broker.lan:1884"
    assert updated.mqtt.client_id == "from-file"
    assert updated.polling.interval == 10.0
    assert updated.polling.discovery_interval == 3600.0
    assert updated.polling.queue_size == settings.polling.queue_size


def test_apply_overrides_without_values_keeps_settings():
    settings = Settings()
    assert apply_overrides(settings) == settings


@pytest.mark.parametrize("text", ["0", "-5", "0s", "0ms", "inf", "nan"])
def test_parse_duration_requires_positive(text):
    with pytest.raises(typer.BadParameter):
        parse_duration(text)


@pytest.mark.parametrize("interval", ["0", "-5"])
def test_bridge_rejects_non_positive_interval(interval, monkeypatch):
    started = []
    monkeypatch.setattr(
        "rrfbridge.cli.bridge.Bridge.serve", lambda self: started.append(self)
    )

    result = runner.invoke(app, ["bridge", "printer", f"--interval={interval}"])

    assert result.exit_code == 2
    assert "duration must be positive" in result.output
    assert started == []


def test_bridge_rejects_non_positive_interval_from_env(monkeypatch):
    monkeypatch.setenv("RRF_INTERVAL", "-5")
    result = runner.invoke(app, ["bridge", "printer"])
    assert result.exit_code == 2
    assert "duration must be positive" in result.output


def test_apply_overrides_validates_sections():
    with pytest.raises(typer.BadParameter, match="keepalive"):
        apply_overrides(Settings(), keepalive=70000)
    with pytest.raises(typer.BadParameter):
        apply_overrides(Settings(), connect_retry_delay="0")


def test_config_show_lists_environment_overrides(monkeypatch):
    monkeypatch.setenv("RRF_BROKER", "tcp://env-broker:1884")
    monkeypatch.setenv("RRF_INTERVAL", "15s")
    monkeypatch.setenv("RRF_PASSWORD", "hunter2")

    plain = runner.invoke(app, ["config", "show"])
    assert plain.exit_code == 0
    assert 'broker = "tcp://127.0.0.1:1883"' in plain.stdout
    assert "[mqtt] broker <- RRF_BROKER=tcp://env-broker:1884" in plain.stdout
    assert "[polling] interval <- RRF_INTERVAL=15s" in plain.stdout
    assert "hunter2" not in plain.stdout

    effective = runner.invoke(app, ["config", "show", "--effective"])
    assert effective.exit_code == 0
    assert 'broker = "tcp://env-broker:1884"' in effective.stdout
    assert "interval = 15.0" in effective.stdout
    assert 'password = "********"' in effective.stdout
    assert "hunter2" not in effective.stdout


def test_config_show_without_overrides():
    result = runner.invoke(app, ["config", "show"])
    assert "No RRF_* overrides set." in result.stdout


def test_config_path(tmp_path, monkeypatch):
    config_path = tmp_path / "bridge.toml"
    monkeypatch.setenv("RRF_BRIDGE_CONFIG", str(config_path))

    result = runner.invoke(app, ["config", "path"])

    assert result.exit_code == 0
    assert result.stdout.strip() == f"{config_path} (missing)"


def test_config_init_with_broker(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    monkeypatch.setenv("RRF_BRIDGE_CONFIG", str(config_path))

    result = runner.invoke(app, ["config", "init", "--broker", "ssl://mqtt.lan"])

    assert result.exit_code == 0
    assert 'broker = "ssl://mqtt.lan"' in config_path.read_text()


def test_config_init_rejects_bad_broker(tmp_path, monkeypatch):
    config_path = tmp_path / "config.toml"
    monkeypatch.setenv("RRF_BRIDGE_CONFIG", str(config_path))

    result = runner.invoke(app, ["config", "init", "--broker", "mqtt.lan"])

    assert result.exit_code == 1
    assert not config_path.exists()
