"""Flatten a poll result into the variables published to Home Assistant."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rrfbridge.models import PollResult, Variable
from rrfbridge.models.wire import (
    BUSY,
    CONFIGURING,
    FLASHING,
    HALTED,
    IDLE,
    PAUSING,
    PRINTING,
    RESUMING,
    STOPPED,
    TOOL_CHANGING,
)

from .messages import topic_safe

CELSIUS = "°C"
VOLTS = "V"
SECONDS = "s"
MM_PER_SECOND = "mm/s"

TEMPERATURE = "temperature"
VOLTAGE = "voltage"
DURATION = "duration"

# Sensors report 2000 when no thermistor is connected.
DISCONNECTED_TEMPERATURE = 1000

# 0 unknown, 1 idle, 2 exception, 3 printing
STATE_CODES = {
    CONFIGURING: 1,
    IDLE: 1,
    BUSY: 1,
    PRINTING: 3,
    PAUSING: 3,
    STOPPED: 2,
    RESUMING: 3,
    HALTED: 2,
    FLASHING: 2,
    TOOL_CHANGING: 3,
}


@dataclass(frozen=True)
class Field:
    name: str
    accessor: Callable[[PollResult], Any]
    units: str | None = None
    device_class: str | None = None
    icon: str | None = None

    def extract(self, result: PollResult) -> Variable | None:
        value = self.accessor(result)
        if value is None:
            return None
        return Variable(
            field=self.name,
            value=value,
            units=self.units,
            device_class=self.device_class,
            icon=self.icon,
        )


def _mcu(attr: str) -> Callable[[PollResult], Any]:
    def accessor(result: PollResult) -> Any:
        group = result.status.mcu_temp
        return None if group is None else getattr(group, attr)

    return accessor


def _vin(attr: str) -> Callable[[PollResult], Any]:
    def accessor(result: PollResult) -> Any:
        group = result.status.vin
        return None if group is None else getattr(group, attr)

    return accessor


FIELDS: tuple[Field, ...] = (
    Field("state", lambda r: r.status.state_label),
    Field("state_code", lambda r: STATE_CODES.get(r.status.status, 0)),
    Field(
        "file_time_remaining",
        lambda r: r.progress.times_left.file,
        SECONDS,
        DURATION,
    ),
    Field(
        "filament_time_remaining",
        lambda r: r.progress.times_left.filament,
        SECONDS,
        DURATION,
    ),
    Field(
        "layer_time_remaining",
        lambda r: r.progress.times_left.layer,
        SECONDS,
        DURATION,
    ),
    Field("mcu_temp_min", _mcu("min"), CELSIUS, TEMPERATURE),
    Field("mcu_temp_cur", _mcu("cur"), CELSIUS, TEMPERATURE),
    Field("mcu_temp_max", _mcu("max"), CELSIUS, TEMPERATURE),
    Field("vin_min", _vin("min"), VOLTS, VOLTAGE),
    Field("vin_cur", _vin("cur"), VOLTS, VOLTAGE),
    Field("vin_max", _vin("max"), VOLTS, VOLTAGE),
    Field("geometry", lambda r: r.status.geometry),
    Field("layer", lambda r: r.progress.current_layer, icon="mdi:layers-triple"),
    Field(
        "speed_requested",
        lambda r: r.status.speeds.requested,
        MM_PER_SECOND,
        icon="mdi:speedometer",
    ),
    Field(
        "speed_top",
        lambda r: r.status.speeds.top,
        MM_PER_SECOND,
        icon="mdi:speedometer",
    ),
)

AXES = ("x", "y", "z")

# "t" carries the timestamp in the state payload.
RESERVED_FIELDS = frozenset({"t"})

_NON_FIELD_CHARS = re.compile(r"[^a-z0-9_]+")


def _axis_variables(result: PollResult) -> list[Variable]:
    xyz = result.status.coordinates.xyz
    if len(xyz) != len(AXES):
        return []
    return [
        Variable(field=axis, value=value, icon=f"mdi:axis-{axis}-arrow")
        for axis, value in zip(AXES, xyz)
    ]


def _extruder_variables(result: PollResult) -> list[Variable]:
    return [
        Variable(field=f"e{i}", value=value, icon="mdi:printer-3d-nozzle")
        for i, value in enumerate(result.status.coordinates.extruder)
    ]


def field_slug(name: str) -> str:
    """Reduce a sensor name to ``[a-z0-9_]`` so it works in value templates."""
    slug = _NON_FIELD_CHARS.sub("_", topic_safe(name)).strip("_")
    if slug[:1].isdigit():
        slug = f"temp_{slug}"
    return slug


def _free_name(base: str, used: set[str]) -> str:
    name = base
    suffix = 1
    while name in used:
        name = f"{base}_{suffix}"
        suffix += 1
    return name


def sensor_field(index: int, names: list[str], used: set[str]) -> str:
    """Field name for temperature sensor ``index``, unique within ``used``.

    Uses the reported sensor name when there is one; a name that would clash
    with an existing field gets a ``temp_`` prefix, and ``temp<index>`` is the
    fallback.
    """
    name = field_slug(names[index]) if index < len(names) else ""
    if name:
        for candidate in (name, f"temp_{name}"):
            if candidate not in used:
                return candidate
    return _free_name(f"temp{index}", used)


def _temperature_variables(result: PollResult, used: set[str]) -> list[Variable]:
    temps = result.status.temps
    variables = []
    for i, current in enumerate(temps.current):
        if current > DISCONNECTED_TEMPERATURE:
            continue
        field = sensor_field(i, temps.names, used)
        used.add(field)
        variables.append(
            Variable(
                field=field,
                value=current,
                units=CELSIUS,
                device_class=TEMPERATURE,
            )
        )
    return variables


def extract_variables(result: PollResult) -> list[Variable]:
    """Return the variables for ``result`` in discovery order."""
    variables = [v for v in (f.extract(result) for f in FIELDS) if v is not None]
    variables.extend(_axis_variables(result))
    variables.extend(_extruder_variables(result))

    used = set(RESERVED_FIELDS)
    used.update(v.field for v in variables)
    variables.extend(_temperature_variables(result, used))
    return variables
