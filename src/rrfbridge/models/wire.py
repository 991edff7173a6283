"""Models for the JSON documents served by RepRapFirmware's ``rr_*`` endpoints."""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
)


def _to_rrf_bool(value: Any) -> bool:
    # The firmware encodes booleans as 0/1; anything but 1 reads as false.
    return value in (1, "1", True)


def _to_fan_rpms(value: Any) -> list[float]:
    # Older firmware reports a single number instead of a list.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return [float(value)]
    if not isinstance(value, list):
        raise ValueError(f"invalid fanRPM value: {value!r}")
    rpms = []
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise ValueError(f"invalid fanRPM element: {item!r}")
        rpms.append(float(item))
    return rpms


RRFBool = Annotated[
    bool,
    BeforeValidator(_to_rrf_bool),
    PlainSerializer(int, return_type=int),
]
FanRPMs = Annotated[list[float], BeforeValidator(_to_fan_rpms)]


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        """Dump using the firmware's field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AuthResponse(WireModel):
    error_code: int = Field(default=0, alias="err")
    session_timeout: float | None = Field(default=None, alias="sessionTimeout")
    board_type: str | None = Field(default=None, alias="boardType")


class ConfigResponse(WireModel):
    axis_mins: list[float] = Field(default_factory=list, alias="axisMins")
    axis_maxes: list[float] = Field(default_factory=list, alias="axisMaxes")
    accelerations: list[float] = Field(default_factory=list)
    currents: list[float] = Field(default_factory=list)
    firmware_electronics: str = Field(default="", alias="firmwareElectronics")
    firmware_name: str = Field(default="", alias="firmwareName")
    firmware_version: str = Field(default="", alias="firmwareVersion")
    dws_version: str = Field(default="", alias="dwsVersion")
    firmware_date: str = Field(default="", alias="firmwareDate")
    sys_dir: str = Field(default="", alias="sysdir")
    idle_current_factor: float = Field(default=0, alias="idleCurrentFactor")
    idle_timeout: float = Field(default=0, alias="idleTimeout")
    min_feed_rates: list[float] = Field(default_factory=list, alias="minFeedrates")
    max_feed_rates: list[float] = Field(default_factory=list, alias="maxFeedrates")

    @property
    def software_version(self) -> str:
        return f"{self.firmware_name} v{self.firmware_version} ({self.firmware_date})"


class StatusCoords(WireModel):
    axes_homed: list[RRFBool] = Field(default_factory=list, alias="axesHomed")
    extruder: list[float] = Field(default_factory=list, alias="extr")
    workplace_system: int = Field(default=0, alias="wpl")
    xyz: list[float] = Field(default_factory=list)
    machine: list[float] = Field(default_factory=list)


class Speeds(WireModel):
    requested: float = 0
    top: float = 0


class Output(WireModel):
    beep_duration: int = Field(default=0, alias="beepDuration")
    beep_frequency: int = Field(default=0, alias="beepFrequency")
    message: str = ""


class Params(WireModel):
    atx_power: RRFBool = Field(default=False, alias="atxPower")
    fan_percent: list[float] = Field(default_factory=list, alias="fanPercent")
    fan_names: list[str] = Field(default_factory=list, alias="fanNames")
    speed_factor: float = Field(default=0, alias="speedFactor")
    extruder_factors: list[float] = Field(default_factory=list, alias="extrFactors")
    baby_step: float = Field(default=0, alias="babystep")


class Sensors(WireModel):
    probe_value: float = Field(default=0, alias="probeValue")
    probe_secondary: list[float] = Field(default_factory=list, alias="probeSecondary")
    fan_rpm: FanRPMs = Field(default_factory=list, alias="fanRPM")


class TempState(IntEnum):
    OFF = 0
    STANDBY = 1
    ACTIVE = 2
    FAULT = 3
    TUNING = 4
    OFFLINE = 5

    @property
    def label(self) -> str:
        return self.name.lower()


def _to_heater_state(value: int) -> int:
    # Newer firmware may add states; keep those as plain integers.
    try:
        return TempState(value)
    except ValueError:
        return value


def heater_state_label(value: int) -> str:
    try:
        return TempState(value).label
    except ValueError:
        return "unknown"


HeaterState = Annotated[
    int,
    AfterValidator(_to_heater_state),
    PlainSerializer(int, return_type=int),
]


class Temp(WireModel):
    current: float = 0
    active: float = 0
    standby: float = 0
    state: HeaterState = TempState.OFF


class ToolTemps(WireModel):
    active: list[list[float]] = Field(default_factory=list)
    standby: list[list[float]] = Field(default_factory=list)


class ExtraTemp(WireModel):
    name: str = ""
    temp: float = 0


class Temps(WireModel):
    bed: Temp = Field(default_factory=Temp)
    chamber: Temp = Field(default_factory=Temp)
    heads: Temp = Field(default_factory=Temp)
    tools: ToolTemps = Field(default_factory=ToolTemps)
    current: list[float] = Field(default_factory=list)
    state: list[HeaterState] = Field(default_factory=list)
    names: list[str] = Field(default_factory=list)
    extra: list[ExtraTemp] = Field(default_factory=list)


SCANNER_LABELS = {
    "D": "disconnected",
    "I": "idle",
    "S": "scanning",
    "U": "uploading",
}


class Scanner(WireModel):
    status: str = ""
    progress: float = 0

    @property
    def label(self) -> str:
        return SCANNER_LABELS.get(self.status, "unknown")


class Spindle(WireModel):
    current: float = 0
    active: float = 0
    tool: int = 0


class Probe(WireModel):
    threshold: int = 0
    height: float = 0
    type: int = 0


class Tool(WireModel):
    number: int = 0
    name: str = ""
    heaters: list[int] = Field(default_factory=list)
    drives: list[int] = Field(default_factory=list)
    axis_map: list[list[int]] = Field(default_factory=list, alias="axisMap")
    fans: int = 0
    filament: str = ""
    offsets: list[float] = Field(default_factory=list)


class MinCurMax(WireModel):
    min: float = 0
    cur: float = 0
    max: float = 0


class TimesLeft(WireModel):
    file: float = 0
    filament: float = 0
    layer: float = 0


# Single-letter state codes reported in the "status" field.
CONFIGURING = "C"
IDLE = "I"
BUSY = "B"
PRINTING = "P"
PAUSING = "D"
STOPPED = "S"
RESUMING = "R"
HALTED = "H"
FLASHING = "F"
TOOL_CHANGING = "T"

STATE_LABELS = {
    CONFIGURING: "configuring",
    IDLE: "idle",
    BUSY: "busy",
    PRINTING: "printing",
    PAUSING: "pausing",
    STOPPED: "stopped",
    RESUMING: "resuming",
    HALTED: "halted",
    FLASHING: "flashing",
    TOOL_CHANGING: "toolchanging",
}


class StatusResponse(WireModel):
    """Reply to ``rr_status``; type 2 and 3 fill in the extended fields."""

    status: str = ""
    coordinates: StatusCoords = Field(default_factory=StatusCoords, alias="coords")
    speeds: Speeds = Field(default_factory=Speeds)
    current_tool: int = Field(default=0, alias="currentTool")
    output: Output | None = None
    params: Params = Field(default_factory=Params)
    seq: int = 0
    sensors: Sensors = Field(default_factory=Sensors)
    temps: Temps = Field(default_factory=Temps)
    resp: str = ""
    uptime: float = Field(default=0, alias="time")
    scanner: Scanner | None = None
    spindles: list[Spindle] = Field(default_factory=list)

    # type 2
    cold_extrude_temperature: float = Field(default=0, alias="coldExtrudeTemp")
    cold_retract_temperature: float = Field(default=0, alias="coldRetractTemp")
    compensation: str = ""
    controllable_fans: int = Field(default=0, alias="controllableFans")
    temp_limit: float = Field(default=0, alias="tempLimit")
    endstops: int = 0
    firmware_name: str = Field(default="", alias="firmwareName")
    geometry: str = ""
    axes: int = 0
    total_axes: int = Field(default=0, alias="totalAxes")
    axis_names: str = Field(default="", alias="axisNames")
    volumes: int = 0
    mounted_volumes: int = Field(default=0, alias="mountedVolumes")
    name: str = ""
    probe: Probe = Field(default_factory=Probe)
    tools: list[Tool] = Field(default_factory=list)
    mcu_temp: MinCurMax | None = Field(default=None, alias="mcutemp")
    vin: MinCurMax | None = None

    # type 3
    current_layer: int = Field(default=0, alias="currentLayer")
    current_layer_time: float = Field(default=0, alias="currentLayerTime")
    extr_raw: list[float] = Field(default_factory=list, alias="extrRaw")
    fraction_printed: float = Field(default=0, alias="fractionPrinted")
    file_position: int = Field(default=0, alias="filePosition")
    first_layer_duration: float = Field(default=0, alias="firstLayerDuration")
    first_layer_height: float = Field(default=0, alias="firstLayerHeight")
    print_duration: float = Field(default=0, alias="printDuration")
    warm_up_duration: float = Field(default=0, alias="warmUpDuration")
    times_left: TimesLeft = Field(default_factory=TimesLeft, alias="timesLeft")

    @property
    def state_label(self) -> str:
        return STATE_LABELS.get(self.status, "unknown")
