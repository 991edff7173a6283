from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from rrfbridge.models import ConfigResponse, StatusResponse

from .client import DeviceClient


@dataclass
class DeviceReport:
    host: str
    config: ConfigResponse
    status: StatusResponse

    def to_json(self) -> dict[str, Any]:
        return {"config": self.config.to_wire(), "status2": self.status.to_wire()}

    def axes(self) -> list[tuple[int, float, float | None, float | None, bool]]:
        """(index, position, min, max, homed) for each reported axis."""
        coords = self.status.coordinates
        rows = []
        for i in range(min(self.status.axes, len(coords.xyz))):
            rows.append(
                (
                    i,
                    coords.xyz[i],
                    _at(self.config.axis_mins, i),
                    _at(self.config.axis_maxes, i),
                    bool(_at(coords.axes_homed, i)),
                )
            )
        return rows

    def render(self) -> str:
        lines = [
            f"{self.host}:",
            f"  Name: {self.status.name}",
            f"  State: {self.status.state_label}",
            f"  Firmware: {self.config.software_version}",
            f"  Electronics: {self.config.firmware_electronics}",
            f"  Geometry: {self.status.geometry}",
        ]
        for index, position, low, high, homed in self.axes():
            suffix = "" if homed else " (not homed)"
            lines.append(
                f"  Axis {index}: {position:<7.2f} "
                f"(min={_fmt(low)} max={_fmt(high)}){suffix}"
            )
        return "\n".join(lines)


def _at(values: list[Any], index: int) -> Any:
    return values[index] if index < len(values) else None


def _fmt(value: float | None) -> str:
    return "?" if value is None else f"{value:.2f}"


async def fetch_report(client: DeviceClient) -> DeviceReport:
    config = await client.fetch_config()
    status = await client.fetch_status(2)
    return DeviceReport(host=client.host, config=config, status=status)
