"""Home Assistant MQTT discovery documents."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class Availability(BaseModel):
    topic: str


class DeviceInfo(BaseModel):
    identifiers: list[str] = Field(default_factory=list)
    configuration_url: str | None = None
    name: str
    sw_version: str | None = None
    model: str | None = None
    manufacturer: str | None = None


class SensorDiscovery(BaseModel):
    availability: list[Availability]
    name: str
    unique_id: str
    state_topic: str
    value_template: str
    device: DeviceInfo
    icon: str | None = None
    unit_of_measurement: str | None = None
    device_class: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
