"""Build the MQTT messages published for each poll."""

from __future__ import annotations

import time
from collections.abc import Iterable

from rrfbridge.models import (
    Availability,
    DeviceInfo,
    OutboundMessage,
    PollResult,
    SensorDiscovery,
    Variable,
)

BRIDGE_NAME = "bridge"
DEFAULT_ICON = "mdi:printer-3d"

_TOPIC_REPLACEMENTS = (
    ("/", "_slash_"),
    ("#", "_hash_"),
    ("+", "_plus_"),
    ("-", "_"),
    (":", "_"),
)


def topic_safe(name: str) -> str:
    """Turn a device name into a lowercase topic segment."""
    for old, new in _TOPIC_REPLACEMENTS:
        name = name.replace(old, new)
    return name.strip("_").lower()


def availability_topic(prefix: str, name: str) -> str:
    return f"{prefix}/{name}/availability"


def state_topic(prefix: str, name: str) -> str:
    return f"{prefix}/{name}/state"


def config_topic(discovery_prefix: str, name: str, field: str) -> str:
    return f"{discovery_prefix}/sensor/{name}_{field}/config"


def bridge_availability_topic(prefix: str) -> str:
    return availability_topic(prefix, BRIDGE_NAME)


def availability_message(topic: str, availability: str) -> OutboundMessage:
    return OutboundMessage(topic=topic, payload=availability, retain=True)


def discovery_messages(
    result: PollResult,
    variables: Iterable[Variable],
    topic_prefix: str,
    discovery_prefix: str,
) -> list[OutboundMessage]:
    """One retained sensor registration per variable.

    Needs ``result.config`` for the firmware details in the device block.
    """
    if result.config is None:
        raise ValueError(f"no config snapshot for {result.host}")

    availability = [
        Availability(topic=bridge_availability_topic(topic_prefix)),
        Availability(topic=result.availability_topic),
    ]
    name = result.name

    messages = []
    for variable in variables:
        unique_id = f"{result.slug}_{variable.field}"
        sensor = SensorDiscovery(
            availability=availability,
            name=f"{name} {variable.field}",
            unique_id=unique_id,
            state_topic=result.state_topic,
            value_template=f"{{{{ value_json.{variable.field} }}}}",
            icon=variable.icon or DEFAULT_ICON,
            unit_of_measurement=variable.units,
            device_class=variable.device_class,
            device=DeviceInfo(
                identifiers=[result.slug, unique_id],
                configuration_url=f"http://{result.host}",
                name=name,
                sw_version=result.config.software_version,
                model=result.config.firmware_electronics or None,
            ),
        )
        messages.append(
            OutboundMessage(
                topic=config_topic(discovery_prefix, result.slug, variable.field),
                payload=sensor.to_payload(),
                retain=True,
            )
        )
    return messages


def epoch_millis(now: float | None = None) -> float:
    """Unix time in seconds, truncated to millisecond precision."""
    if now is None:
        now = time.time()
    return int(now * 1000) / 1000


def state_message(
    result: PollResult, variables: Iterable[Variable], now: float | None = None
) -> OutboundMessage:
    payload: dict[str, object] = {"t": epoch_millis(now)}
    for variable in variables:
        payload[variable.field] = variable.value
    return OutboundMessage(topic=result.state_topic, payload=payload, retain=False)
