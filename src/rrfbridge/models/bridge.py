"""Values passed between the poller, the message builder and the publisher."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from .wire import ConfigResponse, StatusResponse

ONLINE = "online"
OFFLINE = "offline"


@dataclass(frozen=True)
class Variable:
    """A named scalar taken from one poll."""

    field: str
    value: Any
    units: str | None = None
    device_class: str | None = None
    icon: str | None = None


@dataclass(frozen=True)
class OutboundMessage:
    topic: str
    payload: str | dict[str, Any]
    retain: bool = False

    def encode(self) -> bytes:
        if isinstance(self.payload, str):
            return self.payload.encode("utf-8")
        return json.dumps(self.payload, ensure_ascii=False).encode("utf-8")


@dataclass
class PollResult:
    host: str
    slug: str
    availability_topic: str
    state_topic: str
    status: StatusResponse
    progress: StatusResponse
    config: ConfigResponse | None = None

    @property
    def name(self) -> str:
        return self.status.name or self.host
