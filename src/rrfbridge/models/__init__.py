"""Data models for rrf-bridge."""

from __future__ import annotations

from .bridge import OFFLINE, ONLINE, OutboundMessage, PollResult, Variable
from .homeassistant import Availability, DeviceInfo, SensorDiscovery
from .wire import (
    STATE_LABELS,
    AuthResponse,
    ConfigResponse,
    MinCurMax,
    StatusCoords,
    StatusResponse,
    Temps,
    TempState,
    TimesLeft,
)

__all__ = [
    "OFFLINE",
    "ONLINE",
    "STATE_LABELS",
    "AuthResponse",
    "Availability",
    "ConfigResponse",
    "DeviceInfo",
    "MinCurMax",
    "OutboundMessage",
    "PollResult",
    "SensorDiscovery",
    "StatusCoords",
    "StatusResponse",
    "TempState",
    "Temps",
    "TimesLeft",
    "Variable",
]
