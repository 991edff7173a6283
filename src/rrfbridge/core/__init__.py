from __future__ import annotations

from .bridge import Bridge
from .client import DeviceClient
from .errors import (
    AuthenticationError,
    BrokerAddressError,
    DecodeError,
    DeviceError,
    TransportError,
)
from .info import DeviceReport, fetch_report
from .mock_device import MockRRFDevice, run_mock_device
from .poller import DevicePoller
from .transport import BrokerAddress, MqttTransport, parse_broker
from .variables import extract_variables

__all__ = [
    "AuthenticationError",
    "Bridge",
    "BrokerAddress",
    "BrokerAddressError",
    "DecodeError",
    "DeviceClient",
    "DeviceError",
    "DevicePoller",
    "DeviceReport",
    "MockRRFDevice",
    "MqttTransport",
    "TransportError",
    "extract_variables",
    "fetch_report",
    "parse_broker",
    "run_mock_device",
]
