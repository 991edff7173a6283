"""rrf-bridge - publish RepRapFirmware printer state to Home Assistant over MQTT."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .core import Bridge, DeviceClient, DevicePoller, MockRRFDevice, extract_variables
from .models import ConfigResponse, OutboundMessage, StatusResponse, Variable

__all__ = [
    "Bridge",
    "ConfigResponse",
    "DeviceClient",
    "DevicePoller",
    "MockRRFDevice",
    "OutboundMessage",
    "Settings",
    "StatusResponse",
    "Variable",
    "__version__",
    "extract_variables",
    "get_settings",
]

__version__ = version("rrf-bridge")
