"""Mock RepRapFirmware HTTP server for development and testing."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from aiohttp import web

from rrfbridge.models import AuthResponse, ConfigResponse, MinCurMax, StatusResponse
from rrfbridge.models.wire import (
    IDLE,
    PRINTING,
    Params,
    Probe,
    Speeds,
    StatusCoords,
    Temps,
    TempState,
    TimesLeft,
    Tool,
    ToolTemps,
)

logger = logging.getLogger(__name__)

ACCEPTED_PASSWORDS = frozenset({"passw0rd", "reprap"})
DEVICE_NAME = "MockRRF"

TO_RAD = 0.0174533
RADIUS = 100.0
PRINT_LENGTH = 100

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def _round(value: float) -> float:
    return round(value, 3)


def mock_config() -> ConfigResponse:
    d = RADIUS
    return ConfigResponse(
        axis_mins=[-d, -d, 0],
        axis_maxes=[d, d, 2 * d],
        accelerations=[3000, 3000, 3000, 1000],
        currents=[800, 800, 800, 500],
        firmware_electronics="Duet WiFi 1.0 or 1.01",
        firmware_name="RepRapFirmware for Duet 2 WiFi/Ethernet",
        firmware_version="2.05.1",
        dws_version="1.23",
        firmware_date="2020-02-09b1",
        sys_dir="0:/sys/",
        idle_current_factor=60,
        idle_timeout=30,
        min_feed_rates=[20, 20, 20, 10],
        max_feed_rates=[300, 300, 300, 60],
    )


def mock_status(kind: int, count: int) -> StatusResponse:
    """Status document ``kind`` (1, 2 or 3) after ``count`` status requests.

    The head traces a circle for ``PRINT_LENGTH`` requests, then goes idle.
    """
    status = StatusResponse(
        status=PRINTING,
        coordinates=StatusCoords(
            axes_homed=[True, True, True],
            extruder=[0],
            xyz=[0, 0, 0],
            machine=[0, 0, 0],
        ),
        speeds=Speeds(requested=20, top=30),
        params=Params(fan_percent=[0, 50], speed_factor=100, extruder_factors=[100]),
        temps=Temps(
            current=[80.0, 200.0, 2000.0, 2000.0],
            state=[TempState.ACTIVE, TempState.ACTIVE, TempState.OFF, TempState.OFF],
            names=["bed", "", "", ""],
            tools=ToolTemps(active=[[0]], standby=[[0]]),
        ),
        uptime=float(count),
    )

    if kind == 2:
        status.cold_extrude_temperature = 160
        status.cold_retract_temperature = 90
        status.compensation = "None"
        status.controllable_fans = 2
        status.temp_limit = 290
        status.endstops = 4080
        status.firmware_name = "RepRapFirmware for Duet 2 WiFi/Ethernet"
        status.geometry = "delta"
        status.axes = 3
        status.total_axes = 3
        status.axis_names = "XYZ"
        status.volumes = 2
        status.mounted_volumes = 1
        status.params.fan_names = ["", "print"]
        status.name = DEVICE_NAME
        status.probe = Probe(threshold=500, height=-0.2, type=4)
        status.tools = [
            Tool(
                number=0,
                heaters=[1],
                drives=[0],
                axis_map=[[0], [1]],
                fans=1,
                offsets=[0, 0, 0],
            )
        ]
        status.mcu_temp = MinCurMax(min=31, cur=38.4, max=38.6)
        status.vin = MinCurMax(min=11.9, cur=12.1, max=12.2)
    elif kind == 3:
        status.current_layer_time = 20
        status.extr_raw = [0]
        status.first_layer_duration = 10
        status.first_layer_height = 0.2
        status.warm_up_duration = 2

    if count > PRINT_LENGTH:
        status.status = IDLE
        return status

    rad = count * TO_RAD
    sin = math.sin(rad)
    cos = math.cos(rad)
    xyz = [_round(RADIUS * cos), _round(RADIUS * sin), _round(RADIUS + RADIUS * sin)]

    status.temps.current = [
        _round(80 + 5 * sin),
        _round(200 + 5 * cos),
        2000.0,
        2000.0,
    ]
    status.coordinates.xyz = xyz
    status.coordinates.machine = list(xyz)

    if kind != 3:
        return status

    left = float((PRINT_LENGTH - count) * 20)
    status.print_duration = float(count)
    status.times_left = TimesLeft(file=left, filament=left, layer=left)
    status.current_layer = count
    status.fraction_printed = float(count)
    status.file_position = 20 * count
    return status


@dataclass
class MockRRFDevice:
    """Serve the ``rr_*`` API of a printer tracing circles.

    Requests whose zero-based index is in ``fail_requests`` get a 401.
    """

    host: str = "127.0.0.1"
    port: int = 8888
    passwords: frozenset[str] = ACCEPTED_PASSWORDS
    board_type: str = "mockrrf"
    fail_requests: set[int] = field(default_factory=set)
    reply: str = ""

    authenticated: bool = False
    count: int = 0
    requests: int = 0

    _runner: web.AppRunner | None = field(default=None, repr=False)

    def build_app(self) -> web.Application:
        @web.middleware
        async def count_requests(request: web.Request, handler: Handler):
            index = self.requests
            self.requests += 1
            logger.debug("Request #%d: %s", index, request.rel_url)
            if index in self.fail_requests:
                return web.Response(status=401, text="Unauthorised")
            return await handler(request)

        app = web.Application(middlewares=[count_requests])
        app.router.add_get("/rr_connect", self._connect)
        app.router.add_get("/rr_config", self._config)
        app.router.add_get("/rr_status", self._status)
        app.router.add_get("/rr_reply", self._reply)
        app.router.add_get("/rr_gcode", self._gcode)
        app.router.add_get("/rr_filelist", self._filelist)
        app.router.add_get("/rr_fileinfo", self._fileinfo)
        app.router.add_get("/rr_download", self._download)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Mock device listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Mock device stopped")

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()

    def _unauthorised(self, request: web.Request) -> web.Response | None:
        if self.authenticated:
            return None
        logger.info("Not authorised for %s", request.rel_url)
        return web.Response(status=401, text="Unauthorised")

    async def _connect(self, request: web.Request) -> web.Response:
        password = request.query.get("password", "")
        resp = AuthResponse(error_code=1)
        if password in self.passwords:
            self.authenticated = True
            resp = AuthResponse(
                error_code=0, session_timeout=8000, board_type=self.board_type
            )
        return web.json_response(resp.to_wire())

    async def _config(self, request: web.Request) -> web.Response:
        if denied := self._unauthorised(request):
            return denied
        return web.json_response(mock_config().to_wire())

    async def _status(self, request: web.Request) -> web.Response:
        if denied := self._unauthorised(request):
            return denied
        try:
            kind = int(request.query.get("type", "1"))
        except ValueError:
            kind = 1
        if kind not in (1, 2, 3):
            kind = 1
        status = mock_status(kind, self.count)
        self.count += 1
        return web.json_response(status.to_wire())

    async def _reply(self, request: web.Request) -> web.Response:
        if denied := self._unauthorised(request):
            return denied
        return web.Response(text=self.reply, content_type="text/plain")

    async def _gcode(self, request: web.Request) -> web.Response:
        if denied := self._unauthorised(request):
            return denied
        return web.json_response({"buff": 250})

    async def _filelist(self, request: web.Request) -> web.Response:
        if denied := self._unauthorised(request):
            return denied
        directory = request.query.get("dir", "")
        return web.json_response({"dir": directory, "first": 0, "files": [], "next": 0})

    async def _fileinfo(self, request: web.Request) -> web.Response:
        if denied := self._unauthorised(request):
            return denied
        return web.json_response({"err": 1})

    async def _download(self, request: web.Request) -> web.Response:
        if denied := self._unauthorised(request):
            return denied
        return web.Response(status=404, text="Not found")


async def run_mock_device(host: str = "127.0.0.1", port: int = 8888) -> None:
    """Run a mock RepRapFirmware device until cancelled."""
    device = MockRRFDevice(host=host, port=port)
    await device.run_forever()
