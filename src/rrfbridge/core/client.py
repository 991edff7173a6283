"""HTTP client for a single RepRapFirmware controller."""

from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import TypeVar

import aiohttp
from pydantic import ValidationError

from rrfbridge.models import AuthResponse, ConfigResponse, StatusResponse
from rrfbridge.models.wire import WireModel

from .errors import AuthenticationError, DecodeError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

M = TypeVar("M", bound=WireModel)


class DeviceClient:
    """Issue authenticated ``rr_*`` requests against one host.

    The session flag is set by the first successful ``rr_connect`` and never
    cleared; ``fetch_config``/``fetch_status`` authenticate lazily until then.
    A client is meant to be owned by a single polling task.
    """

    def __init__(
        self,
        host: str,
        password: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.host = host
        self._password = password
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self._authenticated = False

    @property
    def authenticated(self) -> bool:
        return self._authenticated

    async def __aenter__(self) -> DeviceClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def request(
        self,
        step: str,
        path: str,
        model: type[M],
        params: dict[str, str] | None = None,
    ) -> M:
        url = f"http://{self.host}/{path}"
        session = self._ensure_session()
        logger.debug("GET %s (%s)", url, step)
        try:
            async with session.get(
                url, params=params, timeout=self._timeout
            ) as response:
                response.raise_for_status()
                body = await response.read()
        except asyncio.TimeoutError as exc:
            raise TransportError(
                self.host, step, f"timed out after {self._timeout.total}s"
            ) from exc
        except aiohttp.ClientResponseError as exc:
            raise TransportError(
                self.host, step, f"HTTP {exc.status} {exc.message}", status=exc.status
            ) from exc
        except aiohttp.ClientError as exc:
            reason = str(exc) or type(exc).__name__
            raise TransportError(self.host, step, reason) from exc

        try:
            return model.model_validate_json(body)
        except ValidationError as exc:
            raise DecodeError(self.host, step, f"invalid response: {exc}") from exc

    async def authenticate(self) -> AuthResponse:
        resp = await self.request(
            "authenticate",
            "rr_connect",
            AuthResponse,
            params={"password": self._password},
        )
        if resp.error_code != 0:
            raise AuthenticationError(self.host, resp.error_code)
        self._authenticated = True
        logger.debug("Authenticated with %s (board=%s)", self.host, resp.board_type)
        return resp

    async def fetch_config(self) -> ConfigResponse:
        if not self._authenticated:
            await self.authenticate()
        return await self.request("config", "rr_config", ConfigResponse)

    async def fetch_status(self, kind: int = 2) -> StatusResponse:
        if not self._authenticated:
            await self.authenticate()
        return await self.request(
            f"status{kind}",
            "rr_status",
            StatusResponse,
            params={"type": str(kind)},
        )
