"""Per-device poll loop."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from rrfbridge.config import PollingConfig
from rrfbridge.models import OFFLINE, ONLINE, OutboundMessage, PollResult

from .client import DeviceClient
from .errors import DeviceError
from .messages import (
    availability_message,
    availability_topic,
    discovery_messages,
    state_message,
    state_topic,
    topic_safe,
)
from .variables import extract_variables

logger = logging.getLogger(__name__)


class DevicePoller:
    """Poll one printer on a fixed interval and queue what it reports.

    Each tick fetches the config (only when discovery is due), then status
    types 2 and 3. Availability is queued only when it changes; discovery
    messages only on ticks that fetched a config; a state message on every
    successful tick.
    """

    def __init__(
        self,
        client: DeviceClient,
        queue: asyncio.Queue[OutboundMessage],
        polling: PollingConfig,
        topic_prefix: str,
        discovery_prefix: str,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self.host = client.host
        self.availability_topic = availability_topic(
            topic_prefix, topic_safe(self.host)
        )
        self._queue = queue
        self._polling = polling
        self._topic_prefix = topic_prefix
        self._discovery_prefix = discovery_prefix
        self._clock = clock
        self._last_discovery: float | None = None
        self._last_availability: str | None = None

    @property
    def availability(self) -> str | None:
        return self._last_availability

    def discovery_due(self, now: float) -> bool:
        if self._last_discovery is None:
            return True
        return now - self._last_discovery >= self._polling.discovery_interval

    async def poll(self, discovery: bool) -> PollResult | None:
        try:
            config = await self.client.fetch_config() if discovery else None
            status = await self.client.fetch_status(2)
            progress = await self.client.fetch_status(3)
        except DeviceError as exc:
            logger.warning("Poll of %s failed: %s", self.host, exc)
            return None

        slug = topic_safe(status.name or self.host)
        return PollResult(
            host=self.host,
            slug=slug,
            availability_topic=self.availability_topic,
            state_topic=state_topic(self._topic_prefix, slug),
            status=status,
            progress=progress,
            config=config,
        )

    async def tick(self) -> PollResult | None:
        now = self._clock()
        result = await self.poll(self.discovery_due(now))

        availability = ONLINE if result is not None else OFFLINE
        if availability != self._last_availability:
            logger.info("%s is %s", self.host, availability)
            self._last_availability = availability
            await self._queue.put(
                availability_message(self.availability_topic, availability)
            )

        if result is None:
            return None

        logger.debug("Got results for %s (name=%s)", self.host, result.name)
        variables = extract_variables(result)
        if result.config is not None:
            for message in discovery_messages(
                result, variables, self._topic_prefix, self._discovery_prefix
            ):
                await self._queue.put(message)
            self._last_discovery = now
        await self._queue.put(state_message(result, variables))
        return result

    async def run(self, stop: asyncio.Event) -> None:
        """Tick until ``stop`` is set."""
        loop = asyncio.get_running_loop()
        interval = self._polling.interval
        next_tick = loop.time()
        logger.info("Polling %s every %.1fs", self.host, interval)

        while not stop.is_set():
            logger.debug("%s tick", self.host)
            try:
                await self.tick()
            except Exception:
                logger.exception("Tick for %s failed", self.host)

            next_tick += interval
            now = loop.time()
            while next_tick <= now:
                next_tick += interval
            try:
                await asyncio.wait_for(stop.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                pass

        logger.debug("Stopped polling %s", self.host)
