"""Run one poller per printer and feed their messages to MQTT."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Sequence
from typing import Protocol

import aiohttp

from rrfbridge.config import Settings
from rrfbridge.models import OFFLINE, OutboundMessage

from .client import DeviceClient
from .messages import availability_message, bridge_availability_topic
from .poller import DevicePoller
from .transport import MqttTransport, parse_broker

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def publish(self, message: OutboundMessage) -> None: ...

    async def close(self) -> None: ...


class Bridge:
    """Poll ``hosts`` and publish what they report until stopped.

    The broker URL is validated on construction so a bad address fails
    before any device is contacted.
    """

    def __init__(
        self,
        hosts: Sequence[str],
        settings: Settings,
        password: str | None = None,
        transport: Transport | None = None,
    ) -> None:
        self.broker = parse_broker(settings.mqtt.broker)
        self.hosts = list(hosts)
        self.settings = settings
        self.password = settings.device.password if password is None else password
        self.transport: Transport = transport or MqttTransport(
            self.broker, settings.mqtt
        )
        self.queue: asyncio.Queue[OutboundMessage] = asyncio.Queue(
            maxsize=settings.polling.queue_size
        )
        self.pollers: list[DevicePoller] = []

    @property
    def bridge_availability_topic(self) -> str:
        return bridge_availability_topic(self.settings.mqtt.topic_prefix)

    async def serve(self) -> None:
        """Run until SIGINT or SIGTERM."""
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)
        try:
            await self.run(stop)
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

    async def run(self, stop: asyncio.Event) -> None:
        logger.info("Starting bridge for %d device(s)", len(self.hosts))
        grace = self.settings.polling.shutdown_grace
        mqtt = self.settings.mqtt

        async with aiohttp.ClientSession() as session:
            self.pollers = [
                DevicePoller(
                    DeviceClient(
                        host,
                        self.password,
                        timeout=self.settings.device.timeout,
                        session=session,
                    ),
                    self.queue,
                    self.settings.polling,
                    mqtt.topic_prefix,
                    mqtt.discovery_prefix,
                )
                for host in self.hosts
            ]
            poll_tasks = [
                asyncio.create_task(poller.run(stop), name=f"poll-{poller.host}")
                for poller in self.pollers
            ]
            for task in poll_tasks:
                task.add_done_callback(_log_poller_exit)
            publisher = asyncio.create_task(self._publish_loop(), name="publisher")

            try:
                await stop.wait()
            finally:
                logger.info("Shutting down")
                stop.set()
                await self._stop_pollers(poll_tasks, grace)
                await self._drain(publisher, grace)
                await self._announce_offline(grace)
                await self.transport.close()

    async def _publish_loop(self) -> None:
        while True:
            message = await self.queue.get()
            try:
                await self.transport.publish(message)
            except Exception:
                logger.exception("Failed to publish message for %s", message.topic)
            finally:
                self.queue.task_done()

    async def _stop_pollers(
        self, tasks: list[asyncio.Task[None]], grace: float
    ) -> None:
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=grace)
        for task in pending:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _drain(self, publisher: asyncio.Task[None], grace: float) -> None:
        try:
            await asyncio.wait_for(self.queue.join(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning("Dropping %d unpublished message(s)", self.queue.qsize())
        publisher.cancel()
        await asyncio.gather(publisher, return_exceptions=True)

    async def _announce_offline(self, grace: float) -> None:
        message = availability_message(self.bridge_availability_topic, OFFLINE)
        try:
            await asyncio.wait_for(self.transport.publish(message), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning("Timed out publishing bridge offline availability")


def _log_poller_exit(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "%s stopped unexpectedly: %r", task.get_name(), exc, exc_info=exc
        )
