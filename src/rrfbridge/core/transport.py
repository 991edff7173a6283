"""MQTT publishing through aiomqtt."""

from __future__ import annotations

import asyncio
import logging
import ssl
from dataclasses import dataclass
from urllib.parse import urlsplit

import aiomqtt

from rrfbridge.config import MqttConfig
from rrfbridge.models import OFFLINE, ONLINE, OutboundMessage

from .errors import BrokerAddressError
from .messages import bridge_availability_topic

logger = logging.getLogger(__name__)

QOS = 1

# scheme -> (default port, tls)
SCHEMES = {
    "tcp": (1883, False),
    "mqtt": (1883, False),
    "ssl": (8883, True),
    "tls": (8883, True),
    "mqtts": (8883, True),
}


@dataclass(frozen=True)
class BrokerAddress:
    host: str
    port: int
    tls: bool = False
    username: str | None = None
    password: str | None = None


def parse_broker(url: str) -> BrokerAddress:
    """Parse ``tcp://[user:pass@]host[:port]`` style broker URLs."""
    parts = urlsplit(url)
    if parts.scheme not in SCHEMES or not parts.hostname:
        raise BrokerAddressError(f"invalid broker url: {url!r}")
    default_port, tls = SCHEMES[parts.scheme]
    try:
        port = parts.port or default_port
    except ValueError as exc:
        raise BrokerAddressError(f"invalid broker url: {url!r}: {exc}") from exc
    return BrokerAddress(
        host=parts.hostname,
        port=port,
        tls=tls,
        username=parts.username,
        password=parts.password,
    )


class MqttTransport:
    """Publish queued messages, reconnecting whenever the broker goes away.

    The bridge availability topic is set to ``online`` after every connect
    and registered as the last will with ``offline``.
    """

    def __init__(self, broker: BrokerAddress, config: MqttConfig) -> None:
        self.broker = broker
        self._config = config
        self._bridge_topic = bridge_availability_topic(config.topic_prefix)
        self._client: aiomqtt.Client | None = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def _build_client(self) -> aiomqtt.Client:
        return aiomqtt.Client(
            self.broker.host,
            port=self.broker.port,
            username=self.broker.username,
            password=self.broker.password,
            identifier=self._config.client_id,
            keepalive=self._config.keepalive,
            will=aiomqtt.Will(self._bridge_topic, OFFLINE, qos=QOS, retain=True),
            tls_context=ssl.create_default_context() if self.broker.tls else None,
        )

    async def connect(self) -> aiomqtt.Client:
        while self._client is None:
            client = self._build_client()
            logger.info(
                "Connecting to MQTT broker %s:%s", self.broker.host, self.broker.port
            )
            try:
                await client.__aenter__()
            except aiomqtt.MqttError as exc:
                logger.warning(
                    "MQTT connection failed: %s; retrying in %.0fs",
                    exc,
                    self._config.connect_retry_delay,
                )
                await asyncio.sleep(self._config.connect_retry_delay)
                continue

            self._client = client
            logger.info("MQTT connection up")
            try:
                await client.publish(self._bridge_topic, ONLINE, qos=QOS, retain=True)
            except aiomqtt.MqttError as exc:
                logger.warning("Failed to publish bridge availability: %s", exc)
                await self._drop()
                await asyncio.sleep(self._config.connect_retry_delay)
        return self._client

    async def publish(self, message: OutboundMessage) -> None:
        while True:
            client = await self.connect()
            try:
                await client.publish(
                    message.topic, message.encode(), qos=QOS, retain=message.retain
                )
                return
            except aiomqtt.MqttError as exc:
                logger.warning("Publish to %s failed: %s", message.topic, exc)
                await self._drop()
                await asyncio.sleep(self._config.connect_retry_delay)

    async def _drop(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.__aexit__(None, None, None)
        except aiomqtt.MqttError as exc:
            logger.debug("Error while disconnecting: %s", exc)

    async def close(self) -> None:
        await self._drop()
