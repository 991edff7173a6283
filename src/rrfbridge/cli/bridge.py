from __future__ import annotations

import asyncio
import logging

import typer

from rrfbridge.core import Bridge, BrokerAddressError

from .common import apply_overrides, load_settings_or_exit, password_from_context

logger = logging.getLogger(__name__)


def register(app: typer.Typer) -> None:
    @app.command("bridge")
    def bridge(
        ctx: typer.Context,
        hosts: list[str] = typer.Argument(..., help="Printer host[:port]"),
        broker: str | None = typer.Option(
            None, "--broker", envvar="RRF_BROKER", help="MQTT broker URL"
        ),
        client_id: str | None = typer.Option(
            None, "--client-id", envvar="RRF_CLIENT_ID", help="MQTT client id"
        ),
        topic_prefix: str | None = typer.Option(
            None,
            "--topic-prefix",
            envvar="RRF_TOPIC_PREFIX",
            help="Topic prefix for state and availability",
        ),
        discovery_prefix: str | None = typer.Option(
            None,
            "--discovery-prefix",
            envvar="RRF_DISCOVERY_TOPIC_PREFIX",
            help="Home Assistant discovery prefix",
        ),
        interval: str | None = typer.Option(
            None,
            "--interval",
            "-i",
            envvar="RRF_INTERVAL",
            help="Time between polls, e.g. 60s",
        ),
        discovery_interval: str | None = typer.Option(
            None,
            "--discovery-interval",
            envvar="RRF_DISCOVERY_INTERVAL",
            help="Time between discovery publications, e.g. 1h",
        ),
        connect_retry_delay: str | None = typer.Option(
            None,
            "--connect-retry-delay",
            envvar="RRF_CONNECT_RETRY_DELAY",
            help="Time between broker reconnection attempts",
        ),
        keepalive: int | None = typer.Option(
            None, "--keepalive", envvar="RRF_KEEPALIVE", help="MQTT keepalive (s)"
        ),
    ) -> None:
        """Publish printer state to Home Assistant over MQTT."""
        settings = apply_overrides(
            load_settings_or_exit(),
            broker=broker,
            client_id=client_id,
            topic_prefix=topic_prefix,
            discovery_prefix=discovery_prefix,
            keepalive=keepalive,
            connect_retry_delay=connect_retry_delay,
            interval=interval,
            discovery_interval=discovery_interval,
        )
        password = password_from_context(ctx, settings)

        try:
            runner = Bridge(hosts, settings, password=password)
        except BrokerAddressError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc

        logger.info(
            "Broker %s:%d, interval %.1fs, discovery every %.1fs",
            runner.broker.host,
            runner.broker.port,
            settings.polling.interval,
            settings.polling.discovery_interval,
        )
        asyncio.run(runner.serve())
