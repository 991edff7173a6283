from __future__ import annotations

import asyncio
import json

import typer
from rich.console import Console

from rrfbridge.core import DeviceClient, DeviceError, DeviceReport, fetch_report

from .common import load_settings_or_exit, password_from_context


async def _collect(
    hosts: list[str], password: str, timeout: float
) -> list[DeviceReport]:
    reports = []
    for host in hosts:
        async with DeviceClient(host, password, timeout=timeout) as client:
            reports.append(await fetch_report(client))
    return reports


def register(app: typer.Typer) -> None:
    @app.command()
    def info(
        ctx: typer.Context,
        hosts: list[str] = typer.Argument(..., help="Printer host[:port]"),
        output: str = typer.Option(
            "text", "--output", "-o", help="Output format: text or json"
        ),
    ) -> None:
        """Fetch basic information about RepRapFirmware devices."""
        settings = load_settings_or_exit()
        password = password_from_context(ctx, settings)

        try:
            reports = asyncio.run(_collect(hosts, password, settings.device.timeout))
        except DeviceError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(1) from exc

        if output == "json":
            document = {report.host: report.to_json() for report in reports}
            typer.echo(json.dumps(document, indent=2, ensure_ascii=False))
            return

        console = Console()
        for report in reports:
            console.print(report.render(), highlight=False, markup=False)
