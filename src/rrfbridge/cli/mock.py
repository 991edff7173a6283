from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from rrfbridge.core import run_mock_device

from .common import load_settings_or_exit


def register(app: typer.Typer) -> None:
    @app.command()
    def mock(
        host: str | None = typer.Option(None, "--host", help="Address to bind"),
        port: int | None = typer.Option(None, "--port", "-p", help="Port to listen on"),
    ) -> None:
        """Run a mock RepRapFirmware device for testing."""
        settings = load_settings_or_exit()
        host = host or settings.mock.host
        port = port or settings.mock.port

        console = Console()
        console.print(f"Starting mock device on {host}:{port}...")
        console.print("Press Ctrl+C to stop.\n")

        try:
            asyncio.run(run_mock_device(host=host, port=port))
        except KeyboardInterrupt:
            console.print("\n[green]Mock device stopped.[/green]")
