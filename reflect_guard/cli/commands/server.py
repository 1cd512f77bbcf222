"""CLI — Service commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

console = Console()


def serve(
    host: Annotated[str | None, typer.Option(help="Host to bind to.")] = None,
    port: Annotated[int | None, typer.Option(help="Port to listen on.")] = None,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
    log_level: Annotated[str | None, typer.Option(help="Log level.")] = None,
) -> None:
    """Start the HTTP service."""
    from reflect_guard.api.server import create_app
    from reflect_guard.config import Settings, override_settings

    settings = Settings.load(config_file=config)
    if host is not None:
        settings.server.host = host
    if port is not None:
        settings.server.port = port
    override_settings(settings)

    bind_host = settings.server.host
    bind_port = settings.server.port
    console.print(f"[bold green]Starting Reflect Guard on {bind_host}:{bind_port}[/bold green]")

    uvicorn.run(
        create_app(settings=settings),
        host=bind_host,
        port=bind_port,
        log_level=log_level or settings.server.log_level,
    )


def status(
    host: str = typer.Option("127.0.0.1"),
    port: int = typer.Option(8400),
) -> None:
    """Check service health."""
    import httpx

    try:
        resp = httpx.get(f"http://{host}:{port}/health", timeout=5.0)
        data = resp.json()
    except Exception as exc:
        console.print(f"[red]Service unreachable: {exc}[/red]")
        raise typer.Exit(1)

    table = Table(title="Reflect Guard Status")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for k, v in data.items():
        table.add_row(str(k), str(v))
    console.print(table)
