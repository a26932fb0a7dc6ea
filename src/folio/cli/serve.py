"""
CLI: ``folio serve`` (run the API server).
"""

from __future__ import annotations

import typer
import uvicorn

from folio.cli.utils import console
from folio.core.settings import get_settings


def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address (default FOLIO_HOST)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port (default FOLIO_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on changes"),
    workers: int = typer.Option(1, "--workers", "-w", help="Number of workers"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the folio-core REST API server."""
    settings = get_settings()
    host = host or settings.host
    port = port or settings.port

    console.print(f"[bold green]Starting folio-core API[/bold green] on {host}:{port}")
    uvicorn.run(
        "folio.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=log_level,
    )
