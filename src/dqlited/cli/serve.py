"""
CLI: ``dqlited serve`` — start the HTTP API.
"""

from __future__ import annotations

import typer
import uvicorn

from dqlited.cli.utils import console

app = typer.Typer(no_args_is_help=True)


@app.command("start")
def start(
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Start the dqlited REST API server."""
    from dqlited.core.settings import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting dqlited API[/bold green] on {host}:{port}")
    uvicorn.run(
        "dqlited.api:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=log_level,
    )
