"""
Root Typer application for the dqlited CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from dqlited import __version__
from dqlited.core.logging import configure_logging

app = Typer(
    name="dqlited",
    help="dqlited — operate a replicated SQLite cluster.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dqlited {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    level: str = typer.Option("WARNING", "--level", "-l", envvar="DQLITED_LOG_LEVEL", help="Log level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Log as JSON lines"),
) -> None:
    """dqlited CLI — cluster membership, SQL execution and batch replay."""
    configure_logging(level=level, json_format=json_logs)


# ── Sub-command registration ─────────────────────────────────────────────

from dqlited.cli.cluster import app as cluster_app  # noqa: E402
from dqlited.cli.db import app as db_app  # noqa: E402
from dqlited.cli.serve import app as serve_app  # noqa: E402

app.add_typer(cluster_app, name="cluster", help="Cluster membership and leadership.")
app.add_typer(db_app, name="db", help="SQL execution and batch replay.")
app.add_typer(serve_app, name="serve", help="Start the API server.")
