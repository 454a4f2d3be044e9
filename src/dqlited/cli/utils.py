"""
CLI utility helpers: services construction, error reporting and output.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dqlited.core.errors import DqlitedError, InvalidInputError, cause_chain, error_kind
from dqlited.core.settings import DqlitedSettings, get_settings
from dqlited.execution.models import Result, Rows
from dqlited.services import Services

console = Console()
err_console = Console(stderr=True)


# ── Services helper ──────────────────────────────────────────────────────


def make_services(
    *,
    cluster: str | None = None,
    database: str | None = None,
    driver: str | None = None,
    timeout: float | None = None,
) -> Services:
    """Build :class:`Services` from settings with CLI overrides applied."""
    overrides = {
        "cluster": cluster,
        "database": database,
        "driver": driver,
        "timeout": timeout,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        settings = get_settings()
        if overrides:
            settings = DqlitedSettings(**{**settings.model_dump(), **overrides})
    except ValidationError as e:
        raise InvalidInputError(f"invalid settings: {e.errors()[0]['msg']}", cause=e) from e
    return Services(settings)


# ── Error handling ───────────────────────────────────────────────────────


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print the cause chain of any :class:`DqlitedError` and exit 1."""
    try:
        yield
    except DqlitedError as e:
        kind = error_kind(e) or e.kind
        err_console.print(f"[bold red]Error[/bold red] ({kind.value}): {escape(str(e))}")
        for cause in cause_chain(e)[1:]:
            err_console.print(f"  [dim]caused by[/dim] {escape(cause)}")
        raise typer.Exit(code=1) from e


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_rows(rows: Rows, *, header: bool = True, lines: bool = False, title: str = "") -> None:
    """Render query rows as a Rich table."""
    table = Table(
        title=title or None,
        show_header=header,
        show_lines=lines,
        pad_edge=False,
    )
    for column in rows.columns:
        table.add_column(column, overflow="fold")
    for row in rows.values:
        table.add_row(*("NULL" if v is None else escape(str(v)) for v in row))
    console.print(table)


def print_result(result: Result) -> None:
    console.print(
        f"[green]ok[/green] rows_affected={result.rows_affected}"
        f" last_insert_id={result.last_insert_id}"
        + (f" [dim]({result.time * 1000:.2f} ms)[/dim]" if result.time else "")
    )


def print_records(items: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not items:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in items[0]:
        table.add_column(col, overflow="fold")
    for item in items:
        table.add_row(*(str(v) for v in item.values()))
    console.print(table)
