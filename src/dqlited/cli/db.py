"""
CLI: ``dqlited db`` — run SQL against the cluster.
"""

from __future__ import annotations

from pathlib import Path

import typer

from dqlited.cli.utils import (
    console,
    handle_errors,
    make_services,
    print_json,
    print_result,
    print_rows,
)
from dqlited.cluster.admin import write_files
from dqlited.core.errors import ParseError
from dqlited.execution.hammer import HammerOutcome, hammer
from dqlited.execution.models import Rows
from dqlited.sql.splitter import statements as split_statements

app = typer.Typer(no_args_is_help=True)

ClusterOpt = typer.Option(None, "--cluster", "-c", help="Comma separated node addresses")
DatabaseOpt = typer.Option(None, "--database", "-d", help="Database name")
DriverOpt = typer.Option(None, "--driver", help="http (cluster) or sqlite (local files)")


@app.command("exec")
def exec_(
    statements: list[str] = typer.Argument(..., help="Statements, or .tables / .schema"),
    cluster: str | None = ClusterOpt,
    database: str | None = DatabaseOpt,
    driver: str | None = DriverOpt,
    header: bool = typer.Option(True, "--header/--no-header", help="Show column names"),
    lines: bool = typer.Option(False, "--lines", help="Draw lines between rows"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Evaluate statements one at a time; reads print rows."""
    with handle_errors():
        services = make_services(cluster=cluster, database=database, driver=driver)
        try:
            engine = services.engine()
            for sql in statements:
                outcome = engine.eval(sql)
                if json_out:
                    print_json(outcome.to_dict())
                elif isinstance(outcome, Rows):
                    print_rows(outcome, header=header, lines=lines)
                else:
                    print_result(outcome)
        finally:
            services.close()


@app.command()
def batch(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="SQL dump to replay"),
    cluster: str | None = ClusterOpt,
    database: str | None = DatabaseOpt,
    driver: str | None = DriverOpt,
    echo: bool = typer.Option(False, "--echo", help="Log each statement before running it"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Replay a dump (triggers and BEGIN/COMMIT blocks included)."""
    with handle_errors():
        text = file.read_text(encoding="utf-8")
        services = make_services(cluster=cluster, database=database, driver=driver)
        try:
            outcome = services.engine().batch(text, echo=echo)
        finally:
            services.close()
        if json_out:
            print_json(outcome.to_dict())
            return
        for message in outcome.messages:
            console.print(message)
        for rows in outcome.rows:
            print_rows(rows)
        console.print(
            f"[green]batch ok[/green] executed={outcome.executed} queried={outcome.queried}"
            f" transactions={outcome.transactions} [dim]({outcome.time:.3f}s)[/dim]"
        )


@app.command()
def load(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="SQL file"),
    cluster: str | None = ClusterOpt,
    database: str | None = DatabaseOpt,
    driver: str | None = DriverOpt,
    batched: bool = typer.Option(False, "--batched", help="One statement per line, all in one transaction"),
) -> None:
    """Load a SQL file, either as a batch or as one bulk transaction."""
    with handle_errors():
        services = make_services(cluster=cluster, database=database, driver=driver)
        try:
            engine = services.engine()
            if batched:
                with file.open(encoding="utf-8") as fh:
                    outcome = engine.transact(fh)
                console.print(f"[green]loaded[/green] {outcome.count} statements in {outcome.time:.3f}s")
            else:
                result = engine.batch(file.read_text(encoding="utf-8"))
                console.print(f"[green]loaded[/green] {result.executed} statements in {result.time:.3f}s")
        finally:
            services.close()


@app.command()
def tables(
    cluster: str | None = ClusterOpt,
    database: str | None = DatabaseOpt,
    driver: str | None = DriverOpt,
) -> None:
    """List tables."""
    with handle_errors():
        services = make_services(cluster=cluster, database=database, driver=driver)
        try:
            rows = services.engine().query(".tables")
        finally:
            services.close()
        for row in rows.values:
            console.print(row[0])


@app.command()
def dump(
    cluster: str | None = ClusterOpt,
    database: str | None = DatabaseOpt,
    output: Path = typer.Option(Path("."), "--output", "-o", help="Directory for the dump files"),
) -> None:
    """Dump a database's files from the leader."""
    with handle_errors():
        services = make_services(cluster=cluster, database=database)
        try:
            name = services.settings.database
            paths = services.admin().dump_database(name, lambda files: write_files(files, output))
        finally:
            services.close()
        for path in paths:
            console.print(f"[green]wrote[/green] {path}")


@app.command()
def report(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File of ;-terminated queries"),
    cluster: str | None = ClusterOpt,
    database: str | None = DatabaseOpt,
    driver: str | None = DriverOpt,
    header: bool = typer.Option(True, "--header/--no-header", help="Show column names"),
    lines: bool = typer.Option(False, "--lines", help="Draw lines between rows"),
) -> None:
    """Run the queries in a file and print each result as a table."""
    with handle_errors():
        queries = split_statements(file.read_text(encoding="utf-8"))
        if not queries:
            raise ParseError("no statements given", context={"file": str(file)})
        services = make_services(cluster=cluster, database=database, driver=driver)
        try:
            engine = services.engine()
            for query in queries:
                print_rows(engine.query_rows(query), header=header, lines=lines)
        finally:
            services.close()


@app.command("hammer")
def hammer_(
    count: int = typer.Option(10_000, "--count", "-n", min=0, help="Number of inserts"),
    cluster: str | None = ClusterOpt,
    database: str | None = DatabaseOpt,
    driver: str | None = DriverOpt,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Recreate a test table and insert rows one at a time."""

    def progress(outcome: HammerOutcome) -> None:
        console.print(f"[dim]good: ({outcome.good}/{outcome.count})[/dim]")

    with handle_errors():
        services = make_services(cluster=cluster, database=database, driver=driver)
        try:
            outcome = hammer(services.engine(), count, on_progress=None if json_out else progress)
        finally:
            services.close()
    if json_out:
        print_json(outcome.to_dict())
        return
    if not outcome.total:
        console.print("nothing inserted")
        return
    console.print(
        f"[green]completed[/green] {outcome.good}/{outcome.total} in {outcome.time:.3f}s"
        f" ({outcome.per_insert * 1000:.3f}ms/insert, {outcome.per_second:.0f}/sec)"
    )
