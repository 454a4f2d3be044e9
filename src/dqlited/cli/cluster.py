"""
CLI: ``dqlited cluster`` — membership and leadership.

Node ids are parsed by dqlited rather than typer so that a malformed id
reports like every other failure and exits 1.
"""

from __future__ import annotations

import typer

from dqlited.cli.utils import console, handle_errors, make_services, print_json, print_records
from dqlited.cluster.handoff import HandoffOutcome, ShutdownHook
from dqlited.cluster.models import NodeRole
from dqlited.core.errors import HandoffError
from dqlited.core.settings import parse_node_id

app = typer.Typer(no_args_is_help=True)

ClusterOpt = typer.Option(None, "--cluster", "-c", help="Comma separated node addresses")
TimeoutOpt = typer.Option(None, "--timeout", "-t", help="Leader lookup timeout in seconds")


@app.command()
def show(
    cluster: str | None = ClusterOpt,
    timeout: float | None = TimeoutOpt,
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show cluster members, sorted by id."""
    with handle_errors():
        services = make_services(cluster=cluster, timeout=timeout)
        try:
            view = services.admin().show()
        finally:
            services.close()
        if json_out:
            print_json({"leader_id": view.leader_id, "nodes": view.rows()})
        else:
            print_records(view.rows(), title="Cluster")


@app.command()
def leader(
    cluster: str | None = ClusterOpt,
    timeout: float | None = TimeoutOpt,
) -> None:
    """Print the leader's id (0 when unknown)."""
    with handle_errors():
        services = make_services(cluster=cluster, timeout=timeout)
        try:
            console.print(services.admin().leader_id())
        finally:
            services.close()


@app.command()
def add(
    node_id: str = typer.Argument(..., help="Node id (> 0)"),
    address: str = typer.Argument(..., help="host:port"),
    role: str = typer.Option("voter", "--role", "-r", help="voter, standby or spare"),
    cluster: str | None = ClusterOpt,
    timeout: float | None = TimeoutOpt,
) -> None:
    """Add a node (no-op when it is already a member)."""
    with handle_errors():
        parsed_id = parse_node_id(node_id)
        parsed_role = NodeRole.parse(role)
        services = make_services(cluster=cluster, timeout=timeout)
        try:
            added = services.admin().add_node(parsed_id, address, parsed_role)
        finally:
            services.close()
        if added:
            console.print(f"[green]added[/green] node {parsed_id} ({address}) as {parsed_role.value}")
        else:
            console.print(f"[dim]node {parsed_id} already present[/dim]")


@app.command()
def assign(
    node_id: str = typer.Argument(..., help="Node id"),
    role: str = typer.Argument(..., help="voter, standby or spare"),
    cluster: str | None = ClusterOpt,
    timeout: float | None = TimeoutOpt,
) -> None:
    """Assign a new role to a node."""
    with handle_errors():
        parsed_id = parse_node_id(node_id)
        parsed_role = NodeRole.parse(role)
        services = make_services(cluster=cluster, timeout=timeout)
        try:
            services.admin().assign(parsed_id, parsed_role)
        finally:
            services.close()
        console.print(f"[green]assigned[/green] node {parsed_id} as {parsed_role.value}")


@app.command()
def remove(
    node_id: str = typer.Argument(..., help="Node id"),
    cluster: str | None = ClusterOpt,
    timeout: float | None = TimeoutOpt,
) -> None:
    """Remove a node from the cluster."""
    with handle_errors():
        parsed_id = parse_node_id(node_id)
        services = make_services(cluster=cluster, timeout=timeout)
        try:
            services.admin().remove(parsed_id)
        finally:
            services.close()
        console.print(f"[green]removed[/green] node {parsed_id}")


@app.command()
def transfer(
    node_id: str = typer.Argument(..., help="Node id of the new leader"),
    cluster: str | None = ClusterOpt,
    timeout: float | None = TimeoutOpt,
) -> None:
    """Transfer leadership to a node."""
    with handle_errors():
        parsed_id = parse_node_id(node_id)
        services = make_services(cluster=cluster, timeout=timeout)
        try:
            previous = services.admin().transfer(parsed_id)
        finally:
            services.close()
        console.print(f"[green]transferred[/green] leadership from {previous} to {parsed_id}")


@app.command()
def handoff(
    node_id: str = typer.Argument(..., help="Id of the node that is leaving"),
    cluster: str | None = ClusterOpt,
    timeout: float | None = TimeoutOpt,
    on_signal: bool = typer.Option(
        False, "--on-signal", help="Wait for SIGINT/SIGTERM/SIGHUP before handing off"
    ),
) -> None:
    """Hand leadership to a voter peer and remove the node."""
    with handle_errors():
        parsed_id = parse_node_id(node_id)
        services = make_services(cluster=cluster, timeout=timeout)
        try:
            protocol = services.handoff(parsed_id)
            if on_signal:
                hook = ShutdownHook(protocol).install()
                console.print(f"[dim]node {parsed_id}: waiting for shutdown signal[/dim]")
                try:
                    hook.wait_triggered()
                    result = hook.wait()
                finally:
                    hook.uninstall()
            else:
                result = protocol.run()
        finally:
            services.close()

        if result is None:
            raise HandoffError("handoff did not complete", context={"node_id": parsed_id})
        console.print(
            f"handoff [bold]{result.outcome.value}[/bold] node={result.node_id}"
            f" transferred_to={result.transferred_to} removed={result.removed}"
        )
        if result.outcome is HandoffOutcome.REMOVAL_FAILED:
            raise HandoffError(
                f"node {parsed_id} was not removed: {result.error}",
                context={"node_id": parsed_id, "attempted": result.attempted},
            )
