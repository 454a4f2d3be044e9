"""dqlited command-line interface (typer + rich)."""

from dqlited.cli.app import app

__all__ = ["app"]
