"""HTTP API for dqlited (FastAPI)."""

from dqlited.api.app import create_app

__all__ = ["create_app"]
