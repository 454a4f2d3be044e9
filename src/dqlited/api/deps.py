"""
FastAPI dependency injection.

The app factory stores one :class:`~dqlited.services.Services` on
``app.state``; routers receive it, or an engine built from it, through the
aliases below::

    @router.post("/execute")
    def execute(statements: list[str], engine: Engine):
        ...
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Query, Request

from dqlited.core.settings import DqlitedSettings
from dqlited.execution.engine import ExecutionEngine
from dqlited.services import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings(services: Annotated[Services, Depends(get_services)]) -> DqlitedSettings:
    return services.settings


def get_engine(
    services: Annotated[Services, Depends(get_services)],
    db: str | None = Query(None, description="Database name; the configured one when omitted"),
) -> ExecutionEngine:
    """Engine for the requested database, sharing the process circuit and registry."""
    return services.engine(db)


# ── Convenience type aliases ─────────────────────────────────────────────

ServicesDep = Annotated[Services, Depends(get_services)]
Settings = Annotated[DqlitedSettings, Depends(get_settings)]
Engine = Annotated[ExecutionEngine, Depends(get_engine)]
