"""
FastAPI application factory.

``create_app()`` wires the shared :class:`~dqlited.services.Services`,
error handlers and routers into a single ``FastAPI`` instance.  The
services are closed when the application shuts down.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dqlited import __version__
from dqlited.api.middleware.errors import dqlited_error_handler, unhandled_exception_handler
from dqlited.api.routers import cluster, db
from dqlited.core.errors import DqlitedError
from dqlited.core.logging import get_logger
from dqlited.core.settings import DqlitedSettings, get_settings
from dqlited.services import Services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup / shutdown hooks."""
    log = get_logger("dqlited.api")
    settings = app.state.settings
    log.info("api_starting", version=app.version, database=settings.database, driver=settings.driver)
    yield
    app.state.services.close()
    log.info("api_stopped")


def create_app(
    *,
    settings: DqlitedSettings | None = None,
    services: Services | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : DqlitedSettings | None
        Override settings (useful for testing).  When ``None`` the cached
        settings from :func:`get_settings` are used.
    services : Services | None
        Pre-built services (tests inject fakes here).
    """
    if services is not None:
        settings = services.settings
    settings = settings or get_settings()
    services = services or Services(settings)

    app = FastAPI(title="dqlited", version=__version__, lifespan=lifespan)

    app.state.settings = settings
    app.state.services = services

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(DqlitedError, dqlited_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    app.include_router(db.router, tags=["db"])
    app.include_router(cluster.router, tags=["cluster"])

    return app
