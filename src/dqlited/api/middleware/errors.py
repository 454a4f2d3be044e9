"""
Error handlers: map :class:`~dqlited.core.errors.DqlitedError` kinds to
RFC 7807 responses.

Caller mistakes (bad SQL, malformed batch, bad arguments) are 400s; anything
that may work later (circuit disabled, no leader, exhausted retries) is a
503.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from dqlited.api.schemas import ProblemDetail
from dqlited.core.errors import DqlitedError, ErrorKind, cause_chain, error_kind
from dqlited.core.logging import get_logger

logger = get_logger(__name__)

# ── Error kind → HTTP status mapping ─────────────────────────────────────

ERROR_KIND_TO_STATUS: dict[ErrorKind, int] = {
    ErrorKind.PARSE: 400,
    ErrorKind.STRUCTURAL: 400,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNAVAILABLE: 503,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.COORDINATION: 503,
    ErrorKind.CANCELLED: 503,
}


def status_for_error_kind(kind: ErrorKind | None) -> int:
    """Resolve an error kind to HTTP status, defaulting to 500."""
    if kind is None:
        return 500
    return ERROR_KIND_TO_STATUS.get(kind, 500)


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    context: dict[str, Any] | None = None,
    causes: list[str] | None = None,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance,
        context={k: v if isinstance(v, (str, int, float, bool, type(None))) else str(v) for k, v in (context or {}).items()},
        causes=causes or [],
    )
    return JSONResponse(status_code=status, content=body.model_dump())


async def dqlited_error_handler(request: Request, exc: DqlitedError) -> JSONResponse:
    """Map a :class:`DqlitedError` by its recoverable kind."""
    kind = error_kind(exc) or exc.kind
    status = status_for_error_kind(kind)
    logger.warning("request_failed", path=request.url.path, status=status, kind=kind.value, error=exc.message)
    return problem_response(
        status=status,
        title=kind.value,
        detail=exc.message,
        instance=request.url.path,
        context=exc.context,
        causes=cause_chain(exc)[1:],
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: returns 500 with ProblemDetail."""
    logger.error("unhandled_exception", path=request.url.path, error=str(exc), exc_info=exc)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred.",
        instance=request.url.path,
    )
