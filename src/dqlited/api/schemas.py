"""
API schemas: request bodies and the RFC 7807 error envelope.

Successful responses are the plain dictionaries of the execution models
(``Result``, ``Rows``, ``ExecuteResponse``) so that existing DB-API style
clients keep working; every 4xx/5xx is a :class:`ProblemDetail`.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ProblemDetail(BaseModel):
    """RFC 7807 «Problem Details for HTTP APIs».

    Example:
        {
            "type": "about:blank",
            "title": "STRUCTURAL",
            "status": 400,
            "detail": "no such table: t",
            "instance": "/db/execute",
            "context": {"statement": "insert into t values(1)", "index": 0}
        }
    """

    type: str = Field(default="about:blank")
    title: str = Field(description="Error kind")
    status: int = Field(description="HTTP status code")
    detail: str = Field(default="", description="Error message")
    instance: str = Field(default="", description="URI of the failing request")
    context: dict[str, Any] = Field(default_factory=dict, description="Statement, index, attempt, ...")
    causes: list[str] = Field(default_factory=list, description="Cause chain, outermost first")


class BatchRequest(BaseModel):
    """A batch of SQL text, as produced by ``sqlite3 .dump``."""

    sql: str = Field(description="Batch text")
    database: str | None = Field(default=None, description="Database name; the configured one when omitted")


class CircuitRequest(BaseModel):
    enabled: bool
