"""
Database router: the Execute and Query contracts plus batch replay.

POST /db/execute   ["stmt", ...]          → {"results": [Result], "time"}
GET  /db/query?q=  one statement          → {"results": [Rows]}
POST /db/query     ["stmt", ...]          → {"results": [Rows]}
POST /db/batch     {"sql": "...dump..."}  → BatchOutcome

Every route takes an optional ``db`` query parameter selecting the database.
Handlers are plain ``def`` so each request runs on its own worker thread;
retry backoff never blocks other requests.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Query

from dqlited.api.deps import Engine, ServicesDep
from dqlited.api.schemas import BatchRequest
from dqlited.core.errors import ParseError
from dqlited.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/db")


@router.post("/execute")
def execute(
    statements: Annotated[list[str], Body(description="Ordered SQL statements")],
    engine: Engine,
    atomic: Annotated[bool, Query(description="Run all statements in one transaction")] = False,
    transaction: Annotated[bool, Query(description="Alias of atomic")] = False,
) -> dict[str, Any]:
    response = engine.execute(statements, atomic=atomic or transaction)
    return response.to_dict()


@router.get("/query")
def query_get(
    engine: Engine,
    q: Annotated[str, Query(description="A read-only statement")] = "",
) -> dict[str, Any]:
    if not q.strip():
        raise ParseError("no query given")
    return {"results": [engine.query_rows(q).to_dict()]}


@router.post("/query")
def query_post(
    statements: Annotated[list[str], Body(description="Read-only statements")],
    engine: Engine,
) -> dict[str, Any]:
    if not statements:
        raise ParseError("empty request")
    logger.debug("queries_submitted", count=len(statements))
    return {"results": [engine.query_rows(sql).to_dict() for sql in statements]}


@router.post("/batch")
def batch(request: BatchRequest, services: ServicesDep) -> dict[str, Any]:
    engine = services.engine(request.database)
    return engine.batch(request.sql).to_dict()
