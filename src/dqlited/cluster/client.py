"""
HTTP client for a cluster node's control endpoint.

Every node exposes the same JSON API; only the leader accepts writes and
membership changes.  :class:`HttpNodeClient` maps transport and HTTP
failures onto the dqlited error taxonomy:

==============================  =======================================
Failure                          Raised as
==============================  =======================================
connect / read timeout, reset    ``TransientError``
HTTP 503                         ``TransientError``
HTTP 421 or ``not_leader``       ``LeaderMovedError``
body ``{"code": n > 0}``         ``StructuralError(code=n)``
other 4xx                        ``StructuralError``
other 5xx                        ``TransientError``
==============================  =======================================

:class:`HttpDriver` adapts a leader-bound client to the
:class:`~dqlited.execution.drivers.Driver` protocol used by the
:class:`~dqlited.execution.registry.ConnectionRegistry`.
"""

from __future__ import annotations

import base64
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from dqlited.cluster.models import NodeInfo, NodeRole
from dqlited.core.errors import LeaderMovedError, StructuralError, TransientError
from dqlited.core.logging import get_logger
from dqlited.execution.models import Result, Rows

if TYPE_CHECKING:
    from dqlited.cluster.resolver import LeaderHandle

logger = get_logger(__name__)

NOT_LEADER = "not_leader"


@dataclass(frozen=True)
class DumpFile:
    """One file of a database dump (the database itself, its WAL, ...)."""

    name: str
    data: bytes

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DumpFile:
        return cls(name=str(data["name"]), data=base64.b64decode(data.get("data") or b""))

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "data": base64.b64encode(self.data).decode("ascii")}


class NodeClient(Protocol):
    """Operations the cluster exposes on every node."""

    address: str

    def leader(self, timeout: float | None = None) -> NodeInfo | None: ...

    def cluster(self, timeout: float | None = None) -> list[NodeInfo]: ...

    def add(self, node: NodeInfo, timeout: float | None = None) -> None: ...

    def assign(self, node_id: int, role: NodeRole, timeout: float | None = None) -> None: ...

    def remove(self, node_id: int, timeout: float | None = None) -> None: ...

    def transfer(self, node_id: int, timeout: float | None = None) -> None: ...

    def dump(self, database: str, timeout: float | None = None) -> list[DumpFile]: ...

    def close(self) -> None: ...


class HttpNodeClient:
    """JSON-over-HTTP client bound to one node address.

    Args:
        address: ``host:port`` of the node
        timeout: Default per-request timeout in seconds
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
        scheme: ``http`` or ``https``
    """

    def __init__(
        self,
        address: str,
        *,
        timeout: float = 5.0,
        transport: httpx.BaseTransport | None = None,
        scheme: str = "http",
    ):
        self.address = address
        self._client = httpx.Client(
            base_url=f"{scheme}://{address}",
            timeout=timeout,
            transport=transport,
        )

    # ── transport ────────────────────────────────────────────────────

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        timeout: float | None = None,
    ) -> Any:
        kwargs: dict[str, Any] = {}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise TransientError(
                f"{method} {path} failed: {e.__class__.__name__}",
                context={"address": self.address},
                cause=e,
            ) from e
        return self._decode(response)

    def _decode(self, response: httpx.Response) -> Any:
        try:
            body = response.json() if response.content else None
        except ValueError:
            body = None

        if response.is_success:
            return body

        error = body if isinstance(body, dict) else {}
        status = response.status_code
        message = str(error.get("error") or error.get("detail") or response.text or response.reason_phrase)
        context = {"address": self.address, "status": status}

        if status == 421 or error.get("error_code") == NOT_LEADER:
            raise LeaderMovedError(message, context=context)
        if status == 503:
            raise TransientError(message, context=context)
        code = error.get("code")
        if isinstance(code, int) and not isinstance(code, bool) and code > 0:
            raise StructuralError(message, code=code, context=context)
        if 400 <= status < 500:
            raise StructuralError(message, context=context)
        raise TransientError(message, context=context)

    # ── membership ───────────────────────────────────────────────────

    def leader(self, timeout: float | None = None) -> NodeInfo | None:
        """The leader as this node sees it, or None while unknown."""
        body = self._request("GET", "/leader", timeout=timeout) or {}
        node_id = int(body.get("id") or 0)
        if node_id == 0:
            return None
        return NodeInfo(id=node_id, address=str(body.get("address", "")))

    def cluster(self, timeout: float | None = None) -> list[NodeInfo]:
        body = self._request("GET", "/cluster", timeout=timeout) or []
        return [NodeInfo.from_dict(item) for item in body]

    def add(self, node: NodeInfo, timeout: float | None = None) -> None:
        self._request("POST", "/cluster/add", json=node.to_dict(), timeout=timeout)

    def assign(self, node_id: int, role: NodeRole, timeout: float | None = None) -> None:
        payload = {"id": node_id, "role": NodeRole.parse(role).value}
        self._request("POST", "/cluster/assign", json=payload, timeout=timeout)

    def remove(self, node_id: int, timeout: float | None = None) -> None:
        self._request("POST", "/cluster/remove", json={"id": node_id}, timeout=timeout)

    def transfer(self, node_id: int, timeout: float | None = None) -> None:
        self._request("POST", "/cluster/transfer", json={"id": node_id}, timeout=timeout)

    # ── databases ────────────────────────────────────────────────────

    def query(self, database: str, sql: str, timeout: float | None = None) -> Rows:
        body = self._request("POST", f"/db/{database}/query", json={"sql": sql}, timeout=timeout)
        return Rows.from_dict(body or {})

    def exec(self, database: str, sql: str, timeout: float | None = None) -> Result:
        body = self._request("POST", f"/db/{database}/exec", json={"sql": sql}, timeout=timeout)
        return Result.from_dict(body or {})

    def exec_atomic(self, database: str, statements: list[str], timeout: float | None = None) -> list[Result]:
        """Run ``statements`` as one transaction on the leader."""
        payload = {"statements": list(statements), "transaction": True}
        body = self._request("POST", f"/db/{database}/exec", json=payload, timeout=timeout)
        return [Result.from_dict(item) for item in body or []]

    def dump(self, database: str, timeout: float | None = None) -> list[DumpFile]:
        body = self._request("GET", f"/db/{database}/dump", timeout=timeout)
        return [DumpFile.from_dict(item) for item in body or []]

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpNodeClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"HttpNodeClient({self.address!r})"


# =============================================================================
# DRIVER
# =============================================================================


class HttpTransaction:
    """Buffers statements and sends them as one atomic request on commit.

    The leader applies the whole list or nothing, so rollback only has to
    drop the buffer.
    """

    def __init__(self, conn: HttpConnection):
        self._conn = conn
        self._statements: list[str] = []

    def exec(self, sql: str) -> None:
        self._statements.append(sql)

    def commit(self) -> list[Result]:
        statements, self._statements = self._statements, []
        if not statements:
            return []
        return self._conn._call("exec_atomic", statements)

    def rollback(self) -> None:
        self._statements.clear()


class HttpConnection:
    """A database name bound to whatever node is currently the leader."""

    def __init__(self, driver: HttpDriver, database: str):
        self._driver = driver
        self.database = database

    def _call(self, operation: str, *args: Any) -> Any:
        handle = self._driver.handle()
        try:
            return getattr(handle.client, operation)(self.database, *args)
        except LeaderMovedError as e:
            # stale handle: drop it so the next attempt resolves again
            self._driver.discard(handle)
            raise TransientError(
                f"leader moved away from {handle.node.address}",
                context={"database": self.database},
                cause=e,
            ) from e

    def query(self, sql: str) -> Rows:
        return self._call("query", sql)

    def exec(self, sql: str) -> Result:
        return self._call("exec", sql)

    def begin(self) -> HttpTransaction:
        return HttpTransaction(self)

    def close(self) -> None:
        pass


class HttpDriver:
    """Driver that opens connections against the cluster leader.

    ``resolve`` returns a fresh :class:`~dqlited.cluster.resolver.LeaderHandle`;
    it is called lazily on first use and again whenever a connection finds
    that leadership has moved.
    """

    def __init__(self, resolve: Callable[[], LeaderHandle]):
        self._resolve = resolve
        self._handle: LeaderHandle | None = None
        self._lock = threading.Lock()

    def handle(self) -> LeaderHandle:
        with self._lock:
            if self._handle is None:
                self._handle = self._resolve()
                logger.info("leader_bound", leader_id=self._handle.node.id, address=self._handle.node.address)
            return self._handle

    def discard(self, handle: LeaderHandle) -> None:
        with self._lock:
            if self._handle is handle:
                self._handle = None
        handle.close()

    def connect(self, name: str) -> HttpConnection:
        return HttpConnection(self, name)

    def close(self) -> None:
        with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
