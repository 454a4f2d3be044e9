"""Tests for the node HTTP client and the leader-bound driver."""

import json

import httpx
import pytest

from dqlited.cluster.client import DumpFile, HttpDriver, HttpNodeClient
from dqlited.cluster.models import NodeInfo, NodeRole
from dqlited.cluster.resolver import LeaderHandle
from dqlited.core.errors import LeaderMovedError, StructuralError, TransientError
from dqlited.execution.models import Result


def make_client(handler) -> HttpNodeClient:
    return HttpNodeClient("10.0.0.1:9181", transport=httpx.MockTransport(handler))


def respond(status: int, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)

    return handler


class TestErrorMapping:
    """HTTP failures map onto the error taxonomy."""

    def test_not_leader_status(self):
        client = make_client(respond(421, {"error": "not leader"}))
        with pytest.raises(LeaderMovedError):
            client.cluster()

    def test_not_leader_code(self):
        client = make_client(respond(409, {"error": "nope", "error_code": "not_leader"}))
        with pytest.raises(LeaderMovedError):
            client.remove(2)

    def test_unavailable_is_transient(self):
        client = make_client(respond(503, {"error": "busy"}))
        with pytest.raises(TransientError) as exc_info:
            client.exec("demo.db", "insert into t values (1)")
        assert exc_info.value.context["status"] == 503

    def test_sql_error_code_is_structural(self):
        client = make_client(respond(500, {"error": "no such table: t", "code": 1}))
        with pytest.raises(StructuralError) as exc_info:
            client.exec("demo.db", "insert into t values (1)")
        assert exc_info.value.code == 1
        assert exc_info.value.message == "no such table: t"

    def test_client_error_is_structural(self):
        client = make_client(respond(400, {"detail": "bad request"}))
        with pytest.raises(StructuralError):
            client.add(NodeInfo(id=4, address="10.0.0.4:9181"))

    def test_server_error_is_transient(self):
        client = make_client(respond(500, {"error": "internal"}))
        with pytest.raises(TransientError):
            client.cluster()

    def test_connect_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(TransientError) as exc_info:
            client.leader()
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert exc_info.value.context["address"] == "10.0.0.1:9181"


class TestRequests:
    """Request shapes and decoding."""

    def test_leader(self):
        client = make_client(respond(200, {"id": 2, "address": "10.0.0.2:9181"}))
        assert client.leader() == NodeInfo(id=2, address="10.0.0.2:9181")

    def test_leader_unknown(self):
        client = make_client(respond(200, {"id": 0, "address": ""}))
        assert client.leader() is None

    def test_cluster(self):
        client = make_client(
            respond(200, [{"id": 1, "address": "a:1", "role": "voter"}, {"id": 2, "address": "b:2", "role": "spare"}])
        )
        nodes = client.cluster()
        assert [n.role for n in nodes] == [NodeRole.VOTER, NodeRole.SPARE]

    def test_assign_payload(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200)

        make_client(handler).assign(3, "stand-by")
        assert seen == {"path": "/cluster/assign", "body": {"id": 3, "role": "standby"}}

    def test_exec_and_query(self):
        def handler(request):
            if request.url.path.endswith("/exec"):
                return httpx.Response(200, json={"last_insert_id": 5, "rows_affected": 1})
            return httpx.Response(200, json={"columns": ["x"], "types": ["INTEGER"], "values": [[1]]})

        client = make_client(handler)
        assert client.exec("demo.db", "insert").last_insert_id == 5
        assert client.query("demo.db", "select x").values == [[1]]

    def test_exec_atomic(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=[{"rows_affected": 1}, {"rows_affected": 2}])

        results = make_client(handler).exec_atomic("demo.db", ["a", "b"])
        assert seen["body"] == {"statements": ["a", "b"], "transaction": True}
        assert [r.rows_affected for r in results] == [1, 2]

    def test_dump(self):
        file = DumpFile(name="demo.db", data=b"SQLite format 3\x00")
        client = make_client(respond(200, [file.to_dict()]))
        assert client.dump("demo.db") == [file]


class FakeLeaderClient:
    """Database operations of a leader, recorded."""

    def __init__(self, address, moved=False):
        self.address = address
        self.moved = moved
        self.calls = []
        self.closed = False

    def exec(self, database, sql):
        self.calls.append(("exec", database, sql))
        if self.moved:
            raise LeaderMovedError()
        return Result(rows_affected=1)

    def exec_atomic(self, database, statements):
        self.calls.append(("exec_atomic", database, list(statements)))
        return [Result(rows_affected=1) for _ in statements]

    def close(self):
        self.closed = True


class TestHttpDriver:
    """Leader-bound connections."""

    def test_resolves_lazily_and_once(self):
        handles = []

        def resolve():
            handle = LeaderHandle(NodeInfo(id=1, address="a:1"), FakeLeaderClient("a:1"))
            handles.append(handle)
            return handle

        driver = HttpDriver(resolve)
        conn = driver.connect("demo.db")
        assert handles == []
        conn.exec("insert")
        conn.exec("insert")
        assert len(handles) == 1

    def test_leader_moved_discards_handle(self):
        """A stale leader becomes a transient error and the next call re-resolves."""
        clients = [FakeLeaderClient("a:1", moved=True), FakeLeaderClient("b:2")]

        def resolve():
            client = clients.pop(0)
            return LeaderHandle(NodeInfo(id=1, address=client.address), client)

        driver = HttpDriver(resolve)
        conn = driver.connect("demo.db")
        with pytest.raises(TransientError) as exc_info:
            conn.exec("insert")
        assert isinstance(exc_info.value.__cause__, LeaderMovedError)
        assert conn.exec("insert").rows_affected == 1
        assert driver.handle().node.address == "b:2"

    def test_transaction_commits_atomically(self):
        client = FakeLeaderClient("a:1")
        driver = HttpDriver(lambda: LeaderHandle(NodeInfo(id=1, address="a:1"), client))
        tx = driver.connect("demo.db").begin()
        tx.exec("insert 1")
        tx.exec("insert 2")
        results = tx.commit()
        assert client.calls == [("exec_atomic", "demo.db", ["insert 1", "insert 2"])]
        assert len(results) == 2

    def test_transaction_rollback_sends_nothing(self):
        client = FakeLeaderClient("a:1")
        driver = HttpDriver(lambda: LeaderHandle(NodeInfo(id=1, address="a:1"), client))
        tx = driver.connect("demo.db").begin()
        tx.exec("insert 1")
        tx.rollback()
        assert tx.commit() == []
        assert client.calls == []

    def test_close_closes_handle(self):
        client = FakeLeaderClient("a:1")
        driver = HttpDriver(lambda: LeaderHandle(NodeInfo(id=1, address="a:1"), client))
        driver.handle()
        driver.close()
        assert client.closed
