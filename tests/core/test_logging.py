"""Tests for structured logging setup."""

import structlog
from structlog.testing import capture_logs

from dqlited.core.logging import LogContext, configure_logging, get_logger


class TestLogContext:
    def test_binds_and_unbinds(self):
        structlog.contextvars.bind_contextvars(request_id="r1")
        try:
            with LogContext(database="demo.db", node_id=1):
                bound = structlog.contextvars.get_contextvars()
                assert bound == {"request_id": "r1", "database": "demo.db", "node_id": 1}
            assert structlog.contextvars.get_contextvars() == {"request_id": "r1"}
        finally:
            structlog.contextvars.clear_contextvars()

    def test_batch_logs_carry_database(self, engine):
        seen = []

        def record(logger, method_name, event_dict):
            seen.append(dict(event_dict))
            raise structlog.DropEvent

        structlog.reset_defaults()
        structlog.configure(processors=[structlog.contextvars.merge_contextvars, record])
        try:
            engine.batch(".echo on\nCREATE TABLE t (x);\n")
        finally:
            structlog.reset_defaults()

        echoed = [e for e in seen if e["event"] == "batch_statement"]
        assert echoed[0]["database"] == "test.db"
        assert "database" not in structlog.contextvars.get_contextvars()


class TestConfigureLogging:
    def test_console_and_json(self):
        try:
            configure_logging(level="DEBUG", json_format=True, service="dqlited-test")
            with capture_logs() as logs:
                get_logger("x").info("hello", n=1)
            assert logs[0]["event"] == "hello"
            configure_logging(level="INFO", json_format=False)
        finally:
            structlog.reset_defaults()
