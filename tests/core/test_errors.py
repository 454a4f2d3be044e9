"""Tests for the error hierarchy and classification helpers."""

import sqlite3

import httpx
import pytest

from dqlited.core.errors import (
    CancelledError,
    DqlitedError,
    ErrorKind,
    InvalidNodeIdError,
    InvalidRoleError,
    LeaderMovedError,
    NoLeaderError,
    ParseError,
    RetryExhaustedError,
    StructuralError,
    TransientError,
    UnavailableError,
    cause_chain,
    error_kind,
)
from dqlited.execution.classify import default_classifier, wrap


class TestErrorKinds:
    @pytest.mark.parametrize(
        "error,kind",
        [
            (UnavailableError(), ErrorKind.UNAVAILABLE),
            (TransientError("x"), ErrorKind.TRANSIENT),
            (StructuralError("x", code=1), ErrorKind.STRUCTURAL),
            (ParseError("x"), ErrorKind.PARSE),
            (NoLeaderError(), ErrorKind.COORDINATION),
            (LeaderMovedError(), ErrorKind.COORDINATION),
            (CancelledError(), ErrorKind.CANCELLED),
            (InvalidRoleError("x"), ErrorKind.INVALID_INPUT),
            (InvalidNodeIdError(0), ErrorKind.INVALID_INPUT),
        ],
    )
    def test_default_kind(self, error, kind):
        assert error.kind == kind

    def test_only_transient_is_retryable(self):
        assert TransientError("x").retryable
        assert not StructuralError("x").retryable
        assert not UnavailableError().retryable


class TestContext:
    def test_with_context_keeps_existing_keys(self):
        error = StructuralError("bad", code=1).with_context(statement="a")
        error.with_context(statement="b", index=2)
        assert error.context == {"code": 1, "statement": "a", "index": 2}

    def test_str_includes_context(self):
        error = ParseError("unterminated statement", line=4)
        assert str(error) == "unterminated statement (line=4)"

    def test_to_dict(self):
        cause = OSError("refused")
        error = TransientError("down", cause=cause, context={"address": "a:1"})
        data = error.to_dict()
        assert data["error_type"] == "TransientError"
        assert data["kind"] == "TRANSIENT"
        assert data["retryable"] is True
        assert data["context"] == {"address": "a:1"}
        assert data["cause"] == "refused"
        assert error.__cause__ is cause


class TestErrorKindHelper:
    def test_plain_exception(self):
        assert error_kind(ValueError("x")) is None

    def test_walks_cause_chain(self):
        try:
            try:
                raise StructuralError("inner")
            except StructuralError as e:
                raise RuntimeError("outer") from e
        except RuntimeError as outer:
            assert error_kind(outer) == ErrorKind.STRUCTURAL

    def test_retry_exhausted_reports_cause_kind(self):
        error = RetryExhaustedError("gave up", attempts=10, cause=TransientError("reset"))
        assert error_kind(error) == ErrorKind.TRANSIENT
        assert error.context["attempts"] == 10

    def test_cause_chain(self):
        error = TransientError("outer", cause=OSError("inner"))
        assert cause_chain(error) == ["TransientError: outer", "OSError: inner"]


class TestClassifier:
    @pytest.mark.parametrize(
        "exc,kind",
        [
            (sqlite3.OperationalError("no such table: t"), ErrorKind.STRUCTURAL),
            (sqlite3.OperationalError("database is locked"), ErrorKind.TRANSIENT),
            (sqlite3.IntegrityError("UNIQUE constraint failed"), ErrorKind.STRUCTURAL),
            (sqlite3.InterfaceError("closed"), ErrorKind.TRANSIENT),
            (httpx.ConnectError("refused"), ErrorKind.TRANSIENT),
            (ConnectionResetError(), ErrorKind.TRANSIENT),
            (TimeoutError(), ErrorKind.TRANSIENT),
            (RuntimeError("unknown"), ErrorKind.TRANSIENT),
            (ParseError("x"), ErrorKind.PARSE),
        ],
    )
    def test_default_classifier(self, exc, kind):
        assert default_classifier(exc) == kind

    def test_wrap_keeps_dqlited_errors(self):
        error = StructuralError("x")
        assert wrap(error, ErrorKind.TRANSIENT) is error

    def test_wrap_structural(self):
        exc = sqlite3.OperationalError("no such table: t")
        error = wrap(exc, ErrorKind.STRUCTURAL)
        assert isinstance(error, StructuralError)
        assert error.cause is exc

    def test_wrap_other_kind(self):
        error = wrap(ValueError("x"), ErrorKind.COORDINATION, "lookup failed")
        assert type(error) is DqlitedError
        assert error.kind == ErrorKind.COORDINATION
        assert error.message == "lookup failed"
