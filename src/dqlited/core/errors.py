"""
Structured error types for dqlited.

Every failure raised by the execution and coordination layers is a
:class:`DqlitedError` carrying an :class:`ErrorKind`.  The kind drives three
decisions:

- **Retry:** the execution engine only retries ``TRANSIENT`` failures.
- **HTTP status:** ``PARSE``/``STRUCTURAL``/``INVALID_INPUT`` map to 400,
  ``UNAVAILABLE``/``TRANSIENT``/``COORDINATION``/``CANCELLED`` map to 503.
- **CLI exit:** any ``DqlitedError`` prints its cause chain and exits 1.

Hierarchy:
    ::

        DqlitedError (kind, context, cause)
        ├── UnavailableError        UNAVAILABLE   circuit breaker disabled
        ├── TransientError          TRANSIENT     network / availability
        │   └── RetryExhaustedError               attempts used up
        ├── StructuralError         STRUCTURAL    SQL-level failure (code)
        ├── ParseError              PARSE         malformed batch text
        ├── CoordinationError       COORDINATION
        │   ├── NoLeaderError                     no leader within timeout
        │   ├── LeaderMovedError                  handle is stale
        │   └── HandoffError                      transfer/remove failed
        ├── CancelledError          CANCELLED     caller cancelled
        └── InvalidInputError       INVALID_INPUT
            ├── InvalidRoleError
            └── InvalidNodeIdError

Context is attached while an error propagates, without changing its class,
so the original classification is always recoverable::

    try:
        engine.exec(sql)
    except DqlitedError as e:
        raise e.with_context(statement=sql, index=3)

Use :func:`error_kind` to classify arbitrary exceptions, including chains
where a ``DqlitedError`` sits further down ``__cause__``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Failure taxonomy used for retry decisions and status mapping."""

    UNAVAILABLE = "UNAVAILABLE"      # circuit open, no I/O attempted
    TRANSIENT = "TRANSIENT"          # network / timeout, retried
    STRUCTURAL = "STRUCTURAL"        # genuine SQL error, never retried
    PARSE = "PARSE"                  # malformed batch input
    COORDINATION = "COORDINATION"    # leader lookup / handoff
    CANCELLED = "CANCELLED"
    INVALID_INPUT = "INVALID_INPUT"  # bad role name, bad node id, ...


class DqlitedError(Exception):
    """Base exception for all dqlited errors.

    Attributes:
        message: Human readable description
        kind: :class:`ErrorKind` classification
        context: Free-form metadata (statement, attempt, database, ...)
        cause: Underlying exception, also set as ``__cause__``
    """

    default_kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind | None = None,
        context: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.context: dict[str, Any] = dict(context or {})
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT

    def with_context(self, **kwargs: Any) -> DqlitedError:
        """Add context to this error (fluent API).

        Existing keys are kept; the innermost caller knows best.
        """
        for key, value in kwargs.items():
            self.context.setdefault(key, value)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "kind": self.kind.value,
            "retryable": self.retryable,
        }
        if self.context:
            result["context"] = dict(self.context)
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, kind={self.kind.value})"


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class UnavailableError(DqlitedError):
    """The circuit breaker is disabled; no network call was attempted."""

    default_kind = ErrorKind.UNAVAILABLE

    def __init__(self, message: str = "database is unavailable", **kwargs: Any):
        super().__init__(message, **kwargs)


class TransientError(DqlitedError):
    """Network or availability error that may succeed on retry."""

    default_kind = ErrorKind.TRANSIENT


class RetryExhaustedError(TransientError):
    """All exec attempts failed with transient errors.

    ``cause`` holds the error from the final attempt.
    """

    def __init__(self, message: str, *, attempts: int, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.attempts = attempts
        self.context.setdefault("attempts", attempts)


class StructuralError(DqlitedError):
    """The remote engine reported a SQL-level failure.

    Attributes:
        code: Engine error code (``> 0`` for genuine SQL errors)
    """

    default_kind = ErrorKind.STRUCTURAL

    def __init__(self, message: str, *, code: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.code = code
        if code is not None:
            self.context.setdefault("code", code)


class ParseError(DqlitedError):
    """Malformed batch input (unterminated block, empty statement list)."""

    default_kind = ErrorKind.PARSE

    def __init__(self, message: str, *, line: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.line = line
        if line is not None:
            self.context.setdefault("line", line)


# =============================================================================
# COORDINATION ERRORS
# =============================================================================


class CoordinationError(DqlitedError):
    """Cluster coordination failure."""

    default_kind = ErrorKind.COORDINATION


class NoLeaderError(CoordinationError):
    """No leader could be found within the timeout."""

    def __init__(self, message: str = "no leader found", **kwargs: Any):
        super().__init__(message, **kwargs)


class LeaderMovedError(CoordinationError):
    """The node behind a handle is no longer the leader; re-resolve."""

    def __init__(self, message: str = "not leader", **kwargs: Any):
        super().__init__(message, **kwargs)


class HandoffError(CoordinationError):
    """Leadership transfer or node removal failed."""


class CancelledError(DqlitedError):
    """The caller cancelled the operation."""

    default_kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "operation cancelled", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# INPUT ERRORS
# =============================================================================


class InvalidInputError(DqlitedError):
    """Invalid argument supplied by the caller."""

    default_kind = ErrorKind.INVALID_INPUT


class InvalidRoleError(InvalidInputError):
    def __init__(self, role: str):
        self.role = role
        super().__init__(f"invalid role name: {role!r}")


class InvalidNodeIdError(InvalidInputError):
    def __init__(self, value: Any, message: str | None = None):
        self.value = value
        super().__init__(message or f"invalid node id: {value!r} (must be an integer > 0)")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def error_kind(error: BaseException) -> ErrorKind | None:
    """Recover the classification of ``error``.

    Walks the ``__cause__`` chain and returns the kind of the first
    :class:`DqlitedError` found.  A :class:`RetryExhaustedError` reports the
    kind of the error it wraps when that is known.
    """
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, RetryExhaustedError) and current.cause is not None:
            inner = error_kind(current.cause)
            return inner or current.kind
        if isinstance(current, DqlitedError):
            return current.kind
        current = current.__cause__
    return None


def cause_chain(error: BaseException) -> list[str]:
    """Return the messages of ``error`` and every exception it was raised from."""
    messages: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        messages.append(f"{current.__class__.__name__}: {current}")
        current = current.__cause__ or current.__context__
    return messages


__all__ = [
    "ErrorKind",
    "DqlitedError",
    "UnavailableError",
    "TransientError",
    "RetryExhaustedError",
    "StructuralError",
    "ParseError",
    "CoordinationError",
    "NoLeaderError",
    "LeaderMovedError",
    "HandoffError",
    "CancelledError",
    "InvalidInputError",
    "InvalidRoleError",
    "InvalidNodeIdError",
    "error_kind",
    "cause_chain",
]
