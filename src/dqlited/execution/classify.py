"""Error classification for the execution engine.

The engine never inspects backend exception types itself.  It asks a
classifier ``(exc) -> ErrorKind`` whether a failure is structural (stop) or
transient (back off and retry), and wraps anything that is not already a
:class:`~dqlited.core.errors.DqlitedError` so callers see one hierarchy.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

import httpx

from dqlited.core.errors import (
    DqlitedError,
    ErrorKind,
    ParseError,
    StructuralError,
    TransientError,
)

Classifier = Callable[[BaseException], ErrorKind]

# SQLITE_BUSY / SQLITE_LOCKED surface as OperationalError with these messages
_BUSY_MARKERS = ("database is locked", "database table is locked", "database is busy")


def default_classifier(exc: BaseException) -> ErrorKind:
    """Classify ``exc`` for retry purposes.

    Unrecognised errors are TRANSIENT: only a failure that is known to be a
    SQL-level error stops the retry loop.
    """
    if isinstance(exc, DqlitedError):
        return exc.kind
    if isinstance(exc, sqlite3.OperationalError):
        message = str(exc).lower()
        if any(marker in message for marker in _BUSY_MARKERS):
            return ErrorKind.TRANSIENT
        return ErrorKind.STRUCTURAL
    if isinstance(exc, sqlite3.InterfaceError):
        return ErrorKind.TRANSIENT
    if isinstance(exc, sqlite3.Error):
        return ErrorKind.STRUCTURAL
    if isinstance(exc, (httpx.TransportError, OSError, TimeoutError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.TRANSIENT


def wrap(exc: BaseException, kind: ErrorKind, message: str | None = None) -> DqlitedError:
    """Return ``exc`` as a :class:`DqlitedError` of ``kind``.

    ``DqlitedError`` instances are returned unchanged so that their class and
    context survive.
    """
    if isinstance(exc, DqlitedError):
        return exc
    text = message or str(exc) or exc.__class__.__name__
    if kind == ErrorKind.STRUCTURAL:
        code = getattr(exc, "sqlite_errorcode", None)
        return StructuralError(text, code=code, cause=exc)
    if kind == ErrorKind.PARSE:
        return ParseError(text, cause=exc)
    if kind == ErrorKind.TRANSIENT:
        return TransientError(text, cause=exc)
    return DqlitedError(text, kind=kind, cause=exc)
