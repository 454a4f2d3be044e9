"""Database driver protocols and the local SQLite driver.

The execution engine never talks to a backend directly.  It borrows a
:class:`Connection` from the :class:`~dqlited.execution.registry.ConnectionRegistry`,
which obtains it from a :class:`Driver`:

- :class:`SqliteDriver`: local files (solo mode, tests, offline replay)
- :class:`~dqlited.cluster.client.HttpDriver`: the cluster leader over HTTP

Drivers raise their native errors; the engine's classifier decides what is
structural and what is transient.
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any, Protocol

from dqlited.execution.models import Result, Rows


class Transaction(Protocol):
    """An open transaction on one connection."""

    def exec(self, sql: str) -> Result | None: ...

    def commit(self) -> list[Result]: ...

    def rollback(self) -> None: ...


class Connection(Protocol):
    """The single live connection for one database name."""

    def query(self, sql: str) -> Rows: ...

    def exec(self, sql: str) -> Result: ...

    def begin(self) -> Transaction: ...

    def close(self) -> None: ...


class Driver(Protocol):
    def connect(self, name: str) -> Connection: ...


# ── SQLite ───────────────────────────────────────────────────────────────


def _type_name(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool | int):
        return "INTEGER"
    if isinstance(value, float):
        return "REAL"
    if isinstance(value, bytes | bytearray | memoryview):
        return "BLOB"
    return "TEXT"


class SqliteTransaction:
    """Explicit ``BEGIN`` ... ``COMMIT`` on an autocommit connection.

    The connection lock is held from ``BEGIN`` until the transaction is
    committed or rolled back, so statements from other threads wait instead
    of landing inside somebody else's transaction.
    """

    def __init__(self, conn: SqliteConnection) -> None:
        self._conn = conn
        self._results: list[Result] = []
        conn._lock.acquire()
        try:
            conn._execute("BEGIN")
        except BaseException:
            conn._lock.release()
            raise
        self._open = True

    def exec(self, sql: str) -> Result:
        result = self._conn.exec(sql)
        self._results.append(result)
        return result

    def commit(self) -> list[Result]:
        try:
            self._conn._execute("COMMIT")
        except BaseException:
            self._close(rollback=True)
            raise
        self._close(rollback=False)
        return list(self._results)

    def rollback(self) -> None:
        self._close(rollback=True)

    def _close(self, *, rollback: bool) -> None:
        if not self._open:
            return
        self._open = False
        try:
            if rollback and self._conn.raw.in_transaction:
                self._conn._execute("ROLLBACK")
        finally:
            self._conn._lock.release()


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → :class:`Connection` protocol.

    The connection runs in autocommit mode (``isolation_level=None``) so
    that transactions are only ever the ones a caller opens explicitly.
    Access is serialised with a re-entrant lock: one statement at a time
    per database, and one open transaction at a time.
    """

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        self._lock = threading.RLock()

    def _execute(self, sql: str) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(sql)

    def query(self, sql: str) -> Rows:
        with self._lock:
            cursor = self._conn.execute(sql)
            columns = [d[0] for d in cursor.description or ()]
            values = [list(row) for row in cursor.fetchall()]
        types = [_type_name(values[0][i]) if values else "" for i in range(len(columns))]
        return Rows(columns=columns, types=types, values=values)

    def exec(self, sql: str) -> Result:
        with self._lock:
            cursor = self._conn.execute(sql)
            return Result(
                last_insert_id=cursor.lastrowid or 0,
                rows_affected=max(cursor.rowcount, 0),
            )

    def begin(self) -> SqliteTransaction:
        return SqliteTransaction(self)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self.path!r})"


class SqliteDriver:
    """Opens database files under ``directory``.

    ``directory=None`` keeps every database in memory.
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        self.directory = Path(directory) if directory is not None else None

    def connect(self, name: str) -> SqliteConnection:
        if self.directory is None:
            return SqliteConnection(":memory:")
        self.directory.mkdir(parents=True, exist_ok=True)
        return SqliteConnection(str(self.directory / name))
