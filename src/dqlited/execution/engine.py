"""
Execution engine: statement dispatch, retry and batch replay.

Every call goes through the same gates, in order:

1. the :class:`~dqlited.execution.circuit_breaker.CircuitBreaker` (a
   disabled circuit fails with ``UnavailableError`` before any I/O),
2. the :class:`~dqlited.execution.registry.ConnectionRegistry` (one
   connection per database name),
3. for writes, a :class:`~dqlited.execution.retry.RetryContext` that retries
   transient failures with exponential backoff and returns structural
   failures immediately.

Reads (``SELECT`` and read-only ``PRAGMA``) are never retried: they are safe
to fail fast and the caller may simply re-issue them.

Example:
    >>> engine = ExecutionEngine(registry, "demo.db", circuit=CircuitBreaker())
    >>> engine.eval("create table t(id integer)")
    >>> engine.batch("BEGIN TRANSACTION;\\ninsert into t values(1);\\nCOMMIT;\\n")
    >>> engine.eval("select count(*) from t").values
    [[1]]
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterable

from dqlited.core.deadline import sleep as cancellable_sleep
from dqlited.core.errors import DqlitedError, ParseError
from dqlited.core.logging import LogContext, get_logger
from dqlited.execution.circuit_breaker import CircuitBreaker
from dqlited.execution.classify import Classifier, default_classifier, wrap
from dqlited.execution.drivers import Connection, Transaction
from dqlited.execution.models import BatchOutcome, ExecuteResponse, Result, Rows, TransactOutcome
from dqlited.execution.registry import ConnectionRegistry
from dqlited.execution.retry import ExponentialBackoff, RetryContext, Sleeper
from dqlited.sql.splitter import BatchItem, BeginTransaction, CommitTransaction, DotCommand, split
from dqlited.sql.statement import Statement

logger = get_logger(__name__)

DOT_QUERIES = {
    ".schema": "select sql || ';' from sqlite_master",
    ".tables": "select name from sqlite_master where type='table' order by name",
}


class ExecutionEngine:
    """Runs statements against one database name.

    Args:
        registry: Source of the single connection for ``database``
        database: Database name
        circuit: Shared circuit breaker; a private enabled one by default
        policy: Retry policy for the exec path
        classifier: ``(exc) -> ErrorKind`` used to decide on retries
        sleeper: Backoff sleep ``(seconds, cancel) -> cancelled``
        cancel: Event observed at every backoff sleep
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        database: str,
        *,
        circuit: CircuitBreaker | None = None,
        policy: ExponentialBackoff | None = None,
        classifier: Classifier = default_classifier,
        sleeper: Sleeper = cancellable_sleep,
        cancel: threading.Event | None = None,
    ):
        self.registry = registry
        self.database = database
        self.circuit = circuit or CircuitBreaker()
        self.policy = policy or ExponentialBackoff()
        self.classifier = classifier
        self.sleeper = sleeper
        self.cancel = cancel

    @property
    def connection(self) -> Connection:
        return self.registry.get(self.database)

    # ── helpers ──────────────────────────────────────────────────────

    def _statement(self, statement: str | Statement) -> Statement:
        if isinstance(statement, Statement):
            return statement
        text = statement.strip()
        if not text:
            raise ParseError("no statements given")
        return Statement.of(DOT_QUERIES.get(text, text))

    def _error(self, exc: BaseException, stmt: Statement, **context) -> DqlitedError:
        error = wrap(exc, self.classifier(exc))
        return error.with_context(statement=stmt.text, database=self.database, **context)

    def _retry_context(self) -> RetryContext:
        return RetryContext(
            strategy=self.policy,
            classifier=self.classifier,
            sleeper=self.sleeper,
            cancel=self.cancel,
        )

    # ── single statements ────────────────────────────────────────────

    def eval(self, statement: str | Statement) -> Rows | Result:
        """Run one statement on the path its verb selects."""
        stmt = self._statement(statement)
        if stmt.is_read:
            return self.query(stmt)
        return self.exec(stmt)

    def query(self, statement: str | Statement) -> Rows:
        """Single-attempt read."""
        stmt = self._statement(statement)
        self.circuit.check()
        started = time.perf_counter()
        try:
            rows = self.connection.query(stmt.text)
        except Exception as e:
            raise self._error(e, stmt)
        rows.time = time.perf_counter() - started
        logger.debug("query_ok", database=self.database, rows=len(rows))
        return rows

    def query_rows(self, statement: str | Statement) -> Rows:
        """Read-only query: anything but ``SELECT`` or ``PRAGMA`` is rejected."""
        stmt = self._statement(statement)
        if not stmt.is_read:
            raise ParseError(
                f"invalid action: {stmt.text.split(None, 1)[0].upper()!r} (must use SELECT)",
                context={"statement": stmt.text},
            )
        return self.query(stmt)

    def exec(self, statement: str | Statement) -> Result:
        """Write with bounded retry.

        The circuit is checked before every attempt, so disabling it stops a
        retry loop at its next attempt.

        Raises:
            UnavailableError: circuit disabled
            StructuralError: SQL-level failure (first occurrence, never retried)
            RetryExhaustedError: every attempt failed transiently
            CancelledError: cancelled during a backoff sleep
        """
        stmt = self._statement(statement)
        ctx = self._retry_context()
        started = time.perf_counter()
        try:
            result = ctx.run(lambda: self.connection.exec(stmt.text), before_attempt=self.circuit.check)
        except DqlitedError as e:
            logger.warning(
                "exec_failed",
                database=self.database,
                attempts=ctx.attempts,
                backoff=round(sum(ctx.slept), 6),
                elapsed=round(ctx.elapsed_seconds, 6),
                error=e.message,
            )
            raise e.with_context(statement=stmt.text, database=self.database)
        result.time = time.perf_counter() - started
        return result

    # ── multi statement ──────────────────────────────────────────────

    def execute(self, statements: Iterable[str], *, atomic: bool = False) -> ExecuteResponse:
        """Run ``statements`` in order and report per-statement results.

        With ``atomic`` the statements run inside one transaction.  The
        first failure aborts; its index is in the error context.
        """
        items = list(statements)
        if not items:
            raise ParseError("no statements given")
        started = time.perf_counter()
        if atomic:
            results = self._in_transaction(items)
        else:
            results = []
            for index, sql in enumerate(items):
                try:
                    results.append(self.exec(sql))
                except DqlitedError as e:
                    raise e.with_context(index=index, total=len(items))
        return ExecuteResponse(results=results, time=time.perf_counter() - started)

    def _in_transaction(self, items: list[str]) -> list[Result]:
        self.circuit.check()
        tx = self._begin()
        results: list[Result] = []
        for index, sql in enumerate(items):
            stmt = self._statement(sql)
            try:
                result = tx.exec(stmt.text)
            except Exception as e:
                self._rollback(tx)
                raise self._error(e, stmt, index=index, total=len(items))
            if result is not None:
                results.append(result)
        committed = self._commit(tx)
        return committed or results

    def _begin(self) -> Transaction:
        try:
            return self.connection.begin()
        except Exception as e:
            error = wrap(e, self.classifier(e), "could not create transaction")
            raise error.with_context(database=self.database)

    def _commit(self, tx: Transaction) -> list[Result]:
        try:
            return tx.commit()
        except Exception as e:
            self._rollback(tx)
            error = wrap(e, self.classifier(e), "could not commit transaction")
            raise error.with_context(database=self.database)

    def _rollback(self, tx: Transaction) -> None:
        try:
            tx.rollback()
        except Exception as e:
            logger.warning("rollback_failed", database=self.database, error=str(e))

    def batch(self, text: str, *, echo: bool = False) -> BatchOutcome:
        """Split ``text`` and run it.

        Reads go to the query path, even inside a transaction block: a
        transaction only scopes writes.  Writes outside a block go through
        :meth:`exec`; inside a block they run once on the open transaction.

        The whole text is parsed before anything runs.  The first failure
        aborts the batch and rolls back the open transaction, if any.
        """
        items = split(text)
        if not items:
            raise ParseError("no statements given")

        with LogContext(database=self.database):
            outcome = self._run_batch(items, echo)
        logger.info(
            "batch_complete",
            database=self.database,
            executed=outcome.executed,
            queried=outcome.queried,
            transactions=outcome.transactions,
            elapsed=round(outcome.time, 6),
        )
        return outcome

    def _run_batch(self, items: list[BatchItem], echo: bool) -> BatchOutcome:
        outcome = BatchOutcome()
        started = time.perf_counter()
        tx: Transaction | None = None
        index = 0
        try:
            for item in items:
                if isinstance(item, BeginTransaction):
                    self.circuit.check()
                    tx = self._begin()
                    continue
                if isinstance(item, CommitTransaction):
                    if tx is not None:
                        committing, tx = tx, None
                        self._commit(committing)
                        outcome.transactions += 1
                    continue
                if isinstance(item, DotCommand):
                    echo = self._dot_command(item, outcome, echo)
                    continue

                if echo:
                    logger.info("batch_statement", line=item.line, statement=item.text)
                try:
                    if item.is_read:
                        outcome.rows.append(self.query(item))
                    elif tx is not None:
                        self.circuit.check()
                        try:
                            result = tx.exec(item.text)
                        except Exception as e:
                            raise self._error(e, item)
                        outcome.results.append(result or Result())
                        outcome.executed += 1
                    else:
                        outcome.results.append(self.exec(item))
                        outcome.executed += 1
                except DqlitedError as e:
                    raise e.with_context(index=index, line=item.line)
                index += 1
        except BaseException:
            if tx is not None:
                self._rollback(tx)
            raise

        outcome.time = time.perf_counter() - started
        return outcome

    def _dot_command(self, item: DotCommand, outcome: BatchOutcome, echo: bool) -> bool:
        if item.name in DOT_QUERIES:
            outcome.rows.append(self.query(DOT_QUERIES[item.name]))
        elif item.name == ".print":
            outcome.messages.append(item.argument.strip("\"'"))
        elif item.name == ".echo":
            return item.argument.lower() in ("1", "on", "true", "yes")
        return echo

    def transact(self, statements: Iterable[str]) -> TransactOutcome:
        """Bulk load: run every statement inside a single transaction.

        Loading a dump of many inserts this way avoids one transaction per
        statement.  Any failure rolls the whole load back.
        """
        self.circuit.check()
        tx = self._begin()
        count = 0
        started = time.perf_counter()
        for sql in statements:
            sql = sql.strip()
            if not sql:
                continue
            try:
                tx.exec(sql)
            except Exception as e:
                self._rollback(tx)
                raise self._error(e, Statement.of(sql), index=count)
            count += 1
        self._commit(tx)
        outcome = TransactOutcome(count=count, time=time.perf_counter() - started)
        if count:
            logger.info("transact_complete", count=count, elapsed=round(outcome.time, 6), rate=outcome.rate)
        return outcome

    def close(self) -> bool:
        """Release this database's connection from the registry."""
        return self.registry.close(self.database)
