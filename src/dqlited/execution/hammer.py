"""
Write load generator.

:func:`hammer` recreates a one-table schema and then inserts ``count`` rows
one statement at a time through :meth:`ExecutionEngine.exec`, so every
insert goes through the circuit breaker and the retry loop.  A failed
insert is counted and the loop carries on; watching the counts while
nodes are stopped and started is the point.

Example:
    >>> outcome = hammer(services.engine(), 10_000)
    >>> outcome.good, outcome.fails
    (10000, 0)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from dqlited.core.errors import CancelledError, DqlitedError, UnavailableError
from dqlited.core.logging import get_logger
from dqlited.execution.engine import ExecutionEngine

logger = get_logger(__name__)

TABLE = "simple"
PREP = (
    f"drop table if exists {TABLE}",
    f"create table {TABLE} (id integer primary key, other integer)",
)
PROGRESS_EVERY = 1000


@dataclass
class HammerOutcome:
    """Counts for one :func:`hammer` run."""

    count: int
    good: int = 0
    fails: int = 0
    time: float = 0.0

    @property
    def total(self) -> int:
        return self.good + self.fails

    @property
    def per_insert(self) -> float:
        """Seconds per attempted insert."""
        return self.time / self.total if self.total else 0.0

    @property
    def per_second(self) -> float:
        return self.total / self.time if self.time else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "good": self.good,
            "fails": self.fails,
            "time": self.time,
            "per_insert": self.per_insert,
            "per_second": self.per_second,
        }


def prepare(engine: ExecutionEngine) -> None:
    """Drop and recreate the hammer table."""
    for sql in PREP:
        engine.exec(sql)


def hammer(
    engine: ExecutionEngine,
    count: int,
    *,
    on_progress: Callable[[HammerOutcome], None] | None = None,
) -> HammerOutcome:
    """Insert ``count`` rows, one exec each, and report how it went.

    The inserted value is the last insert id plus one, so a gap between the
    id the server reports and the number of good inserts shows up as an
    ``hammer_offby`` warning.  ``on_progress`` is called every
    :data:`PROGRESS_EVERY` good inserts.

    Raises:
        UnavailableError: the circuit was disabled
        CancelledError: the engine's cancel event fired during a backoff
    """
    if count < 0:
        raise ValueError("count must be >= 0")
    prepare(engine)
    outcome = HammerOutcome(count=count)
    last = 0
    started = time.perf_counter()
    logger.info("hammer_started", database=engine.database, count=count)
    for _ in range(count):
        try:
            result = engine.exec(f"insert into {TABLE} (other) values ({last + 1})")
        except (UnavailableError, CancelledError):
            raise
        except DqlitedError as e:
            outcome.fails += 1
            logger.warning("hammer_insert_failed", fails=outcome.fails, error=e.message)
            continue
        last = result.last_insert_id
        outcome.good += 1
        if last != outcome.good:
            logger.warning("hammer_offby", last_insert_id=last, good=outcome.good)
            outcome.good = last
        if on_progress is not None and outcome.good % PROGRESS_EVERY == 0:
            on_progress(outcome)
    outcome.time = time.perf_counter() - started
    logger.info("hammer_complete", **outcome.to_dict())
    return outcome
