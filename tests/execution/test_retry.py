"""Tests for bounded exponential retry."""

import sqlite3
import threading
from unittest.mock import MagicMock

import pytest

from dqlited.core.errors import (
    CancelledError,
    ErrorKind,
    RetryExhaustedError,
    StructuralError,
    TransientError,
    UnavailableError,
    error_kind,
)
from dqlited.execution.retry import ExponentialBackoff, RetryContext


class Recorder:
    """Sleeper that records delays and never blocks."""

    def __init__(self, cancel_after: int | None = None):
        self.delays: list[float] = []
        self.cancel_after = cancel_after

    def __call__(self, seconds, cancel=None) -> bool:
        self.delays.append(seconds)
        return self.cancel_after is not None and len(self.delays) >= self.cancel_after


class TestExponentialBackoff:
    """Tests for the delay schedule."""

    def test_defaults(self):
        strategy = ExponentialBackoff()
        assert strategy.max_attempts == 10
        assert strategy.base_delay == 0.001
        assert strategy.multiplier == 2.0
        assert strategy.max_delay is None

    def test_doubling_schedule(self):
        """Delays double from the base: 1, 2, 4, 8 ... units."""
        strategy = ExponentialBackoff(base_delay=1.0)
        assert [strategy.next_delay(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delays_for_ten_attempts(self):
        """Ten attempts sleep nine times, 0.001 up to 0.256 seconds."""
        delays = ExponentialBackoff().delays()
        assert len(delays) == 9
        assert delays[0] == pytest.approx(0.001)
        assert delays[-1] == pytest.approx(0.256)

    def test_max_delay_caps(self):
        strategy = ExponentialBackoff(base_delay=1.0, max_delay=3.0)
        assert strategy.next_delay(5) == 3.0

    def test_should_retry(self):
        strategy = ExponentialBackoff(max_attempts=3)
        assert strategy.should_retry(2)
        assert not strategy.should_retry(3)

    @pytest.mark.parametrize("kwargs", [{"max_attempts": 0}, {"base_delay": -1}])
    def test_invalid_configuration(self, kwargs):
        with pytest.raises(ValueError):
            ExponentialBackoff(**kwargs)


class TestRetryContext:
    """Tests for the retry loop."""

    def test_success_first_attempt(self):
        sleeper = Recorder()
        ctx = RetryContext(sleeper=sleeper)
        assert ctx.run(lambda: "ok") == "ok"
        assert ctx.attempts == 1
        assert sleeper.delays == []

    def test_transient_then_success(self):
        func = MagicMock(side_effect=[TransientError("busy"), TransientError("busy"), "done"])
        sleeper = Recorder()
        ctx = RetryContext(sleeper=sleeper)
        assert ctx.run(func) == "done"
        assert func.call_count == 3
        assert sleeper.delays == pytest.approx([0.001, 0.002])
        assert ctx.slept == pytest.approx([0.001, 0.002])
        assert ctx.elapsed_seconds >= 0.0

    def test_structural_stops_immediately(self):
        """A structural failure is returned on the first attempt."""
        func = MagicMock(side_effect=StructuralError("no such table: t", code=1))
        sleeper = Recorder()
        ctx = RetryContext(sleeper=sleeper)
        with pytest.raises(StructuralError) as exc_info:
            ctx.run(func)
        assert func.call_count == 1
        assert sleeper.delays == []
        assert exc_info.value.context["attempt"] == 1

    def test_sqlite_error_is_wrapped_structural(self):
        func = MagicMock(side_effect=sqlite3.OperationalError("no such table: t"))
        ctx = RetryContext(sleeper=Recorder())
        with pytest.raises(StructuralError) as exc_info:
            ctx.run(func)
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)

    def test_exhaustion(self):
        """Ten transient failures: ten attempts, nine sleeps, then exhaustion."""
        func = MagicMock(side_effect=TransientError("connection refused"))
        sleeper = Recorder()
        ctx = RetryContext(strategy=ExponentialBackoff(max_attempts=10), sleeper=sleeper)
        with pytest.raises(RetryExhaustedError) as exc_info:
            ctx.run(func)
        assert func.call_count == 10
        assert len(sleeper.delays) == 9
        assert exc_info.value.attempts == 10
        assert error_kind(exc_info.value) == ErrorKind.TRANSIENT
        assert "connection refused" in str(exc_info.value)

    def test_unclassified_error_is_retried(self):
        func = MagicMock(side_effect=[RuntimeError("boom"), 7])
        ctx = RetryContext(sleeper=Recorder())
        assert ctx.run(func) == 7

    def test_cancel_during_backoff(self):
        """Cancellation is observed at the sleep, not mid-attempt."""
        func = MagicMock(side_effect=TransientError("busy"))
        sleeper = Recorder(cancel_after=2)
        ctx = RetryContext(sleeper=sleeper, cancel=threading.Event())
        with pytest.raises(CancelledError):
            ctx.run(func)
        assert func.call_count == 2

    def test_real_sleeper_honours_cancel_event(self):
        cancel = threading.Event()
        cancel.set()
        func = MagicMock(side_effect=TransientError("busy"))
        ctx = RetryContext(strategy=ExponentialBackoff(base_delay=5.0), cancel=cancel)
        with pytest.raises(CancelledError):
            ctx.run(func)
        assert func.call_count == 1

    def test_before_attempt_runs_each_time(self):
        check = MagicMock()
        func = MagicMock(side_effect=[TransientError("x"), "ok"])
        RetryContext(sleeper=Recorder()).run(func, before_attempt=check)
        assert check.call_count == 2

    def test_before_attempt_failure_ends_loop(self):
        """A circuit disabled between attempts stops the loop."""
        calls = []

        def check():
            if calls:
                raise UnavailableError()

        def func():
            calls.append(1)
            raise TransientError("x")

        with pytest.raises(UnavailableError):
            RetryContext(sleeper=Recorder()).run(func, before_attempt=check)
        assert len(calls) == 1

    def test_on_retry_callback(self):
        seen = []
        func = MagicMock(side_effect=[TransientError("x"), "ok"])
        ctx = RetryContext(sleeper=Recorder(), on_retry=lambda a, e, d: seen.append((a, d)))
        ctx.run(func)
        assert seen == [(1, 0.001)]
