"""Tests for the circuit breaker kill-switch."""

import threading
from unittest.mock import MagicMock

import pytest

from dqlited.core.errors import ErrorKind, UnavailableError
from dqlited.execution.circuit_breaker import CircuitBreaker, CircuitState


class TestCircuitState:
    """Tests for state transitions."""

    def test_enabled_by_default(self):
        breaker = CircuitBreaker()
        assert breaker.state == CircuitState.ENABLED
        assert breaker.enabled is True

    def test_initial_state_disabled(self):
        breaker = CircuitBreaker(initial_state=CircuitState.DISABLED)
        assert breaker.enabled is False

    def test_disable_then_enable(self):
        breaker = CircuitBreaker()
        breaker.disable()
        assert breaker.state == CircuitState.DISABLED
        breaker.enable()
        assert breaker.state == CircuitState.ENABLED
        assert breaker.stats.state_changes == 2
        assert breaker.stats.last_state_change is not None

    def test_set_enabled(self):
        breaker = CircuitBreaker()
        breaker.set_enabled(False)
        assert not breaker.enabled
        breaker.set_enabled(True)
        assert breaker.enabled

    def test_same_state_is_not_a_change(self):
        breaker = CircuitBreaker()
        breaker.enable()
        assert breaker.stats.state_changes == 0


class TestCircuitCheck:
    """Tests for request gating."""

    def test_allow_request_counts(self):
        breaker = CircuitBreaker()
        assert breaker.allow_request() is True
        breaker.disable()
        assert breaker.allow_request() is False
        assert breaker.stats.total_requests == 2
        assert breaker.stats.rejected_requests == 1

    def test_check_raises_unavailable(self):
        breaker = CircuitBreaker(name="main")
        breaker.disable()
        with pytest.raises(UnavailableError) as exc_info:
            breaker.check()
        assert exc_info.value.kind == ErrorKind.UNAVAILABLE
        assert exc_info.value.context["circuit"] == "main"

    def test_call_passes_through_when_enabled(self):
        breaker = CircuitBreaker()
        func = MagicMock(return_value=42)
        assert breaker.call(func, 1, key="v") == 42
        func.assert_called_once_with(1, key="v")

    def test_call_skips_function_when_disabled(self):
        """A disabled circuit never reaches the wrapped function."""
        breaker = CircuitBreaker()
        breaker.disable()
        func = MagicMock()
        with pytest.raises(UnavailableError):
            breaker.call(func)
        func.assert_not_called()

    def test_stats_to_dict(self):
        breaker = CircuitBreaker()
        breaker.disable()
        data = breaker.stats.to_dict()
        assert data["state_changes"] == 1
        assert data["last_state_change"].endswith("+00:00")


class TestCircuitConcurrency:
    def test_toggle_from_threads(self):
        """Concurrent toggles leave a consistent state and request count."""
        breaker = CircuitBreaker()

        def worker(flag: bool) -> None:
            for _ in range(100):
                breaker.set_enabled(flag)
                breaker.allow_request()

        threads = [threading.Thread(target=worker, args=(i % 2 == 0,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert breaker.stats.total_requests == 400
        assert breaker.state in (CircuitState.ENABLED, CircuitState.DISABLED)
