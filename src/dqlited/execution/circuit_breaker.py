"""Process-wide circuit breaker for database execution.

A manual kill-switch: when the datastore is known to be unavailable an
operator (or the node itself, while it is not yet ready) disables the
circuit, and every execution call fails fast with
:class:`~dqlited.core.errors.UnavailableError` without touching the network.

States:
    ENABLED: Normal operation, requests pass through
    DISABLED: Failing fast, requests rejected immediately

Unlike a failure-counting breaker there is no automatic transition: state
only changes through :meth:`CircuitBreaker.enable`,
:meth:`CircuitBreaker.disable` or :meth:`CircuitBreaker.set_enabled`.

One instance is created per process by :class:`dqlited.services.Services`
and injected into every engine.

Example:
    >>> breaker = CircuitBreaker()
    >>> breaker.disable()
    >>> breaker.call(conn.exec, "insert into t values (1)")
    Traceback (most recent call last):
    UnavailableError: database is unavailable
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, TypeVar

from dqlited.core.errors import UnavailableError
from dqlited.core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


def utcnow() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    ENABLED = "enabled"
    DISABLED = "disabled"


@dataclass
class CircuitStats:
    """Statistics for circuit breaker monitoring."""

    total_requests: int = 0
    rejected_requests: int = 0
    state_changes: int = 0
    last_state_change: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "rejected_requests": self.rejected_requests,
            "state_changes": self.state_changes,
            "last_state_change": self.last_state_change.isoformat() if self.last_state_change else None,
        }


@dataclass
class CircuitBreaker:
    """Boolean gate checked before every execution attempt.

    Attributes:
        name: Identifier used in logs and error context
        initial_state: State at construction
    """

    name: str = "database"
    initial_state: CircuitState = CircuitState.ENABLED

    _state: CircuitState = field(default=CircuitState.ENABLED, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)
    _stats: CircuitStats = field(default_factory=CircuitStats, init=False)

    def __post_init__(self) -> None:
        self._state = CircuitState(self.initial_state)

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def enabled(self) -> bool:
        return self.state == CircuitState.ENABLED

    @property
    def stats(self) -> CircuitStats:
        return self._stats

    def _transition_to(self, new_state: CircuitState) -> None:
        if new_state == self._state:
            return
        old_state = self._state
        self._state = new_state
        self._stats.state_changes += 1
        self._stats.last_state_change = utcnow()
        logger.info("circuit_state_changed", circuit=self.name, old=old_state.value, new=new_state.value)

    def allow_request(self) -> bool:
        """Check if a request should be allowed.

        Returns:
            True if request can proceed, False if circuit is disabled
        """
        with self._lock:
            self._stats.total_requests += 1
            if self._state == CircuitState.ENABLED:
                return True
            self._stats.rejected_requests += 1
            return False

    def check(self) -> None:
        """Raise :class:`UnavailableError` unless the circuit is enabled."""
        if not self.allow_request():
            raise UnavailableError(context={"circuit": self.name})

    def enable(self) -> None:
        with self._lock:
            self._transition_to(CircuitState.ENABLED)

    def disable(self) -> None:
        with self._lock:
            self._transition_to(CircuitState.DISABLED)

    def set_enabled(self, enabled: bool) -> None:
        with self._lock:
            self._transition_to(CircuitState.ENABLED if enabled else CircuitState.DISABLED)

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Execute a function through the circuit breaker.

        Raises:
            UnavailableError: If the circuit is disabled; ``func`` is not called
        """
        self.check()
        return func(*args, **kwargs)
