"""Deadlines and cancellation for bounded operations.

Leader resolution and the shutdown handoff both run against a wall-clock
budget and may be cancelled by their caller.  A :class:`Deadline` tracks the
budget on the monotonic clock; cancellation is a plain
:class:`threading.Event` so that a signal handler, an HTTP shutdown
endpoint or a test can trip it from any thread.

Example:
    >>> deadline = Deadline.after(2.0, operation="handoff")
    >>> while not deadline.is_expired():
    ...     client.leader(timeout=deadline.remaining())
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

from dqlited.core.errors import CancelledError


@dataclass
class Deadline:
    """Absolute deadline on the monotonic clock.

    Attributes:
        deadline: Absolute deadline timestamp (``time.monotonic()`` based)
        timeout_seconds: Original timeout value in seconds
        operation: Name of the operation, used in error messages
        start_time: When the deadline started
    """

    deadline: float
    timeout_seconds: float
    operation: str = "operation"
    start_time: float = field(default_factory=time.monotonic)

    @classmethod
    def after(cls, seconds: float, operation: str = "operation") -> Deadline:
        if seconds < 0:
            raise ValueError(f"Timeout must be non-negative, got {seconds}")
        now = time.monotonic()
        return cls(deadline=now + seconds, timeout_seconds=seconds, operation=operation, start_time=now)

    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self.deadline - time.monotonic())

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time

    def is_expired(self) -> bool:
        return time.monotonic() >= self.deadline

    def bounded(self, seconds: float) -> float:
        """``seconds`` clipped to the remaining budget."""
        return min(seconds, self.remaining())


def check_cancelled(cancel: threading.Event | None, operation: str = "operation") -> None:
    """Raise :class:`CancelledError` if ``cancel`` is set."""
    if cancel is not None and cancel.is_set():
        raise CancelledError(f"{operation} cancelled")


def sleep(seconds: float, cancel: threading.Event | None = None) -> bool:
    """Sleep for ``seconds`` unless cancelled first.

    Returns:
        True if the sleep was interrupted by cancellation.
    """
    if cancel is None:
        if seconds > 0:
            time.sleep(seconds)
        return False
    return cancel.wait(seconds) if seconds > 0 else cancel.is_set()
