"""Bounded retry with exponential backoff for the exec path.

Example:
    >>> strategy = ExponentialBackoff(max_attempts=10, base_delay=0.001)
    >>> [strategy.next_delay(n) for n in range(4)]
    [0.001, 0.002, 0.004, 0.008]

:class:`RetryContext` drives one call.  Between attempts it sleeps on the
caller's cancel event, which is the only point where an exec can be
cancelled: an attempt already on the wire is allowed to finish.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from dqlited.core.deadline import sleep as cancellable_sleep
from dqlited.core.errors import CancelledError, ErrorKind, RetryExhaustedError
from dqlited.core.logging import get_logger
from dqlited.execution.classify import Classifier, default_classifier, wrap

T = TypeVar("T")

logger = get_logger(__name__)

Sleeper = Callable[[float, "threading.Event | None"], bool]


@dataclass(frozen=True)
class ExponentialBackoff:
    """Exponential backoff without jitter.

    Delay = base_delay * (multiplier ** n), capped at ``max_delay`` when set.

    Attributes:
        max_attempts: Total attempts, the first one included
        base_delay: Delay after the first failed attempt, in seconds
        multiplier: Growth factor between delays
        max_delay: Optional cap; ``None`` leaves delays uncapped
    """

    max_attempts: int = 10
    base_delay: float = 0.001
    multiplier: float = 2.0
    max_delay: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    def next_delay(self, failures: int) -> float:
        """Delay after the ``failures``-th failure (zero based)."""
        delay = self.base_delay * (self.multiplier ** failures)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def delays(self) -> list[float]:
        """Every delay a perpetually failing call would sleep."""
        return [self.next_delay(n) for n in range(self.max_attempts - 1)]


@dataclass
class RetryContext:
    """Retry state for one exec call.

    Attributes:
        strategy: Backoff policy
        classifier: Decides whether a failure is worth another attempt
        sleeper: ``(seconds, cancel) -> cancelled``; replaced in tests
        cancel: Event observed at every backoff sleep
        on_retry: Callback ``(attempt, error, delay)`` before each sleep
    """

    strategy: ExponentialBackoff = field(default_factory=ExponentialBackoff)
    classifier: Classifier = default_classifier
    sleeper: Sleeper = cancellable_sleep
    cancel: threading.Event | None = None
    on_retry: Callable[[int, BaseException, float], None] | None = None

    attempt: int = field(default=0, init=False)
    last_error: BaseException | None = field(default=None, init=False)
    errors: list[tuple[int, BaseException]] = field(default_factory=list, init=False)
    slept: list[float] = field(default_factory=list, init=False)
    started_at: float = field(default_factory=time.monotonic, init=False)

    @property
    def attempts(self) -> int:
        return self.attempt

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def run(
        self,
        func: Callable[..., T],
        *args: Any,
        before_attempt: Callable[[], None] | None = None,
        **kwargs: Any,
    ) -> T:
        """Call ``func`` until it succeeds, fails structurally or runs out of attempts.

        ``before_attempt`` runs ahead of every attempt; an exception from it
        (the circuit check) ends the loop immediately.

        Raises:
            DqlitedError: the classified error of a non-retryable failure
            RetryExhaustedError: every attempt failed transiently
            CancelledError: cancelled while backing off
        """
        while True:
            if before_attempt is not None:
                before_attempt()
            self.attempt += 1
            try:
                return func(*args, **kwargs)
            except Exception as e:
                kind = self.classifier(e)
                error = wrap(e, kind)
                error.with_context(attempt=self.attempt)
                self.last_error = error
                self.errors.append((self.attempt, error))

                if kind != ErrorKind.TRANSIENT:
                    if error is e:
                        raise
                    raise error from e

                if not self.strategy.should_retry(self.attempt):
                    raise RetryExhaustedError(
                        f"exec failed after {self.attempt} attempts: {error.message}",
                        attempts=self.attempt,
                        cause=error,
                    ) from error

                delay = self.strategy.next_delay(self.attempt - 1)
                logger.debug(
                    "exec_retry",
                    attempt=self.attempt,
                    max_attempts=self.strategy.max_attempts,
                    delay=delay,
                    error=str(error),
                )
                if self.on_retry:
                    self.on_retry(self.attempt, error, delay)

                self.slept.append(delay)
                if self.sleeper(delay, self.cancel):
                    raise CancelledError("exec cancelled during backoff", cause=error) from error
