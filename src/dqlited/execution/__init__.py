"""Execution layer: circuit breaker, connection registry, retry and engine."""

from dqlited.execution.circuit_breaker import CircuitBreaker, CircuitState, CircuitStats
from dqlited.execution.classify import default_classifier
from dqlited.execution.drivers import Connection, Driver, SqliteDriver, Transaction
from dqlited.execution.engine import ExecutionEngine
from dqlited.execution.models import BatchOutcome, ExecuteResponse, Result, Rows, TransactOutcome
from dqlited.execution.registry import ConnectionRegistry
from dqlited.execution.retry import ExponentialBackoff, RetryContext

__all__ = [
    "BatchOutcome",
    "CircuitBreaker",
    "CircuitState",
    "CircuitStats",
    "Connection",
    "ConnectionRegistry",
    "Driver",
    "ExecuteResponse",
    "ExecutionEngine",
    "ExponentialBackoff",
    "Result",
    "RetryContext",
    "Rows",
    "SqliteDriver",
    "TransactOutcome",
    "Transaction",
    "default_classifier",
]
