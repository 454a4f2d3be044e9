"""
Shared pytest fixtures for dqlited tests.

- a local SQLite registry and engine (no network, no backoff sleeps)
- an in-memory three node cluster
- settings cache isolation
"""

from __future__ import annotations

from collections.abc import Generator

import pytest

from dqlited.core.settings import clear_settings_cache
from dqlited.execution.circuit_breaker import CircuitBreaker
from dqlited.execution.drivers import SqliteDriver
from dqlited.execution.engine import ExecutionEngine
from dqlited.execution.registry import ConnectionRegistry
from dqlited.execution.retry import ExponentialBackoff
from tests._support.fake_cluster import FakeCluster


def no_sleep(seconds: float, cancel=None) -> bool:
    """Backoff sleeper that returns immediately."""
    return False


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop cached settings and ambient DQLITED_* variables around each test."""
    import os

    for key in list(os.environ):
        if key.startswith("DQLITED_"):
            monkeypatch.delenv(key)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def registry() -> Generator[ConnectionRegistry, None, None]:
    reg = ConnectionRegistry(SqliteDriver)
    yield reg
    reg.close_all()


@pytest.fixture
def circuit() -> CircuitBreaker:
    return CircuitBreaker()


@pytest.fixture
def engine(registry: ConnectionRegistry, circuit: CircuitBreaker) -> ExecutionEngine:
    return ExecutionEngine(
        registry,
        "test.db",
        circuit=circuit,
        policy=ExponentialBackoff(max_attempts=10, base_delay=0.001),
        sleeper=no_sleep,
    )


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster.of(3, leader_id=1)
