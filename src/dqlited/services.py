"""
Process-wide services.

:class:`Services` is built once at process start (by the CLI or the API app
factory) and passed to everything that needs shared state: the circuit
breaker, the connection registry and the leader resolver.  Nothing in the
package keeps these in module globals.
"""

from __future__ import annotations

import threading
from functools import partial

from dqlited.cluster.admin import ClusterAdmin
from dqlited.cluster.client import HttpDriver, HttpNodeClient, NodeClient
from dqlited.cluster.handoff import LeadershipHandoff
from dqlited.cluster.resolver import ClusterLeaderResolver
from dqlited.core.logging import get_logger
from dqlited.core.settings import DqlitedSettings, get_settings
from dqlited.execution.circuit_breaker import CircuitBreaker
from dqlited.execution.drivers import Driver, SqliteDriver
from dqlited.execution.engine import ExecutionEngine
from dqlited.execution.registry import ConnectionRegistry
from dqlited.execution.retry import ExponentialBackoff

logger = get_logger(__name__)


class Services:
    """Composition root for one process.

    Args:
        settings: Configuration; the cached settings when None
        resolver: Leader resolver; built from settings when None
        driver_factory: Overrides the driver selected by ``settings.driver``
    """

    def __init__(
        self,
        settings: DqlitedSettings | None = None,
        *,
        resolver: ClusterLeaderResolver | None = None,
        driver_factory=None,
        circuit: CircuitBreaker | None = None,
    ):
        self.settings = settings or get_settings()
        self.circuit = circuit or CircuitBreaker()
        self.resolver = resolver or ClusterLeaderResolver(
            partial(HttpNodeClient, timeout=self.settings.request_timeout),
            probe_interval=self.settings.probe_interval,
        )
        self.registry = ConnectionRegistry(driver_factory or self._default_driver)
        self.cancel = threading.Event()
        self._drivers: list[Driver] = []

    def _default_driver(self) -> Driver:
        if self.settings.driver == "sqlite":
            driver: Driver = SqliteDriver(self.settings.dir)
        else:
            driver = HttpDriver(self._resolve_leader)
        self._drivers.append(driver)
        return driver

    def _resolve_leader(self):
        return self.resolver.find_leader(self.settings.cluster_addresses, self.settings.timeout, self.cancel)

    @property
    def policy(self) -> ExponentialBackoff:
        return ExponentialBackoff(
            max_attempts=self.settings.retry_attempts,
            base_delay=self.settings.retry_base_delay,
        )

    def engine(self, database: str | None = None) -> ExecutionEngine:
        """An engine for ``database`` sharing this process's circuit and registry."""
        return ExecutionEngine(
            self.registry,
            database or self.settings.database,
            circuit=self.circuit,
            policy=self.policy,
            cancel=self.cancel,
        )

    def admin(self) -> ClusterAdmin:
        return ClusterAdmin(self.resolver, self.settings.cluster_addresses, timeout=self.settings.timeout)

    def handoff(self, node_id: int | None = None) -> LeadershipHandoff:
        """A handoff for ``node_id`` (the configured node by default).

        Nothing is resolved until the handoff runs: the leader is looked up
        at the start of the run, and again for removal after a transfer.
        """
        addresses = self.settings.cluster_addresses

        def connect(remaining: float) -> NodeClient:
            return self.resolver.find_leader(addresses, max(remaining, 0.001)).client

        return LeadershipHandoff(
            None,
            node_id or self.settings.node_id,
            timeout=self.settings.handoff_timeout,
            connect=connect,
            reconnect=connect,
        )

    def close(self) -> None:
        """Cancel pending waits, close every connection and driver."""
        self.cancel.set()
        self.registry.close_all()
        for driver in self._drivers:
            close = getattr(driver, "close", None)
            if close is not None:
                close()
        self._drivers.clear()
        logger.debug("services_closed")
