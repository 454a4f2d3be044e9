"""Connection registry: one live connection per database name.

The remote engine requires serialised access per database, so the registry
hands out the same :class:`~dqlited.execution.drivers.Connection` to every
caller asking for a name and never opens a second one while it is cached.

The driver is built lazily from ``driver_factory`` the first time a
connection is needed and reused for the lifetime of the registry.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from dqlited.core.logging import get_logger
from dqlited.execution.drivers import Connection, Driver

logger = get_logger(__name__)


class ConnectionRegistry:
    """Process-wide cache of database name → connection.

    Every read and mutation holds a single mutex.  Entries are few and
    long-lived compared with call volume, so there is no separate read path.
    """

    def __init__(self, driver_factory: Callable[[], Driver]):
        self._driver_factory = driver_factory
        self._driver: Driver | None = None
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()
        self.driver_registrations = 0

    def _ensure_driver(self) -> Driver:
        if self._driver is None:
            self._driver = self._driver_factory()
            self.driver_registrations += 1
            logger.debug("driver_registered", driver=type(self._driver).__name__)
        return self._driver

    def get(self, name: str) -> Connection:
        """Return the cached connection for ``name``, opening it on first use."""
        with self._lock:
            conn = self._connections.get(name)
            if conn is None:
                conn = self._ensure_driver().connect(name)
                self._connections[name] = conn
                logger.info("connection_opened", database=name)
            return conn

    def close(self, name: str) -> bool:
        """Drop and close the connection for ``name``.

        Returns:
            True if a connection was cached under ``name``.
        """
        with self._lock:
            conn = self._connections.pop(name, None)
        if conn is None:
            return False
        conn.close()
        logger.info("connection_closed", database=name)
        return True

    def close_all(self) -> None:
        with self._lock:
            connections = list(self._connections.items())
            self._connections.clear()
        for name, conn in connections:
            try:
                conn.close()
            except Exception as e:
                logger.warning("connection_close_failed", database=name, error=str(e))

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._connections)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._connections

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)
