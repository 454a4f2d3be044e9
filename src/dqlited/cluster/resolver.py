"""
Cluster leader resolution.

Given candidate node addresses, find the node that is currently the leader
and return a :class:`LeaderHandle` bound to it.

Each round asks every candidate "who is the leader?" in parallel.  A
candidate that names a leader other than itself is followed: the named
address is contacted and must confirm that it is the leader.  Rounds repeat
every ``probe_interval`` until a leader is confirmed, the timeout expires
(``NoLeaderError``) or the caller cancels (``CancelledError``).

Probes run on worker threads so that the caller only ever blocks for the
remaining deadline.  Probes still in flight when the call returns are
abandoned; any handle they produce later is closed.

The resolver never retries beyond its deadline.  A caller holding a handle
that turns out to be stale (``LeaderMovedError``) discards it and resolves
again; :meth:`ClusterLeaderResolver.with_leader` does that once.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, TypeVar

from dqlited.cluster.client import HttpNodeClient, NodeClient
from dqlited.cluster.models import NodeInfo
from dqlited.core.deadline import Deadline, check_cancelled, sleep
from dqlited.core.errors import CancelledError, LeaderMovedError, NoLeaderError
from dqlited.core.logging import get_logger
from dqlited.core.settings import DEFAULT_CLUSTER, split_addresses

T = TypeVar("T")

logger = get_logger(__name__)

ClientFactory = Callable[[str], NodeClient]

# longest a caller blocks between cancellation checks
_POLL = 0.05


class LeaderHandle:
    """A client bound to the node confirmed as leader.

    Closing the handle closes its client.  Use as a context manager.
    """

    def __init__(self, node: NodeInfo, client: NodeClient):
        self.node = node
        self.client = client
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.client.close()

    def __enter__(self) -> LeaderHandle:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"LeaderHandle(id={self.node.id}, address={self.node.address!r})"


class NodeDirectory:
    """In-memory directory of candidate nodes.

    Addresses get synthetic ids 1..n in the order given; duplicates are
    dropped.  An empty candidate list means the default local cluster.
    """

    def __init__(self, addresses: str | Iterable[str] | None = None):
        parsed = split_addresses(addresses) if addresses else []
        if not parsed:
            parsed = split_addresses(DEFAULT_CLUSTER)
        unique = list(dict.fromkeys(parsed))
        self._nodes = [NodeInfo(id=i + 1, address=address) for i, address in enumerate(unique)]

    @property
    def nodes(self) -> list[NodeInfo]:
        return list(self._nodes)

    @property
    def addresses(self) -> list[str]:
        return [n.address for n in self._nodes]

    def __iter__(self) -> Iterator[NodeInfo]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)


def _close_abandoned(future: Future) -> None:
    if future.cancelled() or future.exception() is not None:
        return
    handle = future.result()
    if handle is not None:
        handle.close()


class ClusterLeaderResolver:
    """Finds the cluster leader within a bounded time.

    Args:
        client_factory: ``address -> NodeClient``; :class:`HttpNodeClient` by default
        probe_interval: Pause between probe rounds in seconds
        probe_timeout: Cap on a single probe request; the remaining
            deadline when None
    """

    def __init__(
        self,
        client_factory: ClientFactory = HttpNodeClient,
        *,
        probe_interval: float = 0.1,
        probe_timeout: float | None = None,
    ):
        self.client_factory = client_factory
        self.probe_interval = probe_interval
        self.probe_timeout = probe_timeout

    # ── probing ──────────────────────────────────────────────────────

    def _probe(self, node: NodeInfo, timeout: float) -> LeaderHandle | None:
        """Ask ``node`` for the leader and confirm the answer.

        Never raises: an unreachable or confused node is simply not the
        leader this round.
        """
        client = None
        try:
            client = self.client_factory(node.address)
            leader = client.leader(timeout=timeout)
            if leader is None:
                return None
            if leader.address == node.address:
                handle = LeaderHandle(NodeInfo(id=leader.id, address=node.address), client)
                client = None
                return handle

            client.close()
            client = self.client_factory(leader.address)
            confirmed = client.leader(timeout=timeout)
            if confirmed is None or confirmed.address != leader.address:
                return None
            handle = LeaderHandle(confirmed, client)
            client = None
            return handle
        except Exception as e:
            logger.debug("leader_probe_failed", address=node.address, error=str(e))
            return None
        finally:
            if client is not None:
                client.close()

    def _probe_budget(self, deadline: Deadline) -> float:
        budget = deadline.remaining()
        if self.probe_timeout is not None:
            budget = min(budget, self.probe_timeout)
        return max(budget, 0.001)

    def _round(
        self,
        executor: ThreadPoolExecutor,
        directory: NodeDirectory,
        deadline: Deadline,
        cancel: threading.Event | None,
    ) -> LeaderHandle | None:
        budget = self._probe_budget(deadline)
        pending = {executor.submit(self._probe, node, budget) for node in directory}
        try:
            while pending:
                check_cancelled(cancel, "find_leader")
                if deadline.is_expired():
                    return None
                done, pending = wait(pending, timeout=min(_POLL, deadline.remaining()), return_when=FIRST_COMPLETED)
                winner = None
                for future in done:
                    handle = future.result()
                    if handle is None:
                        continue
                    if winner is None:
                        winner = handle
                    else:
                        handle.close()
                if winner is not None:
                    return winner
            return None
        finally:
            for future in pending:
                future.add_done_callback(_close_abandoned)

    # ── public API ───────────────────────────────────────────────────

    def find_leader(
        self,
        candidates: str | Iterable[str] | NodeDirectory | None = None,
        timeout: float = 60.0,
        cancel: threading.Event | None = None,
    ) -> LeaderHandle:
        """Return a handle bound to the current leader.

        Raises:
            NoLeaderError: no leader confirmed before ``timeout`` seconds
            CancelledError: ``cancel`` was set
        """
        directory = candidates if isinstance(candidates, NodeDirectory) else NodeDirectory(candidates)
        deadline = Deadline.after(timeout, operation="find_leader")
        executor = ThreadPoolExecutor(max_workers=len(directory), thread_name_prefix="dqlited-probe")
        rounds = 0
        try:
            while True:
                rounds += 1
                handle = self._round(executor, directory, deadline, cancel)
                if handle is not None:
                    logger.info(
                        "leader_found",
                        leader_id=handle.node.id,
                        address=handle.node.address,
                        rounds=rounds,
                        elapsed=round(deadline.elapsed, 3),
                    )
                    return handle
                if deadline.is_expired():
                    break
                if sleep(deadline.bounded(self.probe_interval), cancel):
                    raise CancelledError("find_leader cancelled")
                if deadline.is_expired():
                    break
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        logger.warning("no_leader", candidates=directory.addresses, timeout=timeout, rounds=rounds)
        raise NoLeaderError(
            f"no leader found within {timeout}s",
            context={"candidates": directory.addresses, "rounds": rounds},
        )

    def with_leader(
        self,
        candidates: str | Iterable[str] | NodeDirectory | None,
        timeout: float,
        fn: Callable[[LeaderHandle], T],
        cancel: threading.Event | None = None,
    ) -> T:
        """Call ``fn(handle)`` on the leader, closing the handle afterwards.

        If ``fn`` reports that leadership moved, the handle is discarded and
        the leader is resolved once more.
        """
        with self.find_leader(candidates, timeout, cancel) as handle:
            try:
                return fn(handle)
            except LeaderMovedError:
                logger.info("leader_moved", address=handle.node.address)
        with self.find_leader(candidates, timeout, cancel) as handle:
            return fn(handle)
