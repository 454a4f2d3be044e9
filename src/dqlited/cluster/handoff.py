"""
Leadership handoff on node shutdown.

When a node leaves the cluster it should not take leadership with it.
:class:`LeadershipHandoff` runs once, bounded by a short timeout:

1. ask the cluster who the leader is; if it is not this node, go to 4
2. fetch the membership
3. offer leadership to each voter peer in id order, stopping at the first
   peer that accepts; if none accepts, carry on regardless
4. remove this node from the membership (failure is logged, not raised)
5. close the local storage

Leaving with a stuck leadership role is worse than leaving without a
successor, so the node is removed either way.  Cancelling a run only stops
further transfer offers; removal and storage close still happen within the
deadline.

:class:`ShutdownHook` connects the protocol to process signals.
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from dqlited.cluster.client import NodeClient
from dqlited.cluster.models import NodeInfo, NodeRole
from dqlited.core.deadline import Deadline
from dqlited.core.errors import DqlitedError
from dqlited.core.logging import LogContext, get_logger

logger = get_logger(__name__)

Connect = Callable[[float], NodeClient]


class Closeable(Protocol):
    def close(self) -> None: ...


class HandoffOutcome(str, Enum):
    """Terminal states of a handoff run."""

    HANDED_OFF = "handed_off"          # transferred, then removed
    NOT_LEADER = "not_leader"          # nothing to hand off, removed
    NO_TRANSFER = "no_transfer"        # no voter accepted, removed anyway
    REMOVAL_FAILED = "removal_failed"  # process exits regardless


@dataclass
class HandoffResult:
    outcome: HandoffOutcome
    node_id: int
    leader_id: int = 0
    transferred_to: int | None = None
    attempted: list[int] = field(default_factory=list)
    removed: bool = False
    elapsed: float = 0.0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "node_id": self.node_id,
            "leader_id": self.leader_id,
            "transferred_to": self.transferred_to,
            "attempted": list(self.attempted),
            "removed": self.removed,
            "elapsed": self.elapsed,
            "error": self.error,
        }


class LeadershipHandoff:
    """Vacate leadership and leave the cluster.

    Args:
        client: Client bound to a cluster member (normally the leader), or
            None to resolve one with ``connect`` when the run starts
        node_id: Id of the local node
        storage: Local storage closed at the end of the run
        timeout: Bound on the whole run in seconds
        reconnect: Returns a client for the new leader once leadership has
            moved; removal then goes through it.  Without it the original
            client is used.
        connect: Returns a client for the current leader; called at the
            start of :meth:`run` when ``client`` is None.  The client it
            returns is closed at the end of the run.
    """

    def __init__(
        self,
        client: NodeClient | None,
        node_id: int,
        *,
        storage: Closeable | None = None,
        timeout: float = 2.0,
        reconnect: Connect | None = None,
        connect: Connect | None = None,
    ):
        if client is None and connect is None:
            raise ValueError("LeadershipHandoff needs a client or a connect callable")
        self.client = client
        self.node_id = node_id
        self.storage = storage
        self.timeout = timeout
        self.reconnect = reconnect
        self.connect = connect

    def _leader_id(self, client: NodeClient, deadline: Deadline) -> int:
        try:
            leader = client.leader(timeout=deadline.remaining())
        except DqlitedError as e:
            logger.warning("handoff_leader_unknown", error=str(e))
            return 0
        return leader.id if leader is not None else 0

    def _transfer(
        self,
        client: NodeClient,
        peers: Sequence[NodeInfo],
        deadline: Deadline,
        result: HandoffResult,
        cancel: threading.Event | None,
    ) -> None:
        for peer in peers:
            if peer.id == self.node_id or peer.role is not NodeRole.VOTER:
                continue
            if deadline.is_expired():
                logger.warning("handoff_deadline_expired")
                return
            if cancel is not None and cancel.is_set():
                logger.warning("handoff_transfer_cancelled", attempted=result.attempted)
                result.error = "transfer cancelled"
                return
            result.attempted.append(peer.id)
            try:
                client.transfer(peer.id, timeout=deadline.remaining())
            except DqlitedError as e:
                logger.warning("handoff_transfer_failed", peer=peer.id, error=str(e))
                continue
            result.transferred_to = peer.id
            logger.info("leadership_transferred", from_id=self.node_id, to_id=peer.id)
            return
        logger.warning("handoff_no_transfer", attempted=result.attempted)

    def _remove(self, client: NodeClient, deadline: Deadline, moved: bool) -> None:
        target = client
        if moved and self.reconnect is not None:
            target = self.reconnect(deadline.remaining())
        try:
            target.remove(self.node_id, timeout=deadline.remaining())
        finally:
            if target is not client:
                target.close()

    def run(self, cancel: threading.Event | None = None) -> HandoffResult:
        """Run the protocol to completion or until the deadline expires.

        ``cancel`` cuts short the remaining transfer offers only.  Never
        raises for cluster failures; the outcome says what happened.
        Storage is closed on every path.
        """
        deadline = Deadline.after(self.timeout, operation="handoff")
        result = HandoffResult(outcome=HandoffOutcome.NOT_LEADER, node_id=self.node_id)
        owned: NodeClient | None = None
        with LogContext(node_id=self.node_id):
            try:
                client = self.client
                if client is None:
                    try:
                        client = owned = self.connect(deadline.remaining())
                    except DqlitedError as e:
                        logger.error("handoff_connect_failed", error=str(e))
                        result.outcome = HandoffOutcome.REMOVAL_FAILED
                        result.error = str(e)
                if client is not None:
                    self._run(client, deadline, result, cancel)
            finally:
                if owned is not None:
                    owned.close()
                if self.storage is not None:
                    try:
                        self.storage.close()
                    except Exception as e:
                        logger.error("storage_close_failed", error=str(e))
                result.elapsed = deadline.elapsed
        return result

    def _run(
        self,
        client: NodeClient,
        deadline: Deadline,
        result: HandoffResult,
        cancel: threading.Event | None,
    ) -> None:
        result.leader_id = self._leader_id(client, deadline)
        if result.leader_id == self.node_id:
            logger.info("handoff_is_leader")
            try:
                peers = client.cluster(timeout=deadline.remaining())
            except DqlitedError as e:
                logger.warning("handoff_cluster_failed", error=str(e))
                peers = []
            self._transfer(client, sorted(peers, key=lambda n: n.id), deadline, result, cancel)
            result.outcome = (
                HandoffOutcome.HANDED_OFF if result.transferred_to is not None else HandoffOutcome.NO_TRANSFER
            )
        else:
            logger.info("handoff_not_leader", leader_id=result.leader_id)

        try:
            self._remove(client, deadline, moved=result.transferred_to is not None)
        except DqlitedError as e:
            logger.error("handoff_remove_failed", error=str(e))
            result.outcome = HandoffOutcome.REMOVAL_FAILED
            result.error = str(e)
        else:
            result.removed = True
            logger.info("node_removed")


DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class ShutdownHook:
    """Runs a handoff once when the process is told to stop.

    The handoff runs on its own thread so that in-flight request handling
    cannot starve it.  :meth:`wait` joins it for at most the handoff
    timeout (plus a small grace).  A second signal while the handoff runs
    sets :attr:`cancel`: no further transfer offers are made, but the node
    is still removed.

    Example:
        >>> hook = ShutdownHook(handoff).install()
        >>> ...
        >>> hook.wait()
    """

    def __init__(
        self,
        handoff: LeadershipHandoff,
        *,
        signals: Sequence[signal.Signals] = DEFAULT_SIGNALS,
        on_complete: Callable[[HandoffResult], None] | None = None,
    ):
        self.handoff = handoff
        self.signals = tuple(signals)
        self.on_complete = on_complete
        self.cancel = threading.Event()
        self.result: HandoffResult | None = None
        self._thread: threading.Thread | None = None
        self._fired = threading.Event()
        self._lock = threading.Lock()
        self._previous: dict[signal.Signals, Any] = {}

    def install(self) -> ShutdownHook:
        """Register signal handlers (main thread only)."""
        for sig in self.signals:
            self._previous[sig] = signal.signal(sig, self._on_signal)
        return self

    def uninstall(self) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()

    def _on_signal(self, signum: int, frame: Any) -> None:
        name = signal.Signals(signum).name
        if self.triggered:
            logger.warning("shutdown_signal_repeated", signal=name)
            self.cancel.set()
            return
        logger.info("shutdown_signal", signal=name)
        self.trigger()

    @property
    def triggered(self) -> bool:
        return self._thread is not None

    def trigger(self) -> threading.Thread:
        """Start the handoff; later calls return the same thread."""
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._run, name="dqlited-handoff", daemon=True)
                self._thread.start()
                self._fired.set()
            return self._thread

    def wait_triggered(self, timeout: float | None = None) -> bool:
        """Block until a signal (or :meth:`trigger`) starts the handoff."""
        return self._fired.wait(timeout)

    def _run(self) -> None:
        self.result = self.handoff.run(self.cancel)
        logger.info("handoff_complete", **self.result.to_dict())
        if self.on_complete is not None:
            self.on_complete(self.result)

    def wait(self, timeout: float | None = None) -> HandoffResult | None:
        """Wait for the handoff; returns None if it was never triggered."""
        if self._thread is None:
            return None
        grace = self.handoff.timeout + 1.0 if timeout is None else timeout
        self._thread.join(grace)
        return self.result
