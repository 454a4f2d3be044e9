"""Cluster administration: membership listing and changes.

Every operation resolves the leader, performs one call against it and
closes the handle.  Membership changes are explicit: roles only change
through :func:`assign`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from pathlib import Path

from dqlited.cluster.client import DumpFile
from dqlited.cluster.models import ClusterView, NodeInfo, NodeRole
from dqlited.cluster.resolver import ClusterLeaderResolver, LeaderHandle
from dqlited.core.errors import InvalidInputError, InvalidNodeIdError
from dqlited.core.logging import get_logger

logger = get_logger(__name__)

FileSaver = Callable[[list[DumpFile]], list[Path]]

Candidates = str | Iterable[str] | None


class ClusterAdmin:
    """Leader-routed membership operations.

    Args:
        resolver: Finds the leader for every operation
        candidates: Node addresses to probe
        timeout: Leader lookup timeout in seconds
    """

    def __init__(self, resolver: ClusterLeaderResolver, candidates: Candidates = None, *, timeout: float = 60.0):
        self.resolver = resolver
        self.candidates = candidates
        self.timeout = timeout

    def _on_leader(self, fn):
        return self.resolver.with_leader(self.candidates, self.timeout, fn)

    def show(self) -> ClusterView:
        """Membership sorted by id, with the leader flagged."""

        def view(handle: LeaderHandle) -> ClusterView:
            return ClusterView(nodes=tuple(handle.client.cluster()), leader_id=handle.node.id)

        return self._on_leader(view)

    def leader_id(self) -> int:
        """Id of the leader node, 0 if it is unknown."""

        def leader(handle: LeaderHandle) -> int:
            node = handle.client.leader()
            return node.id if node is not None else 0

        return self._on_leader(leader)

    def add_node(self, node_id: int, address: str, role: NodeRole | str = NodeRole.VOTER) -> bool:
        """Add a node unless it is already a member.

        Returns:
            True if the node was added, False if it was already present.

        Raises:
            InvalidNodeIdError: ``node_id`` is not greater than zero
            InvalidInputError: the id is known with a different address
        """
        if isinstance(node_id, bool) or not isinstance(node_id, int) or node_id <= 0:
            raise InvalidNodeIdError(node_id, "ID must be greater than zero")
        node = NodeInfo(id=node_id, address=address, role=NodeRole.parse(role))

        def add(handle: LeaderHandle) -> bool:
            for member in handle.client.cluster():
                if member.id != node.id:
                    continue
                if member.address != node.address:
                    raise InvalidInputError(
                        f"mismatched addresses for node: {node.id} ({node.address!r} vs. {member.address!r})",
                        context={"node_id": node.id},
                    )
                logger.info("node_exists", node_id=node.id, address=node.address)
                return False
            handle.client.add(node)
            logger.info("node_added", node_id=node.id, address=node.address, role=node.role.value)
            return True

        return self._on_leader(add)

    def assign(self, node_id: int, role: NodeRole | str) -> None:
        parsed = NodeRole.parse(role)
        self._on_leader(lambda handle: handle.client.assign(node_id, parsed))
        logger.info("node_assigned", node_id=node_id, role=parsed.value)

    def remove(self, node_id: int) -> None:
        self._on_leader(lambda handle: handle.client.remove(node_id))
        logger.info("node_removed", node_id=node_id)

    def transfer(self, node_id: int) -> int:
        """Move leadership to ``node_id``; returns the previous leader's id."""

        def transfer(handle: LeaderHandle) -> int:
            logger.info("leadership_transfer", from_id=handle.node.id, to_id=node_id)
            handle.client.transfer(node_id)
            return handle.node.id

        return self._on_leader(transfer)

    def dump_database(self, database: str, saver: FileSaver | None = None) -> list[Path]:
        """Fetch a database dump from the leader and hand it to ``saver``."""
        files = self._on_leader(lambda handle: handle.client.dump(database))
        return (saver or write_files)(files)


def write_files(files: list[DumpFile], directory: str | Path = ".") -> list[Path]:
    """Default saver: write each dump file under ``directory``."""
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)
    paths = []
    for dump in files:
        path = target / Path(dump.name).name
        path.write_bytes(dump.data)
        logger.info("dump_written", path=str(path), size=len(dump.data))
        paths.append(path)
    return paths
