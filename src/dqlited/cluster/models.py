"""Cluster membership models: node roles, node records and cluster views."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dqlited.core.errors import InvalidNodeIdError, InvalidRoleError


class NodeRole(str, Enum):
    """Quorum participation of a node.

    VOTER replicates and votes, STANDBY replicates without a vote, SPARE
    does neither.
    """

    VOTER = "voter"
    STANDBY = "standby"
    SPARE = "spare"

    @classmethod
    def parse(cls, value: str | NodeRole) -> NodeRole:
        """Parse a role name (``voter``, ``standby``/``stand-by``, ``spare``)."""
        if isinstance(value, NodeRole):
            return value
        name = str(value).strip().lower()
        if name == "stand-by":
            name = "standby"
        try:
            return cls(name)
        except ValueError:
            raise InvalidRoleError(str(value)) from None

    @property
    def votes(self) -> bool:
        return self is NodeRole.VOTER

    @property
    def replicates(self) -> bool:
        return self is not NodeRole.SPARE


@dataclass(frozen=True)
class NodeInfo:
    """One cluster member: ``{id > 0, address "host:port", role}``."""

    id: int
    address: str
    role: NodeRole = NodeRole.VOTER

    def __post_init__(self) -> None:
        if isinstance(self.id, bool) or not isinstance(self.id, int) or self.id <= 0:
            raise InvalidNodeIdError(self.id)
        if not isinstance(self.role, NodeRole):
            object.__setattr__(self, "role", NodeRole.parse(self.role))

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "address": self.address, "role": self.role.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NodeInfo:
        return cls(
            id=int(data["id"]),
            address=str(data["address"]),
            role=NodeRole.parse(data.get("role", NodeRole.VOTER.value)),
        )


@dataclass(frozen=True)
class ClusterView:
    """Snapshot of membership plus the leader's id, as seen by the leader.

    Never cached beyond a single call: membership and leadership can change
    between calls.
    """

    nodes: tuple[NodeInfo, ...] = field(default_factory=tuple)
    leader_id: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(sorted(self.nodes, key=lambda n: n.id)))

    @property
    def leader(self) -> NodeInfo | None:
        return self.get(self.leader_id)

    def get(self, node_id: int) -> NodeInfo | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def voters(self) -> list[NodeInfo]:
        return [n for n in self.nodes if n.role is NodeRole.VOTER]

    def is_leader(self, node_id: int) -> bool:
        return self.leader_id != 0 and self.leader_id == node_id

    def rows(self) -> list[dict[str, Any]]:
        """Rows for display: id, role, leader flag, address."""
        return [
            {
                "id": n.id,
                "role": n.role.value,
                "leader": n.id == self.leader_id,
                "address": n.address,
            }
            for n in self.nodes
        ]
