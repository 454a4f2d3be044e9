"""Tests for membership models."""

import pytest

from dqlited.cluster.models import ClusterView, NodeInfo, NodeRole
from dqlited.core.errors import InvalidNodeIdError, InvalidRoleError


class TestNodeRole:
    @pytest.mark.parametrize(
        "name,role",
        [
            ("voter", NodeRole.VOTER),
            ("VOTER", NodeRole.VOTER),
            ("standby", NodeRole.STANDBY),
            ("stand-by", NodeRole.STANDBY),
            (" spare ", NodeRole.SPARE),
        ],
    )
    def test_parse(self, name, role):
        assert NodeRole.parse(name) is role

    def test_parse_invalid(self):
        with pytest.raises(InvalidRoleError, match="invalid role name"):
            NodeRole.parse("leader")

    def test_flags(self):
        assert NodeRole.VOTER.votes
        assert not NodeRole.STANDBY.votes
        assert NodeRole.STANDBY.replicates
        assert not NodeRole.SPARE.replicates


class TestNodeInfo:
    @pytest.mark.parametrize("node_id", [0, -3, True])
    def test_id_must_be_positive(self, node_id):
        with pytest.raises(InvalidNodeIdError):
            NodeInfo(id=node_id, address="a:1")

    def test_role_string_coerced(self):
        assert NodeInfo(id=1, address="a:1", role="spare").role is NodeRole.SPARE

    def test_dict_conversion(self):
        node = NodeInfo.from_dict({"id": "2", "address": "b:2", "role": "standby"})
        assert node == NodeInfo(id=2, address="b:2", role=NodeRole.STANDBY)
        assert node.to_dict() == {"id": 2, "address": "b:2", "role": "standby"}

    def test_from_dict_default_role(self):
        assert NodeInfo.from_dict({"id": 1, "address": "a:1"}).role is NodeRole.VOTER


class TestClusterView:
    def test_sorted_by_id(self):
        view = ClusterView(nodes=(NodeInfo(3, "c:3"), NodeInfo(1, "a:1")), leader_id=3)
        assert [n.id for n in view.nodes] == [1, 3]
        assert view.leader.address == "c:3"

    def test_rows(self):
        view = ClusterView(nodes=(NodeInfo(1, "a:1"), NodeInfo(2, "b:2", NodeRole.SPARE)), leader_id=1)
        assert view.rows() == [
            {"id": 1, "role": "voter", "leader": True, "address": "a:1"},
            {"id": 2, "role": "spare", "leader": False, "address": "b:2"},
        ]

    def test_voters(self):
        view = ClusterView(nodes=(NodeInfo(1, "a:1"), NodeInfo(2, "b:2", NodeRole.SPARE)))
        assert [n.id for n in view.voters()] == [1]

    def test_unknown_leader(self):
        view = ClusterView(nodes=(NodeInfo(1, "a:1"),))
        assert view.leader is None
        assert not view.is_leader(0)
