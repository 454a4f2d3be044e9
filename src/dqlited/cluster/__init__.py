"""Cluster coordination: node client, leader resolution, handoff and admin."""

from dqlited.cluster.admin import ClusterAdmin, write_files
from dqlited.cluster.client import DumpFile, HttpDriver, HttpNodeClient, NodeClient
from dqlited.cluster.handoff import HandoffOutcome, HandoffResult, LeadershipHandoff, ShutdownHook
from dqlited.cluster.models import ClusterView, NodeInfo, NodeRole
from dqlited.cluster.resolver import ClusterLeaderResolver, LeaderHandle, NodeDirectory

__all__ = [
    "ClusterAdmin",
    "ClusterLeaderResolver",
    "ClusterView",
    "DumpFile",
    "HandoffOutcome",
    "HandoffResult",
    "HttpDriver",
    "HttpNodeClient",
    "LeaderHandle",
    "LeadershipHandoff",
    "NodeClient",
    "NodeDirectory",
    "NodeInfo",
    "NodeRole",
    "ShutdownHook",
    "write_files",
]
