"""
Cluster and service-state routes.

GET  /cluster   membership with leader flag
GET  /health    liveness plus circuit state
GET  /circuit   circuit state and counters
POST /circuit   {"enabled": bool}
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from dqlited.api.deps import ServicesDep
from dqlited.api.schemas import CircuitRequest

router = APIRouter()


@router.get("/cluster")
def cluster(services: ServicesDep) -> dict[str, Any]:
    view = services.admin().show()
    return {"leader_id": view.leader_id, "nodes": view.rows()}


@router.get("/health")
def health(services: ServicesDep) -> dict[str, Any]:
    return {
        "status": "ok" if services.circuit.enabled else "unavailable",
        "circuit": services.circuit.state.value,
        "connections": services.registry.names(),
    }


def _circuit_state(services) -> dict[str, Any]:
    return {"state": services.circuit.state.value, "stats": services.circuit.stats.to_dict()}


@router.get("/circuit")
def get_circuit(services: ServicesDep) -> dict[str, Any]:
    return _circuit_state(services)


@router.post("/circuit")
def set_circuit(request: CircuitRequest, services: ServicesDep) -> dict[str, Any]:
    services.circuit.set_enabled(request.enabled)
    return _circuit_state(services)
