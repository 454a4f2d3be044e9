"""Result models for the Execute and Query contracts.

These are the shapes returned to callers and marshalled by the HTTP API.
Empty fields are omitted from :meth:`to_dict` output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v not in (None, "", [], 0, 0.0)}


@dataclass
class Result:
    """Outcome of one write statement."""

    last_insert_id: int = 0
    rows_affected: int = 0
    error: str | None = None
    time: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "last_insert_id": self.last_insert_id,
                "rows_affected": self.rows_affected,
                "error": self.error,
                "time": self.time,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result:
        return cls(
            last_insert_id=int(data.get("last_insert_id") or 0),
            rows_affected=int(data.get("rows_affected") or 0),
            error=data.get("error") or None,
            time=data.get("time"),
        )


@dataclass
class Rows:
    """Outcome of one read statement."""

    columns: list[str] = field(default_factory=list)
    types: list[str] = field(default_factory=list)
    values: list[list[Any]] = field(default_factory=list)
    error: str | None = None
    time: float | None = None

    def __len__(self) -> int:
        return len(self.values)

    def to_dict(self) -> dict[str, Any]:
        # columns/types/values are always present, even when empty
        data: dict[str, Any] = {
            "columns": list(self.columns),
            "types": list(self.types),
            "values": [list(row) for row in self.values],
        }
        data.update(_compact({"error": self.error, "time": self.time}))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rows:
        return cls(
            columns=list(data.get("columns") or []),
            types=list(data.get("types") or []),
            values=[list(row) for row in data.get("values") or []],
            error=data.get("error") or None,
            time=data.get("time"),
        )


@dataclass
class ExecuteResponse:
    """Ordered per-statement results plus aggregate elapsed seconds."""

    results: list[Result] = field(default_factory=list)
    time: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {"results": [r.to_dict() for r in self.results], "time": self.time}


@dataclass
class BatchOutcome:
    """Summary of a :meth:`ExecutionEngine.batch` run."""

    executed: int = 0
    transactions: int = 0
    results: list[Result] = field(default_factory=list)
    rows: list[Rows] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    time: float = 0.0

    @property
    def queried(self) -> int:
        return len(self.rows)

    def to_dict(self) -> dict[str, Any]:
        return {
            "executed": self.executed,
            "queried": self.queried,
            "transactions": self.transactions,
            "results": [r.to_dict() for r in self.results],
            "rows": [r.to_dict() for r in self.rows],
            "messages": list(self.messages),
            "time": self.time,
        }


@dataclass
class TransactOutcome:
    """Summary of a bulk :meth:`ExecutionEngine.transact` load."""

    count: int = 0
    time: float = 0.0

    @property
    def rate(self) -> float:
        """Seconds per statement."""
        return self.time / self.count if self.count else 0.0
