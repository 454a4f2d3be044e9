"""Tests for the write load generator."""

import sqlite3

import pytest

import dqlited.execution.hammer as hammer_module
from dqlited.core.errors import UnavailableError
from dqlited.execution.drivers import SqliteConnection
from dqlited.execution.engine import ExecutionEngine
from dqlited.execution.hammer import HammerOutcome, hammer
from dqlited.execution.registry import ConnectionRegistry


class RejectingConnection(SqliteConnection):
    """Refuses inserts of one value with a constraint error."""

    def __init__(self, value: int):
        super().__init__()
        self.value = value

    def exec(self, sql):
        if f"values ({self.value})" in sql:
            raise sqlite3.IntegrityError("CHECK constraint failed")
        return super().exec(sql)


class RejectingDriver:
    def __init__(self, value: int):
        self.value = value

    def connect(self, name):
        return RejectingConnection(self.value)


class TestHammer:
    def test_inserts_count_rows(self, engine):
        outcome = hammer(engine, 25)
        assert outcome.good == 25
        assert outcome.fails == 0
        assert outcome.total == 25
        assert engine.query("select count(*), max(other) from simple").values == [[25, 25]]

    def test_table_recreated(self, engine):
        engine.exec("create table simple (id integer primary key, other integer)")
        engine.exec("insert into simple (other) values (99)")
        hammer(engine, 3)
        assert engine.query("select other from simple order by id").values == [[1], [2], [3]]

    def test_failures_counted_and_loop_continues(self):
        driver = RejectingDriver(value=2)
        engine = ExecutionEngine(ConnectionRegistry(lambda: driver), "h.db")
        outcome = hammer(engine, 5)
        assert outcome.good == 1
        assert outcome.fails == 4
        assert outcome.total == 5

    def test_progress(self, engine, monkeypatch):
        monkeypatch.setattr(hammer_module, "PROGRESS_EVERY", 2)
        seen = []
        hammer(engine, 5, on_progress=lambda outcome: seen.append(outcome.good))
        assert seen == [2, 4]

    def test_disabled_circuit_stops_run(self, engine, circuit):
        circuit.disable()
        with pytest.raises(UnavailableError):
            hammer(engine, 5)

    def test_negative_count(self, engine):
        with pytest.raises(ValueError):
            hammer(engine, -1)

    def test_zero(self, engine):
        outcome = hammer(engine, 0)
        assert outcome.total == 0
        assert outcome.per_insert == 0.0
        assert engine.query("select count(*) from simple").values == [[0]]


class TestHammerOutcome:
    def test_rates(self):
        outcome = HammerOutcome(count=10, good=8, fails=2, time=2.0)
        assert outcome.per_insert == 0.2
        assert outcome.per_second == 5.0
        assert outcome.to_dict()["fails"] == 2
