"""Tests for statement classification."""

import pytest

from dqlited.sql.statement import Statement, Verb, classify, is_trigger_start, starts_with


class TestClassify:
    """Verb detection from leading keywords."""

    @pytest.mark.parametrize(
        "sql,verb",
        [
            ("SELECT 1", Verb.SELECT),
            ("  select * from t", Verb.SELECT),
            ("INSERT INTO t VALUES (1)", Verb.DML),
            ("update t set x = 1", Verb.DML),
            ("DELETE FROM t", Verb.DML),
            ("REPLACE INTO t VALUES (1)", Verb.DML),
            ("CREATE TABLE t (x)", Verb.DDL),
            ("DROP TABLE t", Verb.DDL),
            ("ALTER TABLE t ADD y", Verb.DDL),
            ("BEGIN", Verb.TRANSACTION),
            ("COMMIT", Verb.TRANSACTION),
            ("ROLLBACK", Verb.TRANSACTION),
            ("CREATE TRIGGER x AFTER INSERT ON t", Verb.TRIGGER),
            ("create temp trigger x", Verb.TRIGGER),
            ("WITH x AS (SELECT 1) SELECT * FROM x", Verb.SELECT),
            ("with recent as (select id from t) delete from t where id in recent", Verb.DML),
            ("WITH u AS (SELECT updated_at FROM t) SELECT * FROM u", Verb.SELECT),
            ("EXPLAIN QUERY PLAN SELECT * FROM t", Verb.SELECT),
            ("VACUUM", Verb.OTHER),
            ("", Verb.OTHER),
        ],
    )
    def test_verbs(self, sql, verb):
        assert classify(sql) == verb

    def test_pragma_read_and_write(self):
        """Assignment makes a pragma a write."""
        assert classify("PRAGMA table_info(t)") == Verb.PRAGMA_READ
        assert classify("PRAGMA foreign_keys = ON") == Verb.PRAGMA_WRITE

    def test_reads(self):
        assert Verb.SELECT.is_read
        assert Verb.PRAGMA_READ.is_read
        assert not Verb.PRAGMA_WRITE.is_read
        assert not Verb.DML.is_read


class TestHelpers:
    def test_starts_with_ignores_case_and_space(self):
        assert starts_with("  begin transaction;", "BEGIN TRANSACTION")
        assert not starts_with("BEGIN;", "BEGIN TRANSACTION")

    def test_trigger_start(self):
        assert is_trigger_start("CREATE TEMPORARY TRIGGER t")
        assert not is_trigger_start("CREATE TABLE triggers (x)")


class TestStatement:
    def test_of_classifies(self):
        stmt = Statement.of("SELECT 1;", line=4)
        assert stmt.verb == Verb.SELECT
        assert stmt.line == 4
        assert str(stmt) == "SELECT 1;"

    def test_line_not_part_of_equality(self):
        assert Statement.of("SELECT 1;", line=1) == Statement.of("SELECT 1;", line=9)
